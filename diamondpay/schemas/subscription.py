"""Subscription plan and billing records."""

from pydantic import Field

from ..utils import parse_bytes32
from .base import Address, BaseDiamondModel


class SubscriptionPlan(BaseDiamondModel):
    """A plan offered by a plan owner.

    Attributes:
        id: Sequential plan identifier, never reused.
        owner: Plan creator, receives the charges.
        fee: Fee for the whole duration in the token's smallest unit.
        auto_renew: Whether the plan advertises renewal.
        duration: Plan length in days.
        payment_interval: Days between recurring charges.
        title: bytes32 label.
        active: False once stopped or its owner is removed.
    """

    id: int
    owner: Address
    fee: int
    auto_renew: bool
    duration: int
    payment_interval: int
    title: bytes
    active: bool = True

    @property
    def title_text(self) -> str:
        return parse_bytes32(self.title)


class Subscription(BaseDiamondModel):
    """A subscriber's record for one plan."""

    subscriber: Address
    token: Address
    start_timestamp: int
    last_charge_timestamp: int
    charges: int = 1


class SubscriptionOwnerStatus(BaseDiamondModel):
    paused: bool = False
    blacklisted: bool = False


class ChargeQuote(BaseDiamondModel):
    """Split of one periodic charge."""

    amount: int
    protocol_fee: int
    owner_share: int = Field(description="Amount paid out to the plan owner")
