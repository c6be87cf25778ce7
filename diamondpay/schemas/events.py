"""Events emitted by the diamond, its facets and the local test contracts."""

from typing import Any, ClassVar

from pydantic import Field

from .base import Address, BaseDiamondModel
from .diamond import FacetCut


class Event(BaseDiamondModel):
    """Base class for emitted events.

    Attributes:
        address: Contract that emitted the event (set by the chain).
        block_number: Block in which the emitting transaction was included.
    """

    event_name: ClassVar[str] = ""

    address: Address | None = None
    block_number: int | None = None

    @property
    def name(self) -> str:
        return self.event_name


class DiamondCutEvent(Event):
    event_name: ClassVar[str] = "DiamondCut"

    diamond_cut: list[FacetCut]
    init: Address
    calldata: Any = None


class OwnershipTransferred(Event):
    event_name: ClassVar[str] = "OwnershipTransferred"

    previous_owner: Address
    new_owner: Address


class NewPlan(Event):
    event_name: ClassVar[str] = "NewPlan"

    plan_id: int
    owner: Address
    fee: int
    auto_renew: bool
    duration: int
    payment_interval: int
    title: bytes


class PlanStopped(Event):
    event_name: ClassVar[str] = "PlanStopped"

    plan_id: int
    owner: Address


class ChargeSuccess(Event):
    event_name: ClassVar[str] = "ChargeSuccess"

    plan_id: int
    subscriber: Address
    plan_owner: Address
    token: Address
    amount: int
    protocol_fee: int
    timestamp: int


class SubscriptionCancelled(Event):
    event_name: ClassVar[str] = "SubscriptionCancelled"

    plan_id: int
    subscriber: Address
    forced: bool = False


class SubscriptionOwnerStatusChanged(Event):
    event_name: ClassVar[str] = "SubscriptionOwnerStatusChanged"

    owner: Address
    paused: bool
    blacklisted: bool


class TransferSuccess(Event):
    event_name: ClassVar[str] = "TransferSuccess"

    sender: Address
    recipient: str
    token_address: Address
    amount: int
    tags: list[str] = Field(default_factory=list)
    datetime: int
    payment_ref: str
    payment_type: str
    destination_chain: str | None = None


class Transfer(Event):
    event_name: ClassVar[str] = "Transfer"

    sender: Address
    recipient: Address
    value: int


class Approval(Event):
    event_name: ClassVar[str] = "Approval"

    owner: Address
    spender: Address
    value: int


class TokenSent(Event):
    event_name: ClassVar[str] = "TokenSent"

    sender: Address
    destination_chain: str
    destination_address: str
    symbol: str
    amount: int
