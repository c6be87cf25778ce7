"""Revert types raised by the diamond and its facets.

Every failed call surfaces as one of these exceptions after the enclosing
transaction has been rolled back.
"""

from . import constants as c


class Revert(Exception):
    """Base class for reverted calls.

    Attributes:
        reason: Revert reason string, as a contract would report it.
    """

    default_reason = "execution reverted"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    @property
    def name(self) -> str:
        """Custom error name (the exception class name)."""
        return type(self).__name__


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class AuthorizationError(Revert):
    """Caller is not allowed to perform the operation."""


class StateError(Revert):
    """Operation is invalid for the current storage state."""


class EconomicError(Revert):
    """Funds, allowance or sent value do not cover the operation."""


class TimingError(Revert):
    """Recurring charge attempted outside its valid window."""


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class NotOwner(AuthorizationError):
    default_reason = c.ERR_NOT_CONTRACT_OWNER

    def __init__(self, caller: str | None = None, owner: str | None = None):
        self.caller = caller
        self.owner = owner
        super().__init__()


class NotSubscriptionOwner(AuthorizationError):
    default_reason = c.ERR_NOT_SUBSCRIPTION_OWNER

    def __init__(self, caller: str | None = None, plan_id: int | None = None):
        self.caller = caller
        self.plan_id = plan_id
        super().__init__()


class PausedSubscriptionOwner(AuthorizationError):
    default_reason = c.ERR_PAUSED_OWNER

    def __init__(self, owner: str | None = None):
        self.owner = owner
        super().__init__()


class BlockedSubscriptionOwner(AuthorizationError):
    default_reason = c.ERR_BLOCKED_OWNER

    def __init__(self, owner: str | None = None):
        self.owner = owner
        super().__init__()


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class FunctionNotFound(StateError):
    """No facet is registered for the called selector.

    Attributes:
        selector: The unresolved 4-byte selector.
    """

    default_reason = c.ERR_FUNCTION_NOT_FOUND

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"{c.ERR_FUNCTION_NOT_FOUND}: {selector}")


class InvalidFacetCut(StateError):
    """A facet cut entry is malformed or targets an invalid facet."""


class SelectorAlreadyRegistered(InvalidFacetCut):
    def __init__(self, selector: str, reason: str = c.ERR_ADD_EXISTING):
        self.selector = selector
        super().__init__(reason)


class SelectorNotRegistered(InvalidFacetCut):
    def __init__(self, selector: str, reason: str):
        self.selector = selector
        super().__init__(reason)


class InitializationFailed(StateError):
    """The diamond cut initializer reverted.

    Attributes:
        cause: The revert raised by the initializer.
    """

    default_reason = c.ERR_INIT_REVERTED

    def __init__(self, cause: Exception | None = None):
        self.cause = cause
        reason = f"{c.ERR_INIT_REVERTED}: {cause}" if cause else None
        super().__init__(reason)


class PlanNotFound(StateError):
    default_reason = c.ERR_PLAN_NOT_FOUND

    def __init__(self, plan_id: int | None = None):
        self.plan_id = plan_id
        super().__init__()


class PlanInactive(StateError):
    default_reason = c.ERR_PLAN_INACTIVE

    def __init__(self, plan_id: int | None = None):
        self.plan_id = plan_id
        super().__init__()


class InvalidDuration(StateError):
    default_reason = c.ERR_INVALID_DURATION


class InvalidPaymentInterval(StateError):
    default_reason = c.ERR_INVALID_INTERVAL


class InvalidFee(StateError):
    default_reason = c.ERR_INVALID_FEE


class AlreadySubscribed(StateError):
    default_reason = c.ERR_ALREADY_SUBSCRIBED


class NotSubscribed(StateError):
    default_reason = c.ERR_NOT_SUBSCRIBED


class BridgeNotConfigured(StateError):
    default_reason = c.ERR_SOURCE_CHAIN_NOT_SET

    def __init__(self, chain: str | None = None):
        self.chain = chain
        super().__init__()


class WrongTokenContract(StateError):
    default_reason = c.ERR_WRONG_TOKEN_CONTRACT


# ---------------------------------------------------------------------------
# Economic
# ---------------------------------------------------------------------------


class InsufficientAllowance(EconomicError):
    default_reason = c.ERR_INSUFFICIENT_ALLOWANCE


class InsufficientBalance(EconomicError):
    default_reason = c.ERR_INSUFFICIENT_TOKEN_BALANCE


class InsufficientValue(EconomicError):
    default_reason = c.ERR_INSUFFICIENT_TOKENS_SENT


class ExcessValue(EconomicError):
    default_reason = c.ERR_EXCESS_TOKENS_SENT


class ZeroAddressTransfer(EconomicError):
    default_reason = c.ERR_ZERO_ADDRESS_TRANSFER


class SameAccountTransfer(EconomicError):
    default_reason = c.ERR_SAME_ACCOUNT


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class DuplicatePayment(TimingError):
    """Recurring charge attempted before the payment interval elapsed.

    Attributes:
        next_charge_at: Earliest timestamp at which the charge is accepted.
    """

    default_reason = c.ERR_DUPLICATE_PAYMENT

    def __init__(self, next_charge_at: int | None = None):
        self.next_charge_at = next_charge_at
        super().__init__()


class RenewalRequired(TimingError):
    default_reason = c.ERR_RENEWAL_REQUIRED


# ---------------------------------------------------------------------------
# Tooling
# ---------------------------------------------------------------------------


class RemoteError(Exception):
    """Raised when a call against a deployed diamond fails."""

    def __init__(self, message, tx_hash=None):
        self.message = message
        self.tx_hash = tx_hash
        super().__init__(self.message)

    def __str__(self):
        if self.tx_hash:
            return f"{self.message} (tx: {self.tx_hash})"
        return self.message
