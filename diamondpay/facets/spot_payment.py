"""One-off payments in the native currency or an ERC-20 token."""

import logging
from dataclasses import dataclass, field

from .. import constants as c
from ..diamond import CallContext, enforce_is_contract_owner
from ..errors import (
    EconomicError,
    ExcessValue,
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientValue,
    Revert,
    SameAccountTransfer,
    ZeroAddressTransfer,
)
from ..schemas import TransferSuccess
from ..selectors import external
from ..utils import is_zero_address, normalize_address, same_address
from .base import Facet

logger = logging.getLogger(__name__)

STORAGE_NAMESPACE = "diamondpay.payments.v1"


@dataclass
class SpotPaymentConfig:
    native_overage_percent: int = c.DEFAULT_NATIVE_OVERAGE_PERCENT
    """Overpayment accepted (and refunded) on native transfers, in percent of the amount."""


@dataclass
class PaymentStorage:
    """Ledger shared by the spot and cross-chain payment facets."""

    total_transferred: dict[str, int] = field(default_factory=dict)
    token_addresses: dict[str, str] = field(default_factory=dict)


def payment_storage(ctx: CallContext) -> PaymentStorage:
    return ctx.storage.namespace(STORAGE_NAMESPACE, PaymentStorage)


def record_transfer(ctx: CallContext, token: str, amount: int) -> int:
    """Add ``amount`` to the cumulative ledger of ``token`` and return the new total."""
    ledger = payment_storage(ctx).total_transferred
    key = normalize_address(token)
    ledger[key] = ledger.get(key, 0) + amount
    return ledger[key]


def enforce_allowance_and_balance(ctx: CallContext, token: str, owner: str, amount: int) -> None:
    erc20 = ctx.token(token)
    if erc20.allowance(owner, ctx.this) < amount:
        raise InsufficientAllowance()
    if erc20.balance_of(owner) < amount:
        raise InsufficientBalance()


class SpotPaymentFacet(Facet):
    """Direct transfers from the caller to a recipient, with a payment ledger.

    Native payments must carry ``msg.value`` within
    ``[amount, amount + amount * overage // 100]``; the recipient receives
    exactly ``amount`` and any excess goes back to the sender. ERC-20
    payments move tokens straight from the sender to the recipient through
    the diamond's allowance.

    Args:
        config: Native overpayment band.
    """

    def __init__(self, config: SpotPaymentConfig | None = None):
        super().__init__()
        self._config = config or SpotPaymentConfig()

    @property
    def config(self) -> SpotPaymentConfig:
        return self._config

    @external("transfer(address,address,uint256,uint8,string[],string)", payable=True)
    def transfer(
        self,
        ctx: CallContext,
        recipient: str,
        token: str,
        amount: int,
        token_type: int,
        tags: list[str],
        payment_ref: str,
    ) -> None:
        self._transfer(ctx, recipient, token, amount, token_type, tags, payment_ref, c.DEFAULT_PAYMENT_TYPE)

    @external("transfer(address,address,uint256,uint8,string[],string,string)", payable=True)
    def transfer_with_payment_type(
        self,
        ctx: CallContext,
        recipient: str,
        token: str,
        amount: int,
        token_type: int,
        tags: list[str],
        payment_ref: str,
        payment_type: str,
    ) -> None:
        """Same as ``transfer`` with an explicit payment type label (e.g. ``"invoice"``)."""
        self._transfer(ctx, recipient, token, amount, token_type, tags, payment_ref, payment_type)

    @external("getTotalTransferred(address)", view=True)
    def get_total_transferred(self, ctx: CallContext, token: str) -> int:
        """Cumulative amount paid in ``token`` (zero address for native)."""
        return payment_storage(ctx).total_transferred.get(normalize_address(token), 0)

    @external("setTokenAddress(string,address)")
    def set_token_address(self, ctx: CallContext, symbol: str, token: str) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        payment_storage(ctx).token_addresses[symbol] = normalize_address(token)
        logger.info("Token %s registered at %s", symbol, token)

    @external("getTokenAddress(string)", view=True)
    def get_token_address(self, ctx: CallContext, symbol: str) -> str:
        """Address registered for ``symbol``, or the zero address."""
        return payment_storage(ctx).token_addresses.get(symbol, c.ZERO_ADDRESS)

    def _transfer(
        self,
        ctx: CallContext,
        recipient: str,
        token: str,
        amount: int,
        token_type: int,
        tags: list[str],
        payment_ref: str,
        payment_type: str,
    ) -> None:
        if is_zero_address(recipient):
            raise ZeroAddressTransfer()
        recipient = normalize_address(recipient)
        if same_address(recipient, ctx.sender):
            raise SameAccountTransfer()
        if amount <= 0:
            raise EconomicError(c.ERR_INVALID_AMOUNT)

        if token_type == c.TokenType.NATIVE:
            token = c.NATIVE_TOKEN
            self._pay_native(ctx, recipient, amount)
        elif token_type == c.TokenType.ERC20:
            if ctx.value:
                raise ExcessValue()
            token = normalize_address(ctx.token(token).address)
            enforce_allowance_and_balance(ctx, token, ctx.sender, amount)
            ctx.token(token).transfer_from(ctx.this, ctx.sender, recipient, amount)
        else:
            raise Revert(c.ERR_INVALID_TOKEN_TYPE)

        total = record_transfer(ctx, token, amount)
        ctx.emit(
            TransferSuccess(
                sender=ctx.sender,
                recipient=recipient,
                token_address=token,
                amount=amount,
                tags=list(tags),
                datetime=ctx.now,
                payment_ref=payment_ref,
                payment_type=payment_type,
            )
        )
        logger.info(
            "%s paid %d of %s to %s (ref=%s, total=%d)", ctx.sender, amount, token, recipient, payment_ref, total
        )

    def _pay_native(self, ctx: CallContext, recipient: str, amount: int) -> None:
        # msg.value was credited to the diamond before dispatch
        if ctx.value == 0:
            raise InsufficientValue(c.ERR_NO_ETH_SENT)
        if ctx.value < amount:
            raise InsufficientValue()
        if ctx.value > amount + amount * self._config.native_overage_percent // 100:
            raise ExcessValue()

        ctx.chain.transfer_native(ctx.this, recipient, amount)
        refund = ctx.value - amount
        if refund:
            ctx.chain.transfer_native(ctx.this, ctx.sender, refund)
            logger.debug("Refunded %d native to %s", refund, ctx.sender)
