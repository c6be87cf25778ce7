"""Payments delivered to another chain through an Axelar-style gateway."""

import logging
from dataclasses import dataclass, field

from .. import constants as c
from ..diamond import CallContext, enforce_is_contract_owner
from ..errors import BridgeNotConfigured, EconomicError, WrongTokenContract
from ..schemas import TransferSuccess
from ..selectors import external
from ..tokens import BridgeGateway
from ..utils import is_zero_address, normalize_address
from .base import Facet
from .spot_payment import enforce_allowance_and_balance, record_transfer

logger = logging.getLogger(__name__)

STORAGE_NAMESPACE = "diamondpay.crosschain.v1"


@dataclass
class CrossChainStorage:
    gateways: dict[str, str] = field(default_factory=dict)
    """Source chain name to gateway contract address."""


def cross_chain_storage(ctx: CallContext) -> CrossChainStorage:
    return ctx.storage.namespace(STORAGE_NAMESPACE, CrossChainStorage)


class CrossChainPaymentFacet(Facet):
    @external("setAxelarContract(string,address)")
    def set_axelar_contract(self, ctx: CallContext, chain: str, gateway: str) -> None:
        """Register the gateway used for payments originating on ``chain``."""
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        cross_chain_storage(ctx).gateways[chain] = normalize_address(gateway)
        logger.info("Gateway for %s set to %s", chain, gateway)

    @external("getAxelarContract(string)", view=True)
    def get_axelar_contract(self, ctx: CallContext, chain: str) -> str:
        return cross_chain_storage(ctx).gateways.get(chain, c.ZERO_ADDRESS)

    @external("transfer(string,string,address,string,uint256,address,string,string[])")
    def transfer(
        self,
        ctx: CallContext,
        source_chain: str,
        destination_chain: str,
        recipient: str,
        token_symbol: str,
        amount: int,
        token_contract: str,
        payment_ref: str,
        tags: list[str],
    ) -> None:
        """Send ``amount`` of ``token_symbol`` to ``recipient`` on ``destination_chain``.

        The tokens are pulled from the caller into the diamond, approved to
        the gateway and handed over with ``sendToken``.

        Raises:
            BridgeNotConfigured: No gateway is registered for ``source_chain``.
            WrongTokenContract: ``token_contract`` is not a token.
            InsufficientAllowance: The caller has not approved the diamond.
            InsufficientBalance: The caller holds less than ``amount``.
        """
        gateway_address = cross_chain_storage(ctx).gateways.get(source_chain)
        if gateway_address is None or is_zero_address(gateway_address):
            raise BridgeNotConfigured(source_chain)
        gateway = ctx.chain.contract_at(gateway_address)
        if not isinstance(gateway, BridgeGateway):
            raise BridgeNotConfigured(source_chain)
        if is_zero_address(token_contract):
            raise WrongTokenContract()
        if amount <= 0:
            raise EconomicError(c.ERR_INVALID_AMOUNT)

        erc20 = ctx.token(token_contract)
        token = normalize_address(erc20.address)
        enforce_allowance_and_balance(ctx, token, ctx.sender, amount)

        erc20.transfer_from(ctx.this, ctx.sender, ctx.this, amount)
        erc20.approve(ctx.this, gateway.address, amount)
        gateway.send_token(ctx.this, destination_chain, recipient, token_symbol, amount, token=token)

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
                payment_type="cross-chain",
                destination_chain=destination_chain,
            )
        )
        logger.info(
            "%s sent %d %s from %s to %s on %s (total=%d)",
            ctx.sender,
            amount,
            token_symbol,
            source_chain,
            recipient,
            destination_chain,
            total,
        )
