"""ERC-173 ownership of the diamond."""

import logging

from ..constants import ERR_NEW_OWNER_ZERO, ZERO_ADDRESS
from ..diamond import CallContext, enforce_is_contract_owner, set_contract_owner
from ..errors import Revert
from ..schemas import OwnershipTransferred
from ..selectors import external
from ..utils import is_zero_address
from .base import Facet

logger = logging.getLogger(__name__)


class OwnershipFacet(Facet):
    @external("transferOwnership(address)")
    def transfer_ownership(self, ctx: CallContext, new_owner: str) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        if is_zero_address(new_owner):
            raise Revert(ERR_NEW_OWNER_ZERO)
        previous = set_contract_owner(ctx.storage, new_owner)
        ctx.emit(OwnershipTransferred(previous_owner=previous, new_owner=ctx.storage.contract_owner))
        logger.info("Diamond %s ownership transferred: %s -> %s", ctx.this, previous, new_owner)

    @external("renounceOwnership()")
    def renounce_ownership(self, ctx: CallContext) -> None:
        """Give up ownership for good; cuts and admin functions become unusable."""
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        previous = set_contract_owner(ctx.storage, ZERO_ADDRESS)
        ctx.emit(OwnershipTransferred(previous_owner=previous, new_owner=ZERO_ADDRESS))
        logger.warning("Diamond %s ownership renounced by %s", ctx.this, previous)

    @external("owner()", view=True)
    def owner(self, ctx: CallContext) -> str:
        return ctx.storage.contract_owner
