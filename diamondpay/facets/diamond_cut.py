"""Facet exposing ``diamondCut``."""

from typing import Any

from ..constants import DIAMOND_CUT_SIGNATURE, ZERO_ADDRESS
from ..diamond import CallContext, diamond_cut, enforce_is_contract_owner
from ..schemas import FacetCut
from ..selectors import external
from .base import Facet


class DiamondCutFacet(Facet):
    @external(DIAMOND_CUT_SIGNATURE)
    def diamond_cut(
        self,
        ctx: CallContext,
        cuts: list[FacetCut | dict],
        init: str = ZERO_ADDRESS,
        calldata: Any = None,
    ) -> None:
        """Add, replace or remove functions and optionally run an initializer.

        Args:
            ctx: Call context.
            cuts: Facet addresses, actions and selectors.
            init: Contract to execute with ``calldata`` (zero address for none).
            calldata: ABI-encoded call or ``(signature, args)`` for ``init``.
        """
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        diamond_cut(ctx, cuts, init, calldata)
