"""Introspection functions of the diamond (EIP-2535 loupe + ERC-165)."""

from ..constants import ZERO_ADDRESS
from ..diamond import CallContext
from ..schemas import Facet as FacetInfo
from ..selectors import external
from ..utils import normalize_address, normalize_selector
from .base import Facet


class DiamondLoupeFacet(Facet):
    @external("facets()", view=True)
    def facets(self, ctx: CallContext) -> list[FacetInfo]:
        ds = ctx.storage
        return [
            FacetInfo(facet_address=address, function_selectors=list(ds.facet_selectors[address]))
            for address in ds.facet_addresses
        ]

    @external("facetFunctionSelectors(address)", view=True)
    def facet_function_selectors(self, ctx: CallContext, facet: str) -> list[str]:
        return list(ctx.storage.facet_selectors.get(normalize_address(facet), []))

    @external("facetAddresses()", view=True)
    def facet_addresses(self, ctx: CallContext) -> list[str]:
        return list(ctx.storage.facet_addresses)

    @external("facetAddress(bytes4)", view=True)
    def facet_address(self, ctx: CallContext, selector: str | bytes) -> str:
        """Facet that implements ``selector``, or the zero address."""
        return ctx.storage.selector_to_facet.get(normalize_selector(selector), ZERO_ADDRESS)

    @external("supportsInterface(bytes4)", view=True)
    def supports_interface(self, ctx: CallContext, interface_id: str | bytes) -> bool:
        return ctx.storage.supported_interfaces.get(normalize_selector(interface_id), False)
