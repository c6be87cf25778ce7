"""Routing table types: facet cuts and loupe entries."""

from pydantic import Field, field_validator

from ..constants import FacetCutAction
from ..utils import normalize_address, normalize_selector
from .base import Address, BaseDiamondModel, Selector


class FacetCut(BaseDiamondModel):
    """One entry of a diamond cut.

    Attributes:
        facet_address: Facet to bind the selectors to (zero address for Remove).
        action: Add, Replace or Remove.
        function_selectors: Selectors affected by this entry.
    """

    facet_address: Address
    action: FacetCutAction
    function_selectors: list[Selector] = Field(default_factory=list)

    @field_validator("facet_address")
    @classmethod
    def _checksum(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("function_selectors", mode="before")
    @classmethod
    def _selectors(cls, v):
        return [normalize_selector(s) for s in v]

    def to_abi(self) -> tuple:
        """Tuple in ``(address,uint8,bytes4[])`` order for ABI encoding."""
        return (
            self.facet_address,
            int(self.action),
            [bytes.fromhex(s.removeprefix("0x")) for s in self.function_selectors],
        )


class Facet(BaseDiamondModel):
    """Loupe view of one facet and the selectors routed to it."""

    facet_address: Address
    function_selectors: list[Selector]

    @classmethod
    def from_abi(cls, value) -> "Facet":
        address, selectors = value
        return cls(
            facet_address=normalize_address(address),
            function_selectors=[normalize_selector(s) for s in selectors],
        )
