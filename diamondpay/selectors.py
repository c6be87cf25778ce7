"""Function selector tables used to compose diamond cuts.

Facets declare their ABI surface with :func:`external`. :func:`get_selectors`
turns a facet into the list of selectors a cut should register, and the
returned :class:`Selectors` can be narrowed with ``get`` / ``remove``::

    selectors = get_selectors(spot_payment_facet).get(
        ["transfer(address,address,uint256,uint8,string[],string)"]
    )
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from .constants import INIT_SIGNATURE
from .utils import canonical_signature, selector_of

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ExternalFunction:
    """ABI entry attached to a facet method by :func:`external`."""

    signature: str
    selector: str
    payable: bool = False
    view: bool = False


def external(signature: str, *, payable: bool = False, view: bool = False) -> Callable[[F], F]:
    """Mark a facet method as callable through the diamond.

    Args:
        signature: Canonical Solidity signature, e.g. ``"owner()"``.
        payable: Whether the function accepts native value.
        view: Whether the function only reads storage.
    """
    canonical = canonical_signature(signature)
    entry = ExternalFunction(
        signature=canonical,
        selector=selector_of(canonical),
        payable=payable,
        view=view,
    )

    def decorator(fn: F) -> F:
        fn.__external__ = entry  # type: ignore[attr-defined]
        return fn

    return decorator


def external_functions(contract: Any) -> list[tuple[str, ExternalFunction]]:
    """(attribute name, ABI entry) pairs of a facet in declaration order.

    Base class functions come first; an override replaces its base entry in place.
    """
    cls = contract if isinstance(contract, type) else type(contract)
    entries: dict[str, tuple[str, ExternalFunction]] = {}
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            entry = getattr(member, "__external__", None)
            if isinstance(entry, ExternalFunction):
                entries[entry.selector] = (name, entry)
    return list(entries.values())


def signatures(contract: Any) -> dict[str, str]:
    """Selector to signature map of a facet."""
    return {entry.selector: entry.signature for _, entry in external_functions(contract)}


class Selectors(list):
    """Selector list bound to the contract it was derived from.

    Attributes:
        contract: Facet (or facet class) the selectors belong to.
    """

    def __init__(self, selectors: Iterable[str] = (), contract: Any = None):
        super().__init__(selectors)
        self.contract = contract

    def get(self, function_names: Iterable[str]) -> "Selectors":
        """Keep only the selectors of the given signatures.

        Signatures that are not part of the contract are ignored.
        """
        wanted = {get_selector(name) for name in function_names}
        return Selectors([s for s in self if s in wanted], self.contract)

    def remove(self, function_names: Iterable[str]) -> "Selectors":
        """Drop the selectors of the given signatures.

        Signatures that are not part of the contract are ignored.
        """
        unwanted = {get_selector(name) for name in function_names}
        return Selectors([s for s in self if s not in unwanted], self.contract)


def get_selectors(contract: Any) -> Selectors:
    """All selectors of a facet except its initializer."""
    return Selectors(
        [entry.selector for _, entry in external_functions(contract) if entry.signature != INIT_SIGNATURE],
        contract,
    )


def get_selector(signature: str) -> str:
    return selector_of(signature)


def remove_selectors(selectors: Iterable[str], function_signatures: Iterable[str]) -> list[str]:
    """Filter a plain selector list by signature."""
    unwanted = {get_selector(s) for s in function_signatures}
    return [s for s in selectors if s not in unwanted]


def find_address_position_in_facets(facet_address: str, facets: list) -> int:
    """Index of a facet address in a loupe ``facets()`` result.

    Raises:
        LookupError: If the address is not among the facets.
    """
    for i, facet in enumerate(facets):
        if facet.facet_address.lower() == facet_address.lower():
            return i
    raise LookupError(f"Could not find facet address {facet_address} in facets")
