"""Base class for facets."""

from ..chain import Contract
from ..selectors import Selectors, get_selectors


class Facet(Contract):
    """Stateless logic contract attached to a diamond by selector.

    Facet methods receive a :class:`~diamondpay.diamond.CallContext` as their
    first argument and must keep all persistent data in the diamond's storage.
    """

    @classmethod
    def selectors(cls) -> Selectors:
        return get_selectors(cls)
