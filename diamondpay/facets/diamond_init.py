"""Initializer run by the deployment cut."""

from .. import constants as c
from ..diamond import CallContext
from ..selectors import external
from .base import Facet


class DiamondInit(Facet):
    """Registers the ERC-165 interfaces the diamond implements.

    Executed through ``diamondCut``'s initializer hook, so it writes the
    diamond's storage rather than its own.
    """

    @external("init()")
    def init(self, ctx: CallContext) -> None:
        interfaces = ctx.storage.supported_interfaces
        interfaces[c.INTERFACE_ID_ERC165] = True
        interfaces[c.INTERFACE_ID_DIAMOND_CUT] = True
        interfaces[c.INTERFACE_ID_DIAMOND_LOUPE] = True
        interfaces[c.INTERFACE_ID_ERC173] = True
