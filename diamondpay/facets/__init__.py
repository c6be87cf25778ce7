from .base import Facet
from .cross_chain_payment import CrossChainPaymentFacet
from .diamond_cut import DiamondCutFacet
from .diamond_init import DiamondInit
from .diamond_loupe import DiamondLoupeFacet
from .ownership import OwnershipFacet
from .spot_payment import SpotPaymentConfig, SpotPaymentFacet
from .subscription import SubscriptionConfig, SubscriptionFacet

__all__ = [
    "Facet",
    "CrossChainPaymentFacet",
    "DiamondCutFacet",
    "DiamondInit",
    "DiamondLoupeFacet",
    "OwnershipFacet",
    "SpotPaymentConfig",
    "SpotPaymentFacet",
    "SubscriptionConfig",
    "SubscriptionFacet",
]
