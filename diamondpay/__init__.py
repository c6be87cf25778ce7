"""
In-process EIP-2535 payment diamond.

A :class:`Diamond` routes calls by 4-byte selector to stateless facets that
all share the diamond's storage. Facets cover diamond cuts, loupe
introspection, ownership, subscription billing and spot / cross-chain
payments. Everything runs on a local :class:`Chain` whose transactions are
atomic, and :class:`DiamondRemote` talks to a diamond deployed on a real
network.

## Quick start

```python
from diamondpay import Chain, ERC20Token, SubscriptionFacet, deploy_diamond, deploy_facet

chain = Chain()
owner, plan_owner, subscriber = chain.signers(3)
diamond = deploy_diamond(chain, owner).diamond
deploy_facet(chain, diamond, SubscriptionFacet(), owner)

plans = diamond.as_facet(SubscriptionFacet, plan_owner)
plan_id = plans.create_plan(1200, True, 365, 14, "Gold")
```
"""

from .chain import Chain, Contract
from .diamond import CallContext, Diamond, DiamondStorage, FacetHandle
from .deploy import DiamondDeployment, deploy_diamond, deploy_facet
from .errors import RemoteError, Revert
from .facets import (
    CrossChainPaymentFacet,
    DiamondCutFacet,
    DiamondInit,
    DiamondLoupeFacet,
    OwnershipFacet,
    SpotPaymentConfig,
    SpotPaymentFacet,
    SubscriptionConfig,
    SubscriptionFacet,
)
from .remote import DiamondRemote
from .selectors import Selectors, external, get_selector, get_selectors, remove_selectors
from .tokens import BridgeGateway, ERC20Token

__all__ = [
    "Chain",
    "Contract",
    "CallContext",
    "Diamond",
    "DiamondStorage",
    "FacetHandle",
    "DiamondDeployment",
    "deploy_diamond",
    "deploy_facet",
    "RemoteError",
    "Revert",
    "CrossChainPaymentFacet",
    "DiamondCutFacet",
    "DiamondInit",
    "DiamondLoupeFacet",
    "OwnershipFacet",
    "SpotPaymentConfig",
    "SpotPaymentFacet",
    "SubscriptionConfig",
    "SubscriptionFacet",
    "DiamondRemote",
    "Selectors",
    "external",
    "get_selector",
    "get_selectors",
    "remove_selectors",
    "BridgeGateway",
    "ERC20Token",
]
