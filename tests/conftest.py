"""
Pytest Configuration and Shared Fixtures

Provides a local chain with funded signers, a deployed diamond and the
payment facets cut into it.
"""

import pytest

from diamondpay import (
    BridgeGateway,
    Chain,
    CrossChainPaymentFacet,
    ERC20Token,
    SpotPaymentFacet,
    SubscriptionFacet,
    deploy_diamond,
    deploy_facet,
)
from diamondpay.facets import DiamondCutFacet, DiamondLoupeFacet, OwnershipFacet

GENESIS_TIMESTAMP = 1_700_000_000


# ============================================================================
# CHAIN AND ACCOUNTS
# ============================================================================


@pytest.fixture
def chain():
    return Chain(timestamp=GENESIS_TIMESTAMP)


@pytest.fixture
def signers(chain):
    return chain.signers(5)


@pytest.fixture
def owner(signers):
    return signers[0]


@pytest.fixture
def plan_owner(signers):
    return signers[1]


@pytest.fixture
def subscriber(signers):
    return signers[2]


@pytest.fixture
def other(signers):
    return signers[3]


# ============================================================================
# DIAMOND
# ============================================================================


@pytest.fixture
def deployment(chain, owner):
    return deploy_diamond(chain, owner)


@pytest.fixture
def diamond(deployment):
    return deployment.diamond


@pytest.fixture
def cut(diamond, owner):
    """DiamondCutFacet functions called by the owner."""
    return diamond.as_facet(DiamondCutFacet, owner)


@pytest.fixture
def loupe(diamond, owner):
    return diamond.as_facet(DiamondLoupeFacet, owner)


@pytest.fixture
def ownership(diamond, owner):
    return diamond.as_facet(OwnershipFacet, owner)


# ============================================================================
# TOKENS AND PAYMENT FACETS
# ============================================================================


@pytest.fixture
def token(chain, owner):
    erc20 = ERC20Token()
    chain.deploy(erc20, owner)
    return erc20


@pytest.fixture
def subscriptions(chain, diamond, owner):
    """SubscriptionFacet cut into the diamond, called by the diamond owner."""
    deploy_facet(chain, diamond, SubscriptionFacet(), owner)
    return diamond.as_facet(SubscriptionFacet, owner)


@pytest.fixture
def spot(chain, diamond, owner):
    deploy_facet(chain, diamond, SpotPaymentFacet(), owner)
    return diamond.as_facet(SpotPaymentFacet, owner)


@pytest.fixture
def gateway(chain, owner):
    bridge = BridgeGateway()
    chain.deploy(bridge, owner)
    return bridge


@pytest.fixture
def cross_chain(chain, diamond, owner):
    deploy_facet(chain, diamond, CrossChainPaymentFacet(), owner)
    return diamond.as_facet(CrossChainPaymentFacet, owner)
