"""Deployment helpers for a diamond on a local chain."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .chain import Chain
from .constants import FacetCutAction, ZERO_ADDRESS
from .diamond import Diamond
from .facets import DiamondCutFacet, DiamondInit, DiamondLoupeFacet, Facet, OwnershipFacet
from .schemas import FacetCut
from .selectors import get_selectors

logger = logging.getLogger(__name__)


@dataclass
class DiamondDeployment:
    diamond: Diamond
    diamond_cut_facet: DiamondCutFacet
    diamond_loupe_facet: DiamondLoupeFacet
    ownership_facet: OwnershipFacet
    diamond_init: DiamondInit

    @property
    def address(self) -> str:
        return self.diamond.address

    @property
    def facet_addresses(self) -> list[str]:
        """Addresses in deployment order (cut, loupe, ownership)."""
        return [
            self.diamond_cut_facet.address,
            self.diamond_loupe_facet.address,
            self.ownership_facet.address,
        ]


def deploy_diamond(chain: Chain, owner: str) -> DiamondDeployment:
    """Deploy the diamond with its cut, loupe and ownership facets.

    The loupe and ownership facets are added in one cut that also runs
    ``DiamondInit.init()`` to register the supported interfaces.
    """
    cut_facet = DiamondCutFacet()
    chain.deploy(cut_facet, owner)
    logger.info("DiamondCutFacet deployed: %s", cut_facet.address)

    diamond = Diamond(owner, cut_facet.address)
    chain.deploy(diamond, owner)
    logger.info("Diamond deployed: %s", diamond.address)

    diamond_init = DiamondInit()
    chain.deploy(diamond_init, owner)
    logger.info("DiamondInit deployed: %s", diamond_init.address)

    loupe_facet = DiamondLoupeFacet()
    ownership_facet = OwnershipFacet()
    cuts = []
    for facet in (loupe_facet, ownership_facet):
        chain.deploy(facet, owner)
        logger.info("%s deployed: %s", type(facet).__name__, facet.address)
        cuts.append(
            FacetCut(
                facet_address=facet.address,
                action=FacetCutAction.ADD,
                function_selectors=list(get_selectors(facet)),
            )
        )

    diamond.as_facet(DiamondCutFacet, owner).diamond_cut(cuts, diamond_init.address, ("init()", ()))
    logger.info("Diamond cut complete")

    return DiamondDeployment(
        diamond=diamond,
        diamond_cut_facet=cut_facet,
        diamond_loupe_facet=loupe_facet,
        ownership_facet=ownership_facet,
        diamond_init=diamond_init,
    )


def deploy_facet(
    chain: Chain,
    diamond: Diamond,
    facet: Facet,
    owner: str,
    selectors: Iterable[str] | None = None,
) -> str:
    """Deploy ``facet`` and add its selectors (all of them by default) to ``diamond``.

    Returns:
        The facet's address.
    """
    chain.deploy(facet, owner)
    logger.info("%s deployed: %s", type(facet).__name__, facet.address)

    cut = FacetCut(
        facet_address=facet.address,
        action=FacetCutAction.ADD,
        function_selectors=list(selectors if selectors is not None else get_selectors(facet)),
    )
    diamond.as_facet(DiamondCutFacet, owner).diamond_cut([cut], ZERO_ADDRESS, None)
    logger.info("Diamond cut complete for %s", type(facet).__name__)
    return facet.address
