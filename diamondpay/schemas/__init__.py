"""Pydantic models for the diamond routing table, billing records and events."""

from .base import Address, BaseDiamondModel, Selector
from .diamond import Facet, FacetCut
from .events import (
    Approval,
    ChargeSuccess,
    DiamondCutEvent,
    Event,
    NewPlan,
    OwnershipTransferred,
    PlanStopped,
    SubscriptionCancelled,
    SubscriptionOwnerStatusChanged,
    TokenSent,
    Transfer,
    TransferSuccess,
)
from .subscription import ChargeQuote, Subscription, SubscriptionOwnerStatus, SubscriptionPlan

__all__ = [
    # Base
    "Address",
    "Selector",
    "BaseDiamondModel",
    # Routing
    "Facet",
    "FacetCut",
    # Billing
    "ChargeQuote",
    "Subscription",
    "SubscriptionOwnerStatus",
    "SubscriptionPlan",
    # Events
    "Event",
    "Approval",
    "ChargeSuccess",
    "DiamondCutEvent",
    "NewPlan",
    "OwnershipTransferred",
    "PlanStopped",
    "SubscriptionCancelled",
    "SubscriptionOwnerStatusChanged",
    "TokenSent",
    "Transfer",
    "TransferSuccess",
]
