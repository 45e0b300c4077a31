"""Pointsman protocols."""

from pointsman.protocols.branches import BranchDirectory
from pointsman.protocols.events import (
    BranchVisited,
    ClientRegistered,
    LoyaltyEvent,
    PurchaseCompleted,
)

__all__ = [
    "BranchDirectory",
    "PurchaseCompleted",
    "ClientRegistered",
    "BranchVisited",
    "LoyaltyEvent",
]
