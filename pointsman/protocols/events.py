"""Business events consumed by the accumulation engine."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class PurchaseCompleted:
    """
    A paid order.

    ``amount`` and ``order_ref`` come from the catalog/pricing side and are
    trusted as given. ``is_first`` is the caller's claim; the engine still
    refuses a second first-purchase bonus.
    """

    order_ref: str
    amount: Decimal
    is_first: bool = False


@dataclass(frozen=True)
class ClientRegistered:
    """Client signed up at the branch."""


@dataclass(frozen=True)
class BranchVisited:
    """Client checked in at the branch on ``visit_date``."""

    visit_date: date


LoyaltyEvent = PurchaseCompleted | ClientRegistered | BranchVisited
