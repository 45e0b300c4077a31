"""Pointsman models.

Ledger:
- ClientAccount: live balance and rule counters per (client, branch)
- LedgerEntry: append-only point history

Catalog and redemption:
- RulesConfig: per-branch accumulation rules
- Reward: redeemable rewards (tagged by reward_type)
- Redemption: issued single-use codes

Identity:
- DigitalCard, CardToken: rotating signed card credentials
- ScanLog: successful scans at branch terminals
"""

from pointsman.models.account import ClientAccount
from pointsman.models.ledger import (
    PURCHASE_REASONS,
    Direction,
    ImmutableEntryError,
    LedgerEntry,
    ReasonCode,
)
from pointsman.models.rules_config import RulesConfig
from pointsman.models.reward import (
    DiscountDetails,
    OtherDetails,
    ProductDetails,
    Reward,
    RewardType,
    ServiceDetails,
)
from pointsman.models.redemption import Redemption, RedemptionStatus
from pointsman.models.card import CardToken, DigitalCard, ScanLog
from pointsman.models.processed_event import ProcessedEvent

__all__ = [
    # Ledger
    "ClientAccount",
    "LedgerEntry",
    "Direction",
    "ReasonCode",
    "PURCHASE_REASONS",
    "ImmutableEntryError",
    # Rules
    "RulesConfig",
    # Catalog
    "Reward",
    "RewardType",
    "DiscountDetails",
    "ProductDetails",
    "ServiceDetails",
    "OtherDetails",
    # Redemption
    "Redemption",
    "RedemptionStatus",
    # Identity
    "DigitalCard",
    "CardToken",
    "ScanLog",
    # Idempotency
    "ProcessedEvent",
]
