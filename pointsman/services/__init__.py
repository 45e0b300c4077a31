"""Pointsman services.

Module-level functions grouped by concern:
- ledger: balances, history, adjustments
- accumulation: business events -> ledger entries
- catalog: rules configuration and reward lookup
- redemption: rewards -> single-use codes
- cards: digital card tokens and scan verification

``pointsman.service.PointsService`` is the facade over these modules.
"""

from pointsman.services import ledger
from pointsman.services import catalog
from pointsman.services import accumulation
from pointsman.services import redemption
from pointsman.services import cards

__all__ = ["ledger", "accumulation", "catalog", "redemption", "cards"]
