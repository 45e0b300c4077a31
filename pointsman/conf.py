"""
Pointsman configuration.

Usage in settings.py:
    POINTSMAN = {
        "CARD_TOKEN_TTL_SECONDS": 30 * 24 * 60 * 60,
        "CARD_ROTATION_INTERVAL_DAYS": 30,
        "REDEMPTION_CODE_LENGTH": 8,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class PointsmanSettings:
    """Pointsman configuration settings."""

    # Digital card tokens
    CARD_TOKEN_TTL_SECONDS: int = 30 * 24 * 60 * 60
    CARD_ROTATION_INTERVAL_DAYS: int = 30
    CARD_TOKEN_SALT: str = "pointsman.card"
    # Empty = settings.SECRET_KEY
    CARD_SIGNING_KEY: str = ""

    # Redemption codes
    REDEMPTION_CODE_LENGTH: int = 8
    REDEMPTION_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    REDEMPTION_CODE_ATTEMPTS: int = 5
    # 0 = codes never expire
    REDEMPTION_CODE_TTL_DAYS: int = 0

    # Transient database conflicts (deadlock, serialization failure)
    CONFLICT_RETRIES: int = 3
    CONFLICT_BACKOFF_SECONDS: float = 0.05

    # Ledger history
    HISTORY_MAX_PAGE_SIZE: int = 100

    # Branch -> company lookup for global rewards (dotted path, empty = single company)
    BRANCH_DIRECTORY_BACKEND: str = ""


def get_pointsman_settings() -> PointsmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "POINTSMAN", {})
    return PointsmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_pointsman_settings(), name)


pointsman_settings = _LazySettings()
