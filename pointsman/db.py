"""
Transaction helpers.

Every mutation in pointsman runs as one ``transaction.atomic()`` block holding
row locks (``select_for_update``). Databases may still abort such a block with
a deadlock or serialization failure; those are transient and the whole block
is retried. Anything else coming out of the database is infrastructure failure.
"""

import logging
import time
from typing import Callable, TypeVar

from django.db import DatabaseError, OperationalError, transaction

from pointsman.conf import pointsman_settings
from pointsman.exceptions import ConcurrencyConflict, StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fragments of driver messages for lock conflicts (postgres, mysql, sqlite)
_CONFLICT_MARKERS = (
    "deadlock",
    "could not serialize",
    "serialization failure",
    "lock wait timeout",
    "could not obtain lock",
    "database is locked",
    "database table is locked",
)


def is_conflict(exc: Exception) -> bool:
    """Whether a database error is a transient lock/serialization conflict."""
    if not isinstance(exc, OperationalError):
        return False
    text = str(exc).lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)


def run_atomic(fn: Callable[[], T], *, label: str = "operation") -> T:
    """
    Run ``fn`` inside ``transaction.atomic()`` with bounded conflict retries.

    Business exceptions raised by ``fn`` roll the transaction back and
    propagate untouched. Lock conflicts are retried up to CONFLICT_RETRIES
    times with linear backoff, then raised as ConcurrencyConflict. Any other
    DatabaseError is raised as StorageUnavailable.

    Retries are only effective at the outermost block. Nested inside a
    caller's transaction the block becomes a savepoint, and a conflict there
    aborts the caller's transaction as well.
    """
    retries = max(0, int(pointsman_settings.CONFLICT_RETRIES))
    backoff = float(pointsman_settings.CONFLICT_BACKOFF_SECONDS)
    attempt = 0

    while True:
        try:
            with transaction.atomic():
                return fn()
        except DatabaseError as exc:
            if not is_conflict(exc):
                logger.error("%s: storage failure: %s", label, exc)
                raise StorageUnavailable(operation=label, detail=str(exc)) from exc
            if attempt >= retries:
                logger.warning(
                    "%s: giving up after %d conflict retries: %s", label, attempt, exc
                )
                raise ConcurrencyConflict(operation=label, attempts=attempt + 1) from exc
            attempt += 1
            logger.debug("%s: conflict, retry %d/%d", label, attempt, retries)
            if backoff:
                time.sleep(backoff * attempt)
