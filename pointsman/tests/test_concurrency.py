"""
Contention tests.

Writers must be serialized by the database: row locks on a server
database, or ``transaction_mode: IMMEDIATE`` on sqlite (see
tests/settings.py). Under sqlite's default DEFERRED mode two writers can
both start reading before either takes the write lock; the loser then
fails with "database is locked" and, once retries run out, surfaces as
ConcurrencyConflict instead of waiting its turn. Such setups skip
these tests and rely on the injected-conflict tests in TestRunAtomic.
"""

import threading
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import OperationalError, connection, connections

from pointsman.db import is_conflict, run_atomic
from pointsman.exceptions import ConcurrencyConflict, InsufficientBalance, RewardExhausted
from pointsman.models import ClientAccount, LedgerEntry, Redemption
from pointsman.services import accumulation, ledger, redemption

BRANCH = "BR-01"
CLIENT = "CLI-001"


def serializes_writers() -> bool:
    if connection.vendor != "sqlite":
        return True
    options = connection.settings_dict.get("OPTIONS", {})
    return options.get("transaction_mode") == "IMMEDIATE" and not connection.is_in_memory_db()


needs_serialized_writers = pytest.mark.skipif(
    not serializes_writers(),
    reason="database does not serialize concurrent writers",
)


def run_concurrently(*fns):
    """Run callables in parallel threads; return results/exceptions in order."""
    barrier = threading.Barrier(len(fns))
    results = [None] * len(fns)

    def worker(i, fn):
        try:
            barrier.wait()
            results[i] = fn()
        except Exception as exc:
            results[i] = exc
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(fns)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


# ═══════════════════════════════════════════════════════════════════
# Retry loop (any backend)
# ═══════════════════════════════════════════════════════════════════


@pytest.mark.django_db
class TestRunAtomic:
    def test_conflict_detection(self):
        assert is_conflict(OperationalError("deadlock detected"))
        assert is_conflict(OperationalError("database is locked"))
        assert not is_conflict(OperationalError("no such table: x"))
        assert not is_conflict(ValueError("deadlock"))

    def test_retries_then_succeeds(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("could not serialize access due to concurrent update")
            return "ok"

        assert run_atomic(flaky, label="test") == "ok"
        assert len(calls) == 3

    def test_gives_up_after_bounded_retries(self, settings):
        settings.POINTSMAN = {"CONFLICT_RETRIES": 2, "CONFLICT_BACKOFF_SECONDS": 0}
        calls = []

        def always_locked():
            calls.append(1)
            raise OperationalError("deadlock detected")

        with pytest.raises(ConcurrencyConflict) as exc_info:
            run_atomic(always_locked, label="test")
        assert len(calls) == 3
        assert exc_info.value.data == {"operation": "test", "attempts": 3}

    def test_business_errors_are_not_retried(self):
        calls = []

        def rejected():
            calls.append(1)
            raise InsufficientBalance(available=0, requested=1)

        with pytest.raises(InsufficientBalance):
            run_atomic(rejected)
        assert len(calls) == 1

    def test_conflicted_attempt_rolls_back(self, account):
        attempts = []
        original = LedgerEntry.objects.create

        def create_then_conflict(**kwargs):
            entry = original(**kwargs)
            if not attempts:
                attempts.append(1)
                raise OperationalError("deadlock detected")
            return entry

        with patch.object(LedgerEntry.objects, "create", side_effect=create_then_conflict):
            ledger.adjust(CLIENT, BRANCH, 10, "Retry")

        account.refresh_from_db()
        assert account.balance == 10
        assert account.entries.count() == 1


# ═══════════════════════════════════════════════════════════════════
# Real contention
# ═══════════════════════════════════════════════════════════════════


@needs_serialized_writers
@pytest.mark.django_db(transaction=True)
class TestContention:
    def test_only_one_of_two_redeems_succeeds(self, reward):
        reward.max_redemptions_per_client = 0
        reward.save()
        ClientAccount.objects.create(client_ref=CLIENT, branch_ref=BRANCH)
        ledger.adjust(CLIENT, BRANCH, 150, "Saldo")

        results = run_concurrently(
            lambda: redemption.redeem(CLIENT, reward.pk, BRANCH),
            lambda: redemption.redeem(CLIENT, reward.pk, BRANCH),
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientBalance)
        assert ledger.current_balance(CLIENT, BRANCH) == 50
        assert Redemption.objects.count() == 1
        assert ledger.check_consistency(CLIENT, BRANCH).consistent

    def test_global_cap_admits_exactly_one(self, cheap_reward):
        cheap_reward.max_total_redemptions = 1
        cheap_reward.save()
        for client in ("A", "B", "C"):
            ledger.open_account(client, BRANCH)
            ledger.adjust(client, BRANCH, 50, "Saldo")

        results = run_concurrently(
            *[lambda c=c: redemption.redeem(c, cheap_reward.pk, BRANCH) for c in ("A", "B", "C")]
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(r, RewardExhausted) for r in results if isinstance(r, Exception))
        cheap_reward.refresh_from_db()
        assert cheap_reward.total_redemptions == 1

    def test_same_order_delivered_twice(self, branch_config):
        results = run_concurrently(
            lambda: accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("500")),
            lambda: accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("500")),
        )

        assert not any(isinstance(r, Exception) for r in results)
        assert sorted(r.replayed for r in results) == [False, True]
        account = ClientAccount.objects.get(client_ref=CLIENT, branch_ref=BRANCH)
        assert account.balance == 5
        assert account.purchase_count == 1
