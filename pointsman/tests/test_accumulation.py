"""
Accumulation engine tests.

Covers purchase/registration/visit events, idempotency per order, bonus
stacking and the points_earned signal.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from pointsman.exceptions import StorageUnavailable, ValidationError
from pointsman.models import ClientAccount, LedgerEntry, ProcessedEvent, ReasonCode
from pointsman.protocols import BranchVisited, ClientRegistered, PurchaseCompleted
from pointsman.service import PointsService
from pointsman.services import accumulation
from pointsman.signals import points_earned

pytestmark = pytest.mark.django_db

BRANCH = "BR-01"
CLIENT = "CLI-001"


def account_of(client_ref=CLIENT, branch_ref=BRANCH) -> ClientAccount:
    return ClientAccount.objects.get(client_ref=client_ref, branch_ref=branch_ref)


# ═══════════════════════════════════════════════════════════════════
# Purchases
# ═══════════════════════════════════════════════════════════════════


class TestPurchase:
    def test_amount_rule_awards_floor(self, branch_config):
        delta = PointsService.apply_purchase_event(CLIENT, BRANCH, "ORD-1", Decimal("250"))
        assert delta.points == 2
        assert delta.new_balance == 2
        assert not delta.replayed
        [entry] = delta.entries
        assert entry.reason_code == ReasonCode.PURCHASE_AMOUNT
        assert entry.order_ref == "ORD-1"

    def test_opens_account_lazily(self, branch_config):
        assert not ClientAccount.objects.exists()
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", "100")
        assert account_of().balance == 1

    def test_below_threshold_counts_purchase_only(self, branch_config):
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("99"))
        assert delta.entries == []
        account = account_of()
        assert account.purchase_count == 1
        assert account.balance == 0

    def test_no_active_config_still_counts(self, db):
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("500"))
        assert delta.entries == []
        assert account_of().purchase_count == 1

    def test_same_order_twice_is_idempotent(self, branch_config):
        first = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("250"))
        second = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("250"))

        assert second.replayed
        assert [e.pk for e in second.entries] == [e.pk for e in first.entries]
        assert second.new_balance == first.new_balance
        account = account_of()
        assert account.purchase_count == 1
        assert account.entries.count() == 1
        assert ProcessedEvent.objects.count() == 1

    def test_same_order_at_other_branch_is_distinct(self, branch_config):
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("250"))
        delta = accumulation.apply_purchase(CLIENT, "BR-02", "ORD-1", Decimal("250"))
        assert not delta.replayed

    def test_rejects_negative_amount(self, branch_config):
        with pytest.raises(ValidationError):
            accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("-1"))

    def test_rejects_non_numeric_amount(self, branch_config):
        with pytest.raises(ValidationError):
            accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", "lots")

    def test_rejects_missing_order(self, branch_config):
        with pytest.raises(ValidationError):
            accumulation.apply_purchase(CLIENT, BRANCH, "  ", Decimal("100"))

    def test_toggling_rule_does_not_rewrite_history(self, branch_config):
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("300"))
        branch_config.amount_rule_enabled = False
        branch_config.save()
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-2", Decimal("300"))

        account = account_of()
        assert account.balance == 3
        assert account.entries.count() == 1


# ═══════════════════════════════════════════════════════════════════
# Bonus stacking
# ═══════════════════════════════════════════════════════════════════


class TestBonusStacking:
    def test_first_purchase_stacks_with_amount(self, full_config):
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("200"), is_first=True)
        assert [e.reason_code for e in delta.entries] == [
            ReasonCode.PURCHASE_AMOUNT,
            ReasonCode.FIRST_PURCHASE,
        ]
        assert delta.points == 7

    def test_first_purchase_bonus_only_once(self, full_config):
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("0"), is_first=True)
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-2", Decimal("0"), is_first=True)
        assert delta.entries == []
        assert account_of().first_purchase_completed

    def test_first_purchase_claim_after_other_orders(self, full_config):
        accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("0"))
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-2", Decimal("0"), is_first=True)
        assert delta.entries == []

    def test_accumulated_bonus_on_every_third_order(self, full_config):
        rewarded = []
        for n in range(1, 7):
            delta = accumulation.apply_purchase(CLIENT, BRANCH, f"ORD-{n}", Decimal("0"))
            if any(e.reason_code == ReasonCode.ACCUMULATED_PURCHASES for e in delta.entries):
                rewarded.append(n)
        assert rewarded == [3, 6]
        assert account_of().balance == 20

    def test_all_three_on_one_order(self, full_config):
        full_config.accumulated_rule_purchases_required = 1
        full_config.save()
        delta = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("100"), is_first=True)
        assert [e.reason_code for e in delta.entries] == [
            ReasonCode.PURCHASE_AMOUNT,
            ReasonCode.ACCUMULATED_PURCHASES,
            ReasonCode.FIRST_PURCHASE,
        ]
        assert [e.balance_after for e in delta.entries] == [1, 11, 16]

    def test_replay_returns_all_stacked_entries(self, full_config):
        first = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("200"), is_first=True)
        again = accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("200"), is_first=True)
        assert again.replayed
        assert again.points == first.points == 7


# ═══════════════════════════════════════════════════════════════════
# Registration and visits
# ═══════════════════════════════════════════════════════════════════


class TestRegistration:
    def test_bonus_granted_once(self, full_config):
        first = PointsService.apply_registration_event(CLIENT, BRANCH)
        second = PointsService.apply_registration_event(CLIENT, BRANCH)

        assert first.points == 10
        assert second.entries == []
        assert second.replayed
        assert account_of().balance == 10

    def test_disabled_rule_opens_account_only(self, branch_config):
        delta = accumulation.apply_registration(CLIENT, BRANCH)
        assert delta.entries == []
        account = account_of()
        assert account.balance == 0
        assert not account.registration_bonus_granted


class TestVisits:
    def test_daily_cap(self, full_config):
        day = date(2026, 5, 4)
        first = PointsService.apply_visit_event(CLIENT, BRANCH, day)
        second = PointsService.apply_visit_event(CLIENT, BRANCH, day)
        assert first.points == 2
        assert second.entries == []

    def test_next_day_awards_again(self, full_config):
        accumulation.apply_visit(CLIENT, BRANCH, date(2026, 5, 4))
        delta = accumulation.apply_visit(CLIENT, BRANCH, date(2026, 5, 5))
        assert delta.points == 2
        account = account_of()
        assert account.last_visit_date == date(2026, 5, 5)
        assert account.visits_on_last_date == 1

    def test_higher_cap(self, full_config):
        full_config.visit_max_per_day = 2
        full_config.save()
        day = date(2026, 5, 4)
        points = [accumulation.apply_visit(CLIENT, BRANCH, day).points for _ in range(3)]
        assert points == [2, 2, 0]

    def test_stale_visit_awards_nothing(self, full_config):
        accumulation.apply_visit(CLIENT, BRANCH, date(2026, 5, 4))
        delta = accumulation.apply_visit(CLIENT, BRANCH, date(2026, 5, 1))
        assert delta.entries == []
        assert account_of().last_visit_date == date(2026, 5, 4)

    def test_disabled_rule_is_noop(self, branch_config):
        delta = accumulation.apply_visit(CLIENT, BRANCH, date(2026, 5, 4))
        assert delta.entries == []
        assert not ClientAccount.objects.exists()

    def test_accepts_datetime(self, full_config):
        delta = accumulation.apply_visit(CLIENT, BRANCH, datetime(2026, 5, 4, 15, 30))
        assert delta.points == 2

    def test_rejects_non_date(self, full_config):
        with pytest.raises(ValidationError):
            accumulation.apply_visit(CLIENT, BRANCH, "2026-05-04")


# ═══════════════════════════════════════════════════════════════════
# Dispatch, signals, failures
# ═══════════════════════════════════════════════════════════════════


class TestApplyEvent:
    def test_dispatches_each_event_type(self, full_config):
        assert accumulation.apply_event(CLIENT, BRANCH, ClientRegistered()).points == 10
        assert accumulation.apply_event(CLIENT, BRANCH, PurchaseCompleted("ORD-1", Decimal("100"))).points == 1
        assert accumulation.apply_event(CLIENT, BRANCH, BranchVisited(date(2026, 5, 4))).points == 2
        assert account_of().balance == 13

    def test_unknown_event(self, full_config):
        with pytest.raises(ValidationError):
            accumulation.apply_event(CLIENT, BRANCH, object())


class TestPointsEarnedSignal:
    def test_sent_after_commit(self, branch_config, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        points_earned.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("300"))
        finally:
            points_earned.disconnect(handler)

        assert len(received) == 1
        assert received[0]["new_balance"] == 3
        assert len(received[0]["entries"]) == 1

    def test_not_sent_for_empty_delta(self, branch_config, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("10"))
        assert callbacks == []


class TestFailureAtomicity:
    def test_storage_failure_leaves_nothing(self, full_config):
        from django.db import DatabaseError

        with patch.object(LedgerEntry.objects, "create", side_effect=DatabaseError("disk I/O error")):
            with pytest.raises(StorageUnavailable):
                accumulation.apply_purchase(CLIENT, BRANCH, "ORD-1", Decimal("300"), is_first=True)

        assert not LedgerEntry.objects.exists()
        assert not ProcessedEvent.objects.exists()
        assert not ClientAccount.objects.exists()
