"""
Ledger service tests.

Covers:
- append: atomic batches, non-negative balance, cached balance
- adjust / expire_points
- history pagination and filters
- entry immutability
- consistency check and management command
"""

from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from pointsman.exceptions import AccountNotFound, InsufficientBalance, ValidationError
from pointsman.models import ClientAccount, Direction, ImmutableEntryError, LedgerEntry, ReasonCode
from pointsman.services import ledger
from pointsman.services.ledger import EntryDraft

pytestmark = pytest.mark.django_db

BRANCH = "BR-01"
CLIENT = "CLI-001"


def ledger_sum(account) -> int:
    return sum(account.entries.values_list("delta", flat=True))


# ═══════════════════════════════════════════════════════════════════
# append
# ═══════════════════════════════════════════════════════════════════


class TestAppend:
    def test_credit_updates_cached_balance(self, account):
        balance = ledger.append(CLIENT, BRANCH, [EntryDraft(ReasonCode.CLIENT_REGISTRATION, 10)])
        account.refresh_from_db()
        assert balance == 10
        assert account.balance == 10
        assert account.lifetime_points == 10

    def test_entries_record_running_balance(self, account):
        ledger.append(
            CLIENT,
            BRANCH,
            [
                EntryDraft(ReasonCode.PURCHASE_AMOUNT, 3, order_ref="ORD-1"),
                EntryDraft(ReasonCode.FIRST_PURCHASE, 5, order_ref="ORD-1"),
            ],
        )
        entries = list(account.entries.order_by("id"))
        assert [e.balance_after for e in entries] == [3, 8]
        assert all(e.direction == Direction.EARNED for e in entries)

    def test_debit_beyond_balance_writes_nothing(self, funded_account):
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.append(CLIENT, BRANCH, [EntryDraft(ReasonCode.REDEMPTION, -101)])

        assert exc_info.value.data["available"] == 100
        funded_account.refresh_from_db()
        assert funded_account.balance == 100
        assert funded_account.entries.count() == 1

    def test_batch_is_all_or_nothing(self, funded_account):
        with pytest.raises(InsufficientBalance):
            ledger.append(
                CLIENT,
                BRANCH,
                [
                    EntryDraft(ReasonCode.MANUAL_ADJUSTMENT, 5),
                    EntryDraft(ReasonCode.REDEMPTION, -200),
                ],
            )
        assert funded_account.entries.count() == 1

    def test_missing_account(self, db):
        with pytest.raises(AccountNotFound):
            ledger.append("NOPE", BRANCH, [EntryDraft(ReasonCode.MANUAL_ADJUSTMENT, 5)])

    def test_earned_entry_cannot_be_debit(self, account):
        with pytest.raises(ValidationError):
            ledger.append(CLIENT, BRANCH, [EntryDraft(ReasonCode.PURCHASE_AMOUNT, -5)])

    def test_zero_delta_rejected(self, account):
        with pytest.raises(ValidationError):
            ledger.append(CLIENT, BRANCH, [EntryDraft(ReasonCode.MANUAL_ADJUSTMENT, 0)])


# ═══════════════════════════════════════════════════════════════════
# adjust / expire
# ═══════════════════════════════════════════════════════════════════


class TestAdjustAndExpire:
    def test_negative_adjustment(self, funded_account):
        entry = ledger.adjust(CLIENT, BRANCH, -30, "Correção", created_by="ops")
        assert entry.direction == Direction.ADJUSTED
        assert entry.amount == 30
        assert entry.delta == -30
        assert ledger.current_balance(CLIENT, BRANCH) == 70

    def test_adjustment_cannot_go_negative(self, funded_account):
        with pytest.raises(InsufficientBalance):
            ledger.adjust(CLIENT, BRANCH, -500, "Correção")

    def test_adjustment_rejects_non_integer(self, account):
        with pytest.raises(ValidationError):
            ledger.adjust(CLIENT, BRANCH, 1.5, "Correção")

    def test_expire_points(self, funded_account):
        entry = ledger.expire_points(CLIENT, BRANCH, 40)
        assert entry.direction == Direction.EXPIRED
        assert entry.reason_code == ReasonCode.EXPIRATION
        assert ledger.current_balance(CLIENT, BRANCH) == 60

    def test_negative_adjustment_does_not_reduce_lifetime(self, funded_account):
        ledger.adjust(CLIENT, BRANCH, -50, "Correção")
        funded_account.refresh_from_db()
        assert funded_account.lifetime_points == 100


# ═══════════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════════


class TestReads:
    def test_balance_without_account_is_zero(self, db):
        assert ledger.current_balance("GHOST", BRANCH) == 0

    def test_balance_is_branch_scoped(self, funded_account):
        assert ledger.current_balance(CLIENT, "BR-02") == 0

    def test_history_newest_first_and_paginated(self, account):
        for i in range(5):
            ledger.adjust(CLIENT, BRANCH, i + 1, f"Ajuste {i}")

        page = ledger.history(CLIENT, BRANCH, page=1, page_size=2)
        assert page.total == 5
        assert page.pages == 3
        assert page.has_next
        assert [e.delta for e in page.entries] == [5, 4]

        last = ledger.history(CLIENT, BRANCH, page=3, page_size=2)
        assert [e.delta for e in last.entries] == [1]
        assert not last.has_next

    def test_history_filters(self, funded_account):
        ledger.expire_points(CLIENT, BRANCH, 10)
        page = ledger.history(CLIENT, BRANCH, direction=Direction.EXPIRED)
        assert [e.reason_code for e in page.entries] == [ReasonCode.EXPIRATION]

    def test_history_rejects_bad_page(self, account):
        with pytest.raises(ValidationError):
            ledger.history(CLIENT, BRANCH, page=0)
        with pytest.raises(ValidationError):
            ledger.history(CLIENT, BRANCH, page_size=1000)

    def test_history_rejects_unknown_direction(self, account):
        with pytest.raises(ValidationError):
            ledger.history(CLIENT, BRANCH, direction="stolen")


# ═══════════════════════════════════════════════════════════════════
# Immutability and consistency
# ═══════════════════════════════════════════════════════════════════


class TestImmutability:
    def test_entry_cannot_be_updated(self, funded_account):
        entry = funded_account.entries.get()
        entry.description = "tampered"
        with pytest.raises(ImmutableEntryError):
            entry.save()

    def test_entry_cannot_be_deleted(self, funded_account):
        with pytest.raises(ImmutableEntryError):
            funded_account.entries.get().delete()


class TestConsistency:
    def test_ledger_sum_equals_balance(self, funded_account):
        ledger.adjust(CLIENT, BRANCH, -15, "Correção")
        ledger.expire_points(CLIENT, BRANCH, 5)
        report = ledger.check_consistency(CLIENT, BRANCH)
        assert report.consistent
        assert report.ledger_balance == 80
        funded_account.refresh_from_db()
        assert ledger_sum(funded_account) == funded_account.balance

    def test_detects_tampered_balance(self, funded_account):
        ClientAccount.objects.filter(pk=funded_account.pk).update(balance=999)
        report = ledger.check_consistency(CLIENT, BRANCH)
        assert not report.consistent
        assert report.cached_balance == 999
        assert report.ledger_balance == 100

    def test_missing_account(self, db):
        with pytest.raises(AccountNotFound):
            ledger.check_consistency("GHOST", BRANCH)

    def test_check_ledger_command_ok(self, funded_account):
        out = StringIO()
        call_command("pointsman_check_ledger", stdout=out)
        assert "Checked 1 accounts" in out.getvalue()

    def test_check_ledger_command_fails_on_mismatch(self, funded_account):
        ClientAccount.objects.filter(pk=funded_account.pk).update(balance=1)
        with pytest.raises(CommandError):
            call_command("pointsman_check_ledger", stdout=StringIO(), stderr=StringIO())

    def test_balance_check_constraint(self, account):
        from django.db import IntegrityError

        with pytest.raises(IntegrityError):
            ClientAccount.objects.filter(pk=account.pk).update(balance=-1)

    def test_entry_count_matches_operations(self, funded_account):
        ledger.adjust(CLIENT, BRANCH, 1, "a")
        ledger.adjust(CLIENT, BRANCH, -1, "b")
        assert LedgerEntry.objects.filter(account=funded_account).count() == 3
