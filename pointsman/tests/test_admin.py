"""Admin registration and actions."""

from unittest.mock import patch

import pytest
from django.contrib import admin, messages
from django.core.exceptions import PermissionDenied

from pointsman.models import ClientAccount, DigitalCard, LedgerEntry, Redemption, Reward, RulesConfig, ScanLog
from pointsman.services import cards

pytestmark = pytest.mark.django_db

BRANCH = "BR-01"
CLIENT = "CLI-001"


class TestRegistration:
    @pytest.mark.parametrize(
        "model",
        [ClientAccount, LedgerEntry, RulesConfig, Reward, Redemption, DigitalCard, ScanLog],
    )
    def test_registered(self, model):
        assert admin.site.is_registered(model)

    def test_ledger_entries_are_read_only(self, rf, funded_account):
        model_admin = admin.site._registry[LedgerEntry]
        request = rf.get("/")
        assert not model_admin.has_add_permission(request)
        assert not model_admin.has_delete_permission(request, funded_account.entries.get())
        assert "delta" in model_admin.get_readonly_fields(request)

    @pytest.mark.parametrize("model", [LedgerEntry, Redemption, ScanLog])
    def test_history_rows_cannot_be_saved(self, rf, model):
        model_admin = admin.site._registry[model]
        assert not model_admin.has_change_permission(rf.get("/"))

    def test_ledger_change_form_rejects_save(self, rf, admin_user, funded_account):
        entry = funded_account.entries.get()
        model_admin = admin.site._registry[LedgerEntry]
        request = rf.post("/", {"delta": 1})
        request.user = admin_user
        request._dont_enforce_csrf_checks = True

        assert model_admin.has_view_permission(request, entry)
        with pytest.raises(PermissionDenied):
            model_admin.change_view(request, str(entry.pk))
        entry.refresh_from_db()
        assert entry.delta == 100


class TestActions:
    def test_check_ledger_reports_mismatch(self, rf, funded_account):
        ClientAccount.objects.filter(pk=funded_account.pk).update(balance=7)
        model_admin = admin.site._registry[ClientAccount]

        with patch.object(model_admin, "message_user") as message_user:
            model_admin.check_ledger(rf.get("/"), ClientAccount.objects.all())

        args = message_user.call_args.args
        assert args[2] == messages.ERROR
        assert CLIENT in args[1]

    def test_check_ledger_ok(self, rf, funded_account):
        model_admin = admin.site._registry[ClientAccount]
        with patch.object(model_admin, "message_user") as message_user:
            model_admin.check_ledger(rf.get("/"), ClientAccount.objects.all())
        assert message_user.call_args.args[2] == messages.SUCCESS

    def test_rotate_now(self, rf, db):
        cards.issue_token(CLIENT, BRANCH)
        model_admin = admin.site._registry[DigitalCard]
        with patch.object(model_admin, "message_user"):
            model_admin.rotate_now(rf.get("/"), DigitalCard.objects.all())
        assert DigitalCard.objects.get().rotation_sequence == 2
