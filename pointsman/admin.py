"""Pointsman admin.

Balances, ledger entries and redemptions are read-only here: every change
must go through the services so the ledger stays consistent.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from pointsman.models import (
    CardToken,
    ClientAccount,
    DigitalCard,
    LedgerEntry,
    Redemption,
    Reward,
    RulesConfig,
    ScanLog,
)


# ===========================================
# Ledger
# ===========================================


class LedgerEntryInline(admin.TabularInline):
    model = LedgerEntry
    extra = 0
    fields = ["created_at", "direction", "reason_code", "delta", "balance_after", "order_ref", "description"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ClientAccount)
class ClientAccountAdmin(admin.ModelAdmin):
    list_display = [
        "client_ref",
        "branch_ref",
        "balance",
        "lifetime_points",
        "purchase_count",
        "is_active",
        "created_at",
    ]
    list_filter = ["is_active", "branch_ref"]
    search_fields = ["client_ref", "branch_ref"]
    readonly_fields = [
        "balance",
        "lifetime_points",
        "first_purchase_completed",
        "registration_bonus_granted",
        "purchase_count",
        "last_visit_date",
        "visits_on_last_date",
        "created_at",
        "updated_at",
    ]
    inlines = [LedgerEntryInline]
    actions = ["check_ledger"]

    @admin.action(description="Conferir saldo com o histórico")
    def check_ledger(self, request, queryset):
        from pointsman.services.ledger import check_consistency

        mismatched = [
            str(account)
            for account in queryset
            if not check_consistency(account.client_ref, account.branch_ref).consistent
        ]
        if mismatched:
            self.message_user(request, f"Divergências: {', '.join(mismatched)}", messages.ERROR)
        else:
            self.message_user(request, "Todos os saldos conferem.", messages.SUCCESS)


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "account",
        "direction",
        "reason_code",
        "delta_display",
        "balance_after",
        "order_ref",
    ]
    list_filter = ["direction", "reason_code"]
    search_fields = ["account__client_ref", "account__branch_ref", "order_ref", "description"]
    date_hierarchy = "created_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def delta_display(self, obj):
        if obj.delta > 0:
            return format_html('<span style="color:green">+{}</span>', obj.delta)
        return format_html('<span style="color:red">{}</span>', obj.delta)

    delta_display.short_description = "Pontos"


# ===========================================
# Rules and catalog
# ===========================================


@admin.register(RulesConfig)
class RulesConfigAdmin(admin.ModelAdmin):
    list_display = [
        "branch_ref",
        "amount_rule_enabled",
        "accumulated_rule_enabled",
        "first_purchase_enabled",
        "registration_enabled",
        "visit_enabled",
        "is_active",
        "updated_at",
    ]
    list_filter = ["is_active"]
    search_fields = ["branch_ref"]
    fieldsets = [
        (None, {"fields": ["branch_ref", "is_active"]}),
        ("Valor da compra", {"fields": ["amount_rule_enabled", "amount_rule_amount", "amount_rule_points"]}),
        (
            "Compras acumuladas",
            {"fields": ["accumulated_rule_enabled", "accumulated_rule_purchases_required", "accumulated_rule_points"]},
        ),
        ("Primeira compra", {"fields": ["first_purchase_enabled", "first_purchase_points"]}),
        ("Cadastro", {"fields": ["registration_enabled", "registration_points"]}),
        ("Visitas", {"fields": ["visit_enabled", "visit_points", "visit_max_per_day"]}),
    ]


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "points_required",
        "reward_type",
        "scope",
        "usage",
        "valid_until",
        "is_active",
    ]
    list_filter = ["reward_type", "is_global", "is_active"]
    search_fields = ["name", "branch_ref", "company_ref", "product_ref"]
    readonly_fields = ["total_redemptions", "created_at", "updated_at"]

    def scope(self, obj):
        return f"global ({obj.company_ref})" if obj.is_global else obj.branch_ref

    scope.short_description = "Escopo"

    def usage(self, obj):
        if obj.max_total_redemptions:
            return f"{obj.total_redemptions}/{obj.max_total_redemptions}"
        return obj.total_redemptions

    usage.short_description = "Resgates"


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "client_ref",
        "branch_ref",
        "reward",
        "points_spent",
        "status",
        "redeemed_at",
        "used_in_order",
    ]
    list_filter = ["status", "branch_ref"]
    search_fields = ["code", "client_ref", "used_in_order"]
    raw_id_fields = ["reward", "ledger_entry"]
    date_hierarchy = "redeemed_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Cards
# ===========================================


class CardTokenInline(admin.TabularInline):
    model = CardToken
    extra = 0
    fields = ["sequence", "issued_at", "expires_at", "superseded_at"]
    readonly_fields = fields
    ordering = ["-issued_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(DigitalCard)
class DigitalCardAdmin(admin.ModelAdmin):
    list_display = [
        "client_ref",
        "branch_ref",
        "rotation_sequence",
        "rotation_enabled",
        "next_rotation",
        "is_active",
    ]
    list_filter = ["is_active", "rotation_enabled"]
    search_fields = ["client_ref", "branch_ref", "serial"]
    readonly_fields = ["serial", "rotation_sequence", "last_rotation", "created_at", "updated_at"]
    inlines = [CardTokenInline]
    actions = ["rotate_now"]

    @admin.action(description="Rotacionar agora")
    def rotate_now(self, request, queryset):
        from pointsman.services.cards import rotate_card

        for card in queryset:
            rotate_card(card.client_ref, card.branch_ref)
        self.message_user(request, f"{queryset.count()} cartão(ões) rotacionado(s).", messages.SUCCESS)


@admin.register(ScanLog)
class ScanLogAdmin(admin.ModelAdmin):
    list_display = ["scanned_at", "client_ref", "branch_ref", "terminal_ref", "employee_ref", "balance_seen"]
    list_filter = ["branch_ref"]
    search_fields = ["client_ref", "terminal_ref", "employee_ref"]
    date_hierarchy = "scanned_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
