"""Ledger models — immutable point transactions."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Direction(models.TextChoices):
    """Which way an entry moves the balance."""

    EARNED = "earned", _("Acúmulo")
    REDEEMED = "redeemed", _("Resgate")
    EXPIRED = "expired", _("Expiração")
    ADJUSTED = "adjusted", _("Ajuste")


class ReasonCode(models.TextChoices):
    """Why an entry exists."""

    PURCHASE_AMOUNT = "purchase_amount", _("Valor da compra")
    ACCUMULATED_PURCHASES = "accumulated_purchases", _("Compras acumuladas")
    FIRST_PURCHASE = "first_purchase", _("Primeira compra")
    CLIENT_REGISTRATION = "client_registration", _("Cadastro")
    BRANCH_VISIT = "branch_visit", _("Visita à filial")
    REDEMPTION = "redemption", _("Resgate de recompensa")
    MANUAL_ADJUSTMENT = "manual_adjustment", _("Ajuste manual")
    EXPIRATION = "expiration", _("Expiração")


# Reasons that are awarded at most once per (account, order)
PURCHASE_REASONS = (
    ReasonCode.PURCHASE_AMOUNT,
    ReasonCode.ACCUMULATED_PURCHASES,
    ReasonCode.FIRST_PURCHASE,
)


class ImmutableEntryError(Exception):
    """Raised on attempts to change or delete a stored ledger entry."""


class LedgerEntry(models.Model):
    """
    Immutable record of a point change.

    Entries are append-only — never modified or deleted. Corrections are new
    ``adjusted`` entries. ``amount`` is always positive; ``delta`` is the
    signed change applied to the account balance.
    """

    account = models.ForeignKey(
        "pointsman.ClientAccount",
        on_delete=models.PROTECT,
        related_name="entries",
        verbose_name=_("conta"),
    )

    direction = models.CharField(
        _("direção"),
        max_length=20,
        choices=Direction.choices,
    )
    amount = models.PositiveIntegerField(_("pontos"))
    delta = models.IntegerField(
        _("variação"),
        help_text=_("Positivo para crédito, negativo para débito"),
    )
    balance_after = models.IntegerField(
        _("saldo após"),
        help_text=_("Saldo de pontos após esta transação"),
    )
    reason_code = models.CharField(
        _("motivo"),
        max_length=32,
        choices=ReasonCode.choices,
        db_index=True,
    )

    order_ref = models.CharField(
        _("pedido"),
        max_length=100,
        blank=True,
        help_text=_("ID externo do pedido"),
    )
    description = models.CharField(_("descrição"), max_length=200, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True, db_index=True)
    created_by = models.CharField(_("criado por"), max_length=100, blank=True)

    class Meta:
        db_table = "pointsman_ledger_entry"
        verbose_name = _("lançamento de pontos")
        verbose_name_plural = _("lançamentos de pontos")
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="pointsman_entry_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["account", "order_ref", "reason_code"],
                condition=models.Q(reason_code__in=[r.value for r in PURCHASE_REASONS])
                & ~models.Q(order_ref=""),
                name="pointsman_unique_purchase_award",
            ),
        ]
        indexes = [
            models.Index(fields=["account", "-created_at"], name="pointsman_entry_account_idx"),
            models.Index(fields=["account", "order_ref"], name="pointsman_entry_order_idx"),
        ]

    def __str__(self):
        sign = "+" if self.delta > 0 else ""
        return f"{sign}{self.delta}pts — {self.get_reason_code_display()}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ImmutableEntryError("Ledger entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableEntryError("Ledger entries are append-only")
