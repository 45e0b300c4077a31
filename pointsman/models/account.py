"""ClientAccount model — one points account per (client, branch).

Data architecture:
    ClientAccount.balance
        Live balance, the only value read by the redemption path. Changed
        exclusively inside the ledger transaction that appends the matching
        LedgerEntry rows, under a row lock on this account.

    LedgerEntry
        Append-only history. The signed sum of entries equals ``balance``;
        the sum is the consistency check, never the live source.

    purchase_count / last_visit_date / visits_on_last_date
        Durable rule counters, mutated in the same transaction as the entries
        that depend on them.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class ClientAccount(models.Model):
    """
    Branch-scoped loyalty account.

    Client and branch identities come from the external directory and are
    stored as opaque refs.
    """

    client_ref = models.CharField(
        _("cliente"),
        max_length=64,
        db_index=True,
        help_text=_("Identificador do cliente no diretório externo"),
    )
    branch_ref = models.CharField(
        _("filial"),
        max_length=64,
        db_index=True,
        help_text=_("Identificador da filial"),
    )

    balance = models.IntegerField(
        _("saldo de pontos"),
        default=0,
        help_text=_("Pontos disponíveis para resgate"),
    )
    lifetime_points = models.IntegerField(
        _("pontos acumulados"),
        default=0,
        help_text=_("Total de pontos já acumulados (nunca decresce)"),
    )

    # One-shot bonuses
    first_purchase_completed = models.BooleanField(_("primeira compra concluída"), default=False)
    registration_bonus_granted = models.BooleanField(_("bônus de cadastro concedido"), default=False)

    # Rule counters
    purchase_count = models.PositiveIntegerField(
        _("compras"),
        default=0,
        help_text=_("Pedidos distintos processados (monotônico)"),
    )
    last_visit_date = models.DateField(_("última visita"), null=True, blank=True)
    visits_on_last_date = models.PositiveIntegerField(_("visitas no dia"), default=0)

    is_active = models.BooleanField(_("ativo"), default=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "pointsman_client_account"
        verbose_name = _("conta de pontos")
        verbose_name_plural = _("contas de pontos")
        constraints = [
            models.UniqueConstraint(
                fields=["client_ref", "branch_ref"],
                name="pointsman_unique_account",
            ),
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="pointsman_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.client_ref}@{self.branch_ref}: {self.balance}pts"
