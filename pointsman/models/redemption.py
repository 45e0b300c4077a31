"""Redemption model — a reward exchanged for points, identified by a single-use code."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RedemptionStatus(models.TextChoices):
    """
    Redemption lifecycle.

    ISSUED -> USED     code consumed at point of sale
    ISSUED -> EXPIRED  code passed its expiry unused
    """

    ISSUED = "issued", _("Emitido")
    USED = "used", _("Utilizado")
    EXPIRED = "expired", _("Expirado")


class Redemption(models.Model):
    """
    Issued redemption code.

    Created in the same transaction as the ledger debit and the reward
    counter increment. Rejected requests never produce a row.
    """

    client_ref = models.CharField(_("cliente"), max_length=64, db_index=True)
    branch_ref = models.CharField(_("filial"), max_length=64, db_index=True)
    reward = models.ForeignKey(
        "pointsman.Reward",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("recompensa"),
    )
    ledger_entry = models.OneToOneField(
        "pointsman.LedgerEntry",
        on_delete=models.PROTECT,
        related_name="redemption",
        verbose_name=_("lançamento"),
    )

    code = models.CharField(_("código"), max_length=32, unique=True)
    points_spent = models.PositiveIntegerField(_("pontos utilizados"))
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.ISSUED,
        db_index=True,
    )

    redeemed_at = models.DateTimeField(_("resgatado em"), default=timezone.now)
    redeemed_by = models.CharField(_("resgatado por"), max_length=100, blank=True)
    expires_at = models.DateTimeField(_("expira em"), null=True, blank=True)
    used_at = models.DateTimeField(_("utilizado em"), null=True, blank=True)
    used_in_order = models.CharField(_("utilizado no pedido"), max_length=100, blank=True)

    class Meta:
        db_table = "pointsman_redemption"
        verbose_name = _("resgate")
        verbose_name_plural = _("resgates")
        ordering = ["-redeemed_at"]
        indexes = [
            models.Index(fields=["client_ref", "reward"], name="pointsman_redeem_client_idx"),
            models.Index(fields=["status", "expires_at"], name="pointsman_redeem_expiry_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.get_status_display()})"

    @property
    def is_used(self) -> bool:
        return self.status == RedemptionStatus.USED

    def is_overdue(self, now=None) -> bool:
        """Issued code past its expiry."""
        if self.status != RedemptionStatus.ISSUED or self.expires_at is None:
            return False
        return (now or timezone.now()) >= self.expires_at
