"""
ProcessedEvent model for accumulation idempotency.

Stores one nonce per applied purchase event so a re-delivered order is
recognised inside the same transaction that would otherwise award it again.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class ProcessedEvent(models.Model):
    """
    Marker for an accumulation event that has already been applied.

    Nonces are built by ``purchase_nonce()``; the unique constraint is what
    makes concurrent deliveries of the same order collapse into one.
    """

    nonce = models.CharField(verbose_name=_("nonce"), max_length=255, unique=True, db_index=True)
    kind = models.CharField(verbose_name=_("tipo"), max_length=50, db_index=True)
    processed_at = models.DateTimeField(verbose_name=_("processado em"), auto_now_add=True)

    class Meta:
        db_table = "pointsman_processed_event"
        verbose_name = _("evento processado")
        verbose_name_plural = _("eventos processados")
        indexes = [
            models.Index(fields=["kind", "processed_at"], name="pointsman_event_kind_idx"),
        ]

    def __str__(self):
        return f"{self.kind}:{self.nonce[:40]}"

    @staticmethod
    def purchase_nonce(client_ref: str, branch_ref: str, order_ref: str) -> str:
        return f"purchase:{branch_ref}:{client_ref}:{order_ref}"
