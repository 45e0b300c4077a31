"""Digital card models — rotating QR credentials and scan log."""

import uuid as uuid_lib
from datetime import timedelta

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class DigitalCard(models.Model):
    """
    Digital loyalty card of a client at a branch.

    ``rotation_sequence`` is the authoritative token generation: tokens
    carrying an older sequence are rejected even before they expire.
    """

    client_ref = models.CharField(_("cliente"), max_length=64, db_index=True)
    branch_ref = models.CharField(_("filial"), max_length=64, db_index=True)
    serial = models.UUIDField(_("série"), default=uuid_lib.uuid4, editable=False, unique=True)

    rotation_sequence = models.PositiveIntegerField(_("geração"), default=1)
    rotation_enabled = models.BooleanField(_("rotação ativa"), default=True)
    interval_days = models.PositiveIntegerField(_("intervalo de rotação (dias)"), default=30)
    last_rotation = models.DateTimeField(_("última rotação"), default=timezone.now)
    next_rotation = models.DateTimeField(_("próxima rotação"), blank=True, db_index=True)

    is_active = models.BooleanField(_("ativo"), default=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "pointsman_digital_card"
        verbose_name = _("cartão digital")
        verbose_name_plural = _("cartões digitais")
        constraints = [
            models.UniqueConstraint(
                fields=["client_ref", "branch_ref"],
                name="pointsman_unique_card",
            ),
        ]

    def __str__(self):
        return f"{self.client_ref}@{self.branch_ref} #{self.rotation_sequence}"

    def save(self, *args, **kwargs):
        if self.next_rotation is None:
            self.next_rotation = self.last_rotation + timedelta(days=self.interval_days)
        super().save(*args, **kwargs)

    def needs_rotation(self, now=None) -> bool:
        if not self.rotation_enabled:
            return False
        return (now or timezone.now()) >= self.next_rotation


class CardToken(models.Model):
    """
    Signed token issued for a card.

    Superseded on rotation, never deleted. The row is an audit trail;
    verification decides on the signed payload and the card's sequence.
    """

    card = models.ForeignKey(
        DigitalCard,
        on_delete=models.CASCADE,
        related_name="tokens",
        verbose_name=_("cartão"),
    )
    sequence = models.PositiveIntegerField(_("geração"))
    token = models.TextField(_("token"))
    issued_at = models.DateTimeField(_("emitido em"))
    expires_at = models.DateTimeField(_("expira em"))
    superseded_at = models.DateTimeField(_("substituído em"), null=True, blank=True)

    class Meta:
        db_table = "pointsman_card_token"
        verbose_name = _("token de cartão")
        verbose_name_plural = _("tokens de cartão")
        ordering = ["-issued_at"]
        indexes = [
            models.Index(fields=["card", "sequence"], name="pointsman_token_card_seq_idx"),
        ]

    def __str__(self):
        state = "superseded" if self.superseded_at else "current"
        return f"{self.card_id}#{self.sequence} ({state})"


class ScanLog(models.Model):
    """One successful card scan at a branch terminal."""

    card = models.ForeignKey(
        DigitalCard,
        on_delete=models.CASCADE,
        related_name="scans",
        verbose_name=_("cartão"),
    )
    client_ref = models.CharField(_("cliente"), max_length=64, db_index=True)
    branch_ref = models.CharField(_("filial"), max_length=64)
    terminal_ref = models.CharField(_("terminal"), max_length=64, blank=True)
    employee_ref = models.CharField(_("funcionário"), max_length=64, blank=True)
    balance_seen = models.IntegerField(_("saldo exibido"))
    eligible_count = models.PositiveIntegerField(_("recompensas elegíveis"), default=0)
    scanned_at = models.DateTimeField(_("escaneado em"), default=timezone.now, db_index=True)

    class Meta:
        db_table = "pointsman_scan_log"
        verbose_name = _("leitura de cartão")
        verbose_name_plural = _("leituras de cartão")
        ordering = ["-scanned_at"]

    def __str__(self):
        return f"{self.client_ref}@{self.branch_ref} {self.scanned_at:%Y-%m-%d %H:%M}"
