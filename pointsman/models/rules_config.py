"""RulesConfig model — per-branch accumulation rules."""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from pointsman.rules import (
    AccumulatedPurchasesRule,
    AmountThresholdRule,
    BranchVisitRule,
    FirstPurchaseRule,
    RegistrationRule,
    RuleSet,
)


class RulesConfig(models.Model):
    """
    Accumulation rules for one branch.

    Each rule has its own enabled flag and parameters. Only one configuration
    per branch may be active at a time. Toggling a rule affects future events
    only; stored ledger entries are never recomputed.
    """

    branch_ref = models.CharField(_("filial"), max_length=64, db_index=True)

    # Points per purchase amount
    amount_rule_enabled = models.BooleanField(_("pontos por valor"), default=True)
    amount_rule_amount = models.DecimalField(
        _("valor base"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("100"),
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    amount_rule_points = models.PositiveIntegerField(_("pontos por valor base"), default=1)

    # Points per accumulated purchases
    accumulated_rule_enabled = models.BooleanField(_("pontos por compras acumuladas"), default=False)
    accumulated_rule_purchases_required = models.PositiveIntegerField(
        _("compras necessárias"),
        default=5,
        validators=[MinValueValidator(1)],
    )
    accumulated_rule_points = models.PositiveIntegerField(_("pontos por meta de compras"), default=10)

    # One-shot bonuses
    first_purchase_enabled = models.BooleanField(_("bônus de primeira compra"), default=True)
    first_purchase_points = models.PositiveIntegerField(_("pontos de primeira compra"), default=5)
    registration_enabled = models.BooleanField(_("bônus de cadastro"), default=True)
    registration_points = models.PositiveIntegerField(_("pontos de cadastro"), default=10)

    # Branch visits
    visit_enabled = models.BooleanField(_("pontos por visita"), default=False)
    visit_points = models.PositiveIntegerField(_("pontos por visita"), default=2)
    visit_max_per_day = models.PositiveIntegerField(
        _("visitas por dia"),
        default=1,
        validators=[MinValueValidator(1)],
    )

    is_active = models.BooleanField(_("ativa"), default=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "pointsman_rules_config"
        verbose_name = _("configuração de pontos")
        verbose_name_plural = _("configurações de pontos")
        constraints = [
            models.UniqueConstraint(
                fields=["branch_ref"],
                condition=models.Q(is_active=True),
                name="pointsman_one_active_config_per_branch",
            ),
        ]

    def __str__(self):
        state = "ativa" if self.is_active else "inativa"
        return f"{self.branch_ref} ({state})"

    def rules(self) -> RuleSet:
        """Typed rule blocks for evaluation."""
        return RuleSet(
            amount_threshold=AmountThresholdRule(
                enabled=self.amount_rule_enabled,
                amount=Decimal(self.amount_rule_amount),
                points=self.amount_rule_points,
            ),
            accumulated_purchases=AccumulatedPurchasesRule(
                enabled=self.accumulated_rule_enabled,
                purchases_required=self.accumulated_rule_purchases_required,
                points=self.accumulated_rule_points,
            ),
            first_purchase=FirstPurchaseRule(
                enabled=self.first_purchase_enabled,
                points=self.first_purchase_points,
            ),
            registration=RegistrationRule(
                enabled=self.registration_enabled,
                points=self.registration_points,
            ),
            branch_visit=BranchVisitRule(
                enabled=self.visit_enabled,
                points=self.visit_points,
                max_visits_per_day=self.visit_max_per_day,
            ),
        )
