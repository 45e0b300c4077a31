"""Reward model — redeemable catalog entries.

A reward is a tagged variant on ``reward_type``:

    discount  -> is_percentage + reward_value
    product   -> product_ref + product_quantity
    service   -> reward_value (informative)
    other     -> reward_value (informative)

``Reward.details`` returns the typed variant; callers should branch on it
instead of reading the flat columns.
"""

from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RewardType(models.TextChoices):
    DISCOUNT = "discount", _("Desconto")
    PRODUCT = "product", _("Produto")
    SERVICE = "service", _("Serviço")
    OTHER = "other", _("Outro")


@dataclass(frozen=True)
class DiscountDetails:
    value: Decimal
    is_percentage: bool


@dataclass(frozen=True)
class ProductDetails:
    product_ref: str
    quantity: int


@dataclass(frozen=True)
class ServiceDetails:
    value: Decimal


@dataclass(frozen=True)
class OtherDetails:
    value: Decimal


class RewardQuerySet(models.QuerySet):
    def offered_at(self, branch_ref: str, company_ref: str | None = None):
        """
        Rewards of the branch plus global rewards.

        With ``company_ref`` only that company's global rewards are included;
        None means a single-company deployment where every global reward applies.
        """
        global_q = Q(is_global=True)
        if company_ref is not None:
            global_q &= Q(company_ref=company_ref)
        return self.filter(Q(branch_ref=branch_ref, is_global=False) | global_q)

    def redeemable(self, now=None):
        """Active rewards inside their validity window."""
        now = now or timezone.now()
        return self.filter(is_active=True).filter(
            Q(valid_from__isnull=True) | Q(valid_from__lte=now),
            Q(valid_until__isnull=True) | Q(valid_until__gte=now),
        )


class Reward(models.Model):
    """
    Reward redeemable for points.

    Branch rewards carry ``branch_ref``; global rewards carry ``company_ref``
    and are offered at every branch of that company. Counters are only
    changed by the redemption service under a row lock.
    """

    name = models.CharField(_("nome"), max_length=100)
    description = models.CharField(_("descrição"), max_length=500, blank=True)

    points_required = models.PositiveIntegerField(
        _("pontos necessários"),
        validators=[MinValueValidator(1)],
    )
    reward_type = models.CharField(
        _("tipo"),
        max_length=20,
        choices=RewardType.choices,
        default=RewardType.DISCOUNT,
    )

    # Discount / service / other
    reward_value = models.DecimalField(
        _("valor"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    is_percentage = models.BooleanField(_("percentual"), default=False)

    # Product
    product_ref = models.CharField(_("produto"), max_length=64, blank=True)
    product_quantity = models.PositiveIntegerField(
        _("quantidade"),
        default=1,
        validators=[MinValueValidator(1)],
    )

    # Caps (0 = unlimited)
    max_redemptions_per_client = models.PositiveIntegerField(_("máximo por cliente"), default=0)
    max_total_redemptions = models.PositiveIntegerField(_("máximo total"), default=0)
    total_redemptions = models.PositiveIntegerField(_("resgates"), default=0)

    # Validity window (either end may be open)
    valid_from = models.DateTimeField(_("válido a partir de"), null=True, blank=True)
    valid_until = models.DateTimeField(_("válido até"), null=True, blank=True)

    # Scope
    is_global = models.BooleanField(_("global"), default=False)
    company_ref = models.CharField(_("empresa"), max_length=64, blank=True)
    branch_ref = models.CharField(_("filial"), max_length=64, blank=True, db_index=True)

    is_active = models.BooleanField(_("ativo"), default=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    objects = RewardQuerySet.as_manager()

    class Meta:
        db_table = "pointsman_reward"
        verbose_name = _("recompensa")
        verbose_name_plural = _("recompensas")
        ordering = ["points_required", "name"]
        indexes = [
            models.Index(fields=["branch_ref", "is_active"], name="pointsman_reward_branch_idx"),
            models.Index(fields=["is_global", "is_active"], name="pointsman_reward_global_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.points_required}pts)"

    def clean(self):
        errors = {}
        if self.is_global:
            if self.reward_type == RewardType.PRODUCT:
                errors["is_global"] = _("Produtos não podem ser recompensas globais.")
            if not self.company_ref:
                errors["company_ref"] = _("Recompensas globais exigem uma empresa.")
        elif not self.branch_ref:
            errors["branch_ref"] = _("Recompensas de filial exigem uma filial.")
        if self.reward_type == RewardType.PRODUCT and not self.product_ref:
            errors["product_ref"] = _("Informe o produto da recompensa.")
        if self.is_percentage and self.reward_value > 100:
            errors["reward_value"] = _("Desconto percentual não pode passar de 100.")
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            errors["valid_until"] = _("Fim da validade anterior ao início.")
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        # Scope columns are exclusive
        if self.is_global:
            self.branch_ref = ""
        else:
            self.company_ref = ""
        super().save(*args, **kwargs)

    @property
    def details(self) -> DiscountDetails | ProductDetails | ServiceDetails | OtherDetails:
        """Type-specific view of the reward."""
        if self.reward_type == RewardType.DISCOUNT:
            return DiscountDetails(value=self.reward_value, is_percentage=self.is_percentage)
        if self.reward_type == RewardType.PRODUCT:
            return ProductDetails(product_ref=self.product_ref, quantity=self.product_quantity)
        if self.reward_type == RewardType.SERVICE:
            return ServiceDetails(value=self.reward_value)
        return OtherDetails(value=self.reward_value)

    def is_offered_at(self, branch_ref: str, company_ref: str | None = None) -> bool:
        if self.is_global:
            return company_ref is None or self.company_ref == company_ref
        return self.branch_ref == branch_ref

    def is_within_window(self, now=None) -> bool:
        now = now or timezone.now()
        if self.valid_from and now < self.valid_from:
            return False
        if self.valid_until and now > self.valid_until:
            return False
        return True

    @property
    def is_exhausted(self) -> bool:
        return 0 < self.max_total_redemptions <= self.total_redemptions
