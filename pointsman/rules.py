"""
Accumulation rules — pure evaluation, no database access.

Each rule is a frozen block holding its own ``enabled`` flag and parameters.
Blocks are evaluated independently; the accumulation service composes their
awards into one ledger transaction.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_FLOOR

from pointsman.models.ledger import ReasonCode


@dataclass(frozen=True)
class Award:
    """Points a rule grants for one event."""

    reason_code: str
    points: int
    description: str


@dataclass(frozen=True)
class AmountThresholdRule:
    """``points`` for every full ``amount`` spent."""

    enabled: bool = False
    amount: Decimal = Decimal("100")
    points: int = 1

    def evaluate(self, spent: Decimal) -> Award | None:
        if not self.enabled or self.amount <= 0 or self.points <= 0:
            return None
        multiplier = int((Decimal(spent) / self.amount).to_integral_value(rounding=ROUND_FLOOR))
        if multiplier <= 0:
            return None
        return Award(
            ReasonCode.PURCHASE_AMOUNT,
            multiplier * self.points,
            f"Compra de {spent}",
        )


@dataclass(frozen=True)
class AccumulatedPurchasesRule:
    """``points`` every time the purchase counter hits a multiple of ``purchases_required``."""

    enabled: bool = False
    purchases_required: int = 5
    points: int = 10

    def evaluate(self, purchase_count: int) -> Award | None:
        if not self.enabled or self.purchases_required <= 0 or self.points <= 0:
            return None
        if purchase_count <= 0 or purchase_count % self.purchases_required:
            return None
        return Award(
            ReasonCode.ACCUMULATED_PURCHASES,
            self.points,
            f"Bônus por {purchase_count} compras",
        )


@dataclass(frozen=True)
class FirstPurchaseRule:
    enabled: bool = False
    points: int = 5

    def evaluate(self, is_first: bool, already_completed: bool) -> Award | None:
        if not self.enabled or self.points <= 0:
            return None
        if not is_first or already_completed:
            return None
        return Award(ReasonCode.FIRST_PURCHASE, self.points, "Bônus de primeira compra")


@dataclass(frozen=True)
class RegistrationRule:
    enabled: bool = False
    points: int = 10

    def evaluate(self, already_granted: bool) -> Award | None:
        if not self.enabled or self.points <= 0 or already_granted:
            return None
        return Award(ReasonCode.CLIENT_REGISTRATION, self.points, "Pontos de boas-vindas")


@dataclass(frozen=True)
class BranchVisitRule:
    """``points`` per visit, at most ``max_visits_per_day`` awards per calendar day."""

    enabled: bool = False
    points: int = 2
    max_visits_per_day: int = 1

    def visits_so_far(self, visit_date: date, last_visit_date: date | None, visits_on_last_date: int) -> int:
        """Visits already awarded on ``visit_date``."""
        if last_visit_date == visit_date:
            return visits_on_last_date
        return 0

    def evaluate(self, visit_date: date, last_visit_date: date | None, visits_on_last_date: int) -> Award | None:
        if not self.enabled or self.points <= 0 or self.max_visits_per_day <= 0:
            return None
        if last_visit_date is not None and visit_date < last_visit_date:
            # Counter only tracks the latest day
            return None
        if self.visits_so_far(visit_date, last_visit_date, visits_on_last_date) >= self.max_visits_per_day:
            return None
        return Award(ReasonCode.BRANCH_VISIT, self.points, f"Visita em {visit_date.isoformat()}")


@dataclass(frozen=True)
class RuleSet:
    """All rule blocks of one branch configuration."""

    amount_threshold: AmountThresholdRule = AmountThresholdRule()
    accumulated_purchases: AccumulatedPurchasesRule = AccumulatedPurchasesRule()
    first_purchase: FirstPurchaseRule = FirstPurchaseRule()
    registration: RegistrationRule = RegistrationRule()
    branch_visit: BranchVisitRule = BranchVisitRule()

    def purchase_awards(
        self,
        amount: Decimal,
        purchase_count: int,
        is_first: bool,
        first_purchase_completed: bool,
    ) -> list[Award]:
        """
        Awards for one purchase, in a fixed order.

        ``purchase_count`` already includes this purchase. All enabled rules
        stack: amount threshold, then accumulated purchases, then first purchase.
        """
        awards = [
            self.amount_threshold.evaluate(amount),
            self.accumulated_purchases.evaluate(purchase_count),
            self.first_purchase.evaluate(is_first, first_purchase_completed),
        ]
        return [a for a in awards if a is not None]


# No active configuration: nothing is awarded
EMPTY_RULESET = RuleSet()
