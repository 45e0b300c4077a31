"""
Redemption service — rewards exchanged for single-use codes.

Lifecycle:
    Requested -> Rejected (business error raised, nothing written)
    Requested -> Issued   (debit + counter + Redemption row, one transaction)
    Issued    -> Used     (use_code)
    Issued    -> Expired  (past expires_at, no refund)

Lock order is always reward, then account.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from pointsman.conf import pointsman_settings
from pointsman.db import run_atomic
from pointsman.exceptions import (
    AlreadyUsed,
    CodeExpired,
    CodeNotFound,
    ConcurrencyConflict,
    RewardUnavailable,
    ValidationError,
)
from pointsman.gates import Gates
from pointsman.models import ReasonCode, Redemption, RedemptionStatus, Reward
from pointsman.services import catalog
from pointsman.services.ledger import EntryDraft, append_locked, lock_account
from pointsman.signals import redemption_code_used, reward_redeemed
from pointsman.utils import ORDER_REF_MAX_LENGTH, clean_ref

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionResult:
    code: str
    new_balance: int
    redemption: Redemption


@dataclass(frozen=True)
class CodeUseResult:
    success: bool
    redemption: Redemption
    replayed: bool = False


# ======================================================================
# Codes
# ======================================================================


def generate_code() -> str:
    """Random code from the configured alphabet (``secrets``, not ``random``)."""
    alphabet = pointsman_settings.REDEMPTION_CODE_ALPHABET
    length = pointsman_settings.REDEMPTION_CODE_LENGTH
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(code) -> str:
    if not isinstance(code, str) or not code.strip():
        raise ValidationError(message="code is required", field="code")
    return code.strip().upper()


def _create_with_unique_code(**fields) -> Redemption:
    """
    Insert the Redemption row, regenerating the code on collision.

    The pre-check catches most collisions; the unique constraint catches
    the rest (savepoint per attempt).
    """
    attempts = max(1, int(pointsman_settings.REDEMPTION_CODE_ATTEMPTS))
    for attempt in range(1, attempts + 1):
        code = generate_code()
        if Redemption.objects.filter(code=code).exists():
            logger.debug("Redemption code collision (attempt %d)", attempt)
            continue
        try:
            with transaction.atomic():
                return Redemption.objects.create(code=code, **fields)
        except IntegrityError:
            logger.debug("Redemption code collision on insert (attempt %d)", attempt)
    raise ConcurrencyConflict(
        message="Could not generate a unique redemption code",
        operation="redemption.code",
        attempts=attempts,
    )


# ======================================================================
# Redeem
# ======================================================================


def redeem(client_ref: str, reward_id, branch_ref: str, redeemed_by: str = "") -> RedemptionResult:
    """
    Exchange points for a reward.

    Args:
        client_ref: Client identifier
        reward_id: Reward primary key
        branch_ref: Branch where the redemption happens
        redeemed_by: Operator/employee reference

    Returns:
        RedemptionResult with the issued code and the new balance

    Raises:
        RewardUnavailable, RewardExhausted, ClientLimitReached,
        InsufficientBalance: Rejections, in this order; nothing is written
        AccountNotFound: If the client has no account at the branch
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)

    company_ref = catalog.branch_company(branch_ref)

    def _redeem():
        now = timezone.now()
        try:
            reward = Reward.objects.select_for_update().get(pk=reward_id)
        except (Reward.DoesNotExist, ValueError, TypeError):
            raise RewardUnavailable(message="Reward not found", reward_id=reward_id)

        Gates.reward_available(reward, branch_ref, now=now, company_ref=company_ref)
        Gates.reward_capacity(reward)
        Gates.client_limit(reward, client_ref)

        account = lock_account(client_ref, branch_ref)
        Gates.sufficient_balance(account.balance, reward.points_required)

        [entry] = append_locked(
            account,
            [
                EntryDraft(
                    ReasonCode.REDEMPTION,
                    -reward.points_required,
                    description=f"Resgate: {reward.name}",
                    created_by=redeemed_by,
                )
            ],
        )

        Reward.objects.filter(pk=reward.pk).update(total_redemptions=F("total_redemptions") + 1)

        ttl_days = int(pointsman_settings.REDEMPTION_CODE_TTL_DAYS)
        redemption = _create_with_unique_code(
            client_ref=client_ref,
            branch_ref=branch_ref,
            reward=reward,
            ledger_entry=entry,
            points_spent=reward.points_required,
            redeemed_at=now,
            redeemed_by=redeemed_by,
            expires_at=now + timedelta(days=ttl_days) if ttl_days > 0 else None,
        )

        new_balance = account.balance
        transaction.on_commit(
            lambda: reward_redeemed.send(
                sender=Redemption,
                redemption=redemption,
                new_balance=new_balance,
            )
        )
        return RedemptionResult(code=redemption.code, new_balance=new_balance, redemption=redemption)

    result = run_atomic(_redeem, label="redemption.redeem")
    logger.info(
        "Redeemed reward %s for %s@%s: code issued, %d pts spent (balance %d)",
        result.redemption.reward_id,
        client_ref,
        branch_ref,
        result.redemption.points_spent,
        result.new_balance,
    )
    return result


# ======================================================================
# Use / expire
# ======================================================================


def use_code(code: str, order_ref: str) -> CodeUseResult:
    """
    Consume an issued code at the point of sale.

    Retrying with the same order succeeds again with ``replayed=True``.

    Raises:
        CodeNotFound: Unknown code
        AlreadyUsed: Code consumed by another order
        CodeExpired: Code past its expiry (marked expired if still issued)
    """
    code = normalize_code(code)
    order_ref = clean_ref("order_ref", order_ref, max_length=ORDER_REF_MAX_LENGTH)

    def _use():
        now = timezone.now()
        redemption = Redemption.objects.select_for_update().filter(code=code).first()
        if redemption is None:
            raise CodeNotFound(redemption_code=code)

        if redemption.status == RedemptionStatus.USED:
            if redemption.used_in_order == order_ref:
                return CodeUseResult(success=True, redemption=redemption, replayed=True)
            raise AlreadyUsed(redemption_code=code, used_in_order=redemption.used_in_order)

        if redemption.status == RedemptionStatus.EXPIRED:
            raise CodeExpired(redemption_code=code, expires_at=_iso(redemption.expires_at))

        if redemption.is_overdue(now):
            redemption.status = RedemptionStatus.EXPIRED
            redemption.save(update_fields=["status"])
            return redemption

        redemption.status = RedemptionStatus.USED
        redemption.used_at = now
        redemption.used_in_order = order_ref
        redemption.save(update_fields=["status", "used_at", "used_in_order"])

        transaction.on_commit(
            lambda: redemption_code_used.send(
                sender=Redemption,
                redemption=redemption,
                order_ref=order_ref,
            )
        )
        return CodeUseResult(success=True, redemption=redemption)

    outcome = run_atomic(_use, label="redemption.use_code")

    # Expiry must commit before the rejection is raised
    if isinstance(outcome, Redemption):
        logger.info("Redemption code %s expired on use", code)
        raise CodeExpired(redemption_code=code, expires_at=_iso(outcome.expires_at))

    if outcome.replayed:
        logger.debug("Redemption code %s already used in order %s", code, order_ref)
    else:
        logger.info("Redemption code %s used in order %s", code, order_ref)
    return outcome


def expire_codes(now=None) -> int:
    """
    Mark issued codes past their expiry as expired. Points are not refunded.

    Returns:
        Number of codes expired
    """
    now = now or timezone.now()

    def _expire():
        return Redemption.objects.filter(
            status=RedemptionStatus.ISSUED,
            expires_at__isnull=False,
            expires_at__lte=now,
        ).update(status=RedemptionStatus.EXPIRED)

    count = run_atomic(_expire, label="redemption.expire_codes")
    if count:
        logger.info("Expired %d redemption codes", count)
    return count


# ======================================================================
# Reads
# ======================================================================


def client_redemptions(client_ref: str, branch_ref: str | None = None, status: str | None = None) -> list[Redemption]:
    """Redemptions of a client, newest first."""
    client_ref = clean_ref("client_ref", client_ref)
    qs = Redemption.objects.select_related("reward").filter(client_ref=client_ref)
    if branch_ref:
        qs = qs.filter(branch_ref=branch_ref)
    if status:
        if status not in RedemptionStatus.values:
            raise ValidationError(message=f"Unknown status: {status}", field="status")
        qs = qs.filter(status=status)
    return list(qs.order_by("-redeemed_at", "-id"))


def _iso(value) -> str | None:
    return value.isoformat() if value else None
