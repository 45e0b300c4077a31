"""
Pointsman Gates - Redemption validation rules.

R1: RewardAvailable - Reward is active, inside its window and offered at the branch
R2: RewardCapacity - max_total_redemptions not reached
R3: ClientLimit - Client below max_redemptions_per_client for the reward
R4: SufficientBalance - Balance covers points_required

Gates run in this order; the first failure wins. Inside a redemption they are
evaluated against rows locked by the caller.
"""

from dataclasses import dataclass

from pointsman.exceptions import (
    ClientLimitReached,
    InsufficientBalance,
    PointsmanError,
    RewardExhausted,
    RewardUnavailable,
)


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Pointsman redemption gates."""

    # =========================================================================
    # R1: Reward Available
    # =========================================================================

    @classmethod
    def reward_available(cls, reward, branch_ref: str, now=None, company_ref: str | None = None) -> GateResult:
        """
        R1: Reward is redeemable at this branch right now.

        Args:
            reward: Reward instance (None counts as unavailable)
            branch_ref: Branch where the redemption happens
            now: Reference time (defaults to timezone.now())
            company_ref: Company of the branch; global rewards of other
                companies are not offered (None = single company)

        Raises:
            RewardUnavailable: If missing, inactive, outside window or not offered here
        """
        if reward is None:
            raise RewardUnavailable(message="Reward not found")

        if not reward.is_active:
            raise RewardUnavailable(reward_id=reward.pk, reason="inactive")

        if not reward.is_within_window(now):
            raise RewardUnavailable(reward_id=reward.pk, reason="outside_validity")

        if not reward.is_offered_at(branch_ref, company_ref):
            raise RewardUnavailable(
                reward_id=reward.pk,
                reason="other_branch",
                branch_ref=branch_ref,
            )

        return GateResult(True, "R1_RewardAvailable")

    @classmethod
    def check_reward_available(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.reward_available(*args, **kwargs)
            return True
        except PointsmanError:
            return False

    # =========================================================================
    # R2: Reward Capacity
    # =========================================================================

    @classmethod
    def reward_capacity(cls, reward) -> GateResult:
        """
        R2: Global redemption cap not reached (0 = unlimited).

        Raises:
            RewardExhausted: If total_redemptions reached max_total_redemptions
        """
        if reward.is_exhausted:
            raise RewardExhausted(
                reward_id=reward.pk,
                max_total_redemptions=reward.max_total_redemptions,
            )

        return GateResult(True, "R2_RewardCapacity")

    @classmethod
    def check_reward_capacity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.reward_capacity(*args, **kwargs)
            return True
        except PointsmanError:
            return False

    # =========================================================================
    # R3: Client Limit
    # =========================================================================

    @classmethod
    def client_limit(cls, reward, client_ref: str, used: int | None = None) -> GateResult:
        """
        R3: Client below the per-client cap (0 = unlimited).

        Every redemption of the reward by the client counts, whatever its
        status and branch.

        Args:
            reward: Reward instance
            client_ref: Client identifier
            used: Redemptions already counted by the caller (skips the query)

        Raises:
            ClientLimitReached: If the client used up the per-client cap
        """
        limit = reward.max_redemptions_per_client
        if not limit:
            return GateResult(True, "R3_ClientLimit", "unlimited")

        if used is None:
            from pointsman.models import Redemption

            used = Redemption.objects.filter(client_ref=client_ref, reward=reward).count()

        if used >= limit:
            raise ClientLimitReached(
                reward_id=reward.pk,
                client_ref=client_ref,
                limit=limit,
                used=used,
            )

        return GateResult(True, "R3_ClientLimit")

    @classmethod
    def check_client_limit(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.client_limit(*args, **kwargs)
            return True
        except PointsmanError:
            return False

    # =========================================================================
    # R4: Sufficient Balance
    # =========================================================================

    @classmethod
    def sufficient_balance(cls, balance: int, points_required: int) -> GateResult:
        """
        R4: Balance covers the reward.

        Raises:
            InsufficientBalance: If balance < points_required
        """
        if balance < points_required:
            raise InsufficientBalance(available=balance, requested=points_required)

        return GateResult(True, "R4_SufficientBalance")

    @classmethod
    def check_sufficient_balance(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_balance(*args, **kwargs)
            return True
        except PointsmanError:
            return False
