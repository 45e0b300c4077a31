"""Catalog service - branch rules configuration and reward lookup."""

import logging

from django.db.models import Count
from django.utils import timezone
from django.utils.module_loading import import_string

from pointsman.conf import pointsman_settings
from pointsman.gates import Gates
from pointsman.models import Redemption, Reward, RulesConfig
from pointsman.protocols.branches import BranchDirectory
from pointsman.rules import EMPTY_RULESET, RuleSet

logger = logging.getLogger(__name__)


def get_active_config(branch_ref: str) -> RulesConfig | None:
    """Active rules configuration of a branch, if any."""
    return RulesConfig.objects.filter(branch_ref=branch_ref, is_active=True).first()


def get_rules(branch_ref: str) -> RuleSet:
    """
    Rule blocks in force at a branch.

    A branch without an active configuration awards nothing.
    """
    config = get_active_config(branch_ref)
    if config is None:
        logger.debug("No active rules config for branch %s", branch_ref)
        return EMPTY_RULESET
    return config.rules()


def _get_branch_directory() -> BranchDirectory | None:
    """Get configured BranchDirectory."""
    backend_path = pointsman_settings.BRANCH_DIRECTORY_BACKEND
    if backend_path:
        backend_class = import_string(backend_path)
        return backend_class()
    return None


def branch_company(branch_ref: str) -> str | None:
    """
    Company whose global rewards are offered at a branch.

    None when no directory is configured (single company). A configured
    directory that does not know the branch yields "" so no global reward
    matches.
    """
    directory = _get_branch_directory()
    if directory is None:
        return None
    return directory.get_company_ref(branch_ref) or ""


def eligible_rewards(client_ref: str, branch_ref: str, balance: int, now=None) -> list[Reward]:
    """
    Rewards the client could redeem right now with ``balance``.

    Read-only: nothing is reserved. The redemption path re-validates every
    gate under locks.
    """
    now = now or timezone.now()
    candidates = [
        reward
        for reward in Reward.objects.offered_at(branch_ref, branch_company(branch_ref))
        .redeemable(now)
        .filter(points_required__lte=balance)
        if Gates.check_reward_capacity(reward)
    ]
    if not candidates:
        return []

    used = dict(
        Redemption.objects.filter(client_ref=client_ref, reward__in=candidates)
        .values("reward")
        .annotate(n=Count("id"))
        .values_list("reward", "n")
    )
    return [
        reward
        for reward in candidates
        if Gates.check_client_limit(reward, client_ref, used=used.get(reward.pk, 0))
    ]
