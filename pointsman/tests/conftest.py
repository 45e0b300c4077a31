"""Pytest fixtures for Pointsman tests."""

from decimal import Decimal

import pytest

from pointsman.models import ClientAccount, Reward, RewardType, RulesConfig

BRANCH = "BR-01"
CLIENT = "CLI-001"


@pytest.fixture
def branch_config(db):
    """Active rules for BRANCH: 1 point per 100 spent, bonuses off."""
    return RulesConfig.objects.create(
        branch_ref=BRANCH,
        amount_rule_enabled=True,
        amount_rule_amount=Decimal("100"),
        amount_rule_points=1,
        accumulated_rule_enabled=False,
        first_purchase_enabled=False,
        registration_enabled=False,
        visit_enabled=False,
    )


@pytest.fixture
def full_config(db):
    """Every rule enabled with small, easy to sum parameters."""
    return RulesConfig.objects.create(
        branch_ref=BRANCH,
        amount_rule_enabled=True,
        amount_rule_amount=Decimal("100"),
        amount_rule_points=1,
        accumulated_rule_enabled=True,
        accumulated_rule_purchases_required=3,
        accumulated_rule_points=10,
        first_purchase_enabled=True,
        first_purchase_points=5,
        registration_enabled=True,
        registration_points=10,
        visit_enabled=True,
        visit_points=2,
        visit_max_per_day=1,
    )


@pytest.fixture
def account(db):
    """Empty account of CLIENT at BRANCH."""
    return ClientAccount.objects.create(client_ref=CLIENT, branch_ref=BRANCH)


@pytest.fixture
def funded_account(account):
    """Account with 100 points granted through the ledger."""
    from pointsman.services.ledger import adjust

    adjust(CLIENT, BRANCH, 100, "Saldo inicial", created_by="tests")
    account.refresh_from_db()
    return account


@pytest.fixture
def reward(db):
    """Branch discount worth 100 points, one per client."""
    return Reward.objects.create(
        name="Desconto 10%",
        points_required=100,
        reward_type=RewardType.DISCOUNT,
        reward_value=Decimal("10"),
        is_percentage=True,
        max_redemptions_per_client=1,
        branch_ref=BRANCH,
    )


@pytest.fixture
def cheap_reward(db):
    """Unlimited branch reward worth 10 points."""
    return Reward.objects.create(
        name="Café",
        points_required=10,
        reward_type=RewardType.PRODUCT,
        product_ref="CAFE",
        branch_ref=BRANCH,
    )


@pytest.fixture
def global_reward(db):
    return Reward.objects.create(
        name="Brinde da rede",
        points_required=50,
        reward_type=RewardType.OTHER,
        is_global=True,
        company_ref="ACME",
    )
