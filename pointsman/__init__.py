"""
Django Pointsman - Branch-scoped loyalty points.

Usage:
    from pointsman import PointsService
    from pointsman.gates import Gates, GateResult

    PointsService.apply_purchase_event("CLI-001", "BR-01", "ORD-1", Decimal("250"))
    result = PointsService.redeem_reward("CLI-001", reward.pk, "BR-01")
    PointsService.use_redemption_code(result.code, "ORD-2")

    token = PointsService.issue_card_token("CLI-001", "BR-01")
    scan = PointsService.verify_scan(token.token, "BR-01")
"""


def __getattr__(name):
    if name == "PointsService":
        from pointsman.service import PointsService

        return PointsService
    if name == "Gates":
        from pointsman.gates import Gates

        return Gates
    if name == "GateResult":
        from pointsman.gates import GateResult

        return GateResult
    if name == "PointsmanError":
        from pointsman.exceptions import PointsmanError

        return PointsmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["PointsService", "Gates", "GateResult", "PointsmanError"]
__version__ = "0.1.0"
