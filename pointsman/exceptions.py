"""Pointsman exceptions."""


class PointsmanError(Exception):
    """
    Structured exception for loyalty operations.

    Every error carries a stable ``code`` the caller can branch on, a
    human-readable ``message`` and free-form ``data``.

    Usage:
        try:
            PointsService.redeem_reward("CLI-001", reward_id, "BR-01")
        except PointsmanError as e:
            if e.code == "INSUFFICIENT_BALANCE":
                show_balance(e.data["available"])
    """

    default_code = "POINTSMAN_ERROR"

    _default_messages = {
        "POINTSMAN_ERROR": "Loyalty operation failed",
        "VALIDATION_ERROR": "Invalid request",
        "INSUFFICIENT_BALANCE": "Insufficient points balance",
        "REWARD_UNAVAILABLE": "Reward is not available",
        "REWARD_EXHAUSTED": "Reward has no redemptions left",
        "CLIENT_LIMIT_REACHED": "Client reached the redemption limit for this reward",
        "ACCOUNT_NOT_FOUND": "Loyalty account not found",
        "CODE_NOT_FOUND": "Redemption code not found",
        "CODE_ALREADY_USED": "Redemption code already used",
        "CODE_EXPIRED": "Redemption code expired",
        "TOKEN_INVALID": "Card token is invalid",
        "TOKEN_EXPIRED": "Card token expired",
        "TOKEN_SUPERSEDED": "Card token was replaced by a newer one",
        "CONCURRENCY_CONFLICT": "Operation conflicted with a concurrent update",
        "STORAGE_UNAVAILABLE": "Storage is unavailable",
    }

    def __init__(self, code: str | None = None, /, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class ValidationError(PointsmanError):
    """Malformed input. Caller's fault, never retried."""

    default_code = "VALIDATION_ERROR"


# Business-rule rejections


class InsufficientBalance(PointsmanError):
    default_code = "INSUFFICIENT_BALANCE"


class RewardUnavailable(PointsmanError):
    default_code = "REWARD_UNAVAILABLE"


class RewardExhausted(PointsmanError):
    default_code = "REWARD_EXHAUSTED"


class ClientLimitReached(PointsmanError):
    default_code = "CLIENT_LIMIT_REACHED"


class AccountNotFound(PointsmanError):
    default_code = "ACCOUNT_NOT_FOUND"


class CodeNotFound(PointsmanError):
    default_code = "CODE_NOT_FOUND"


class AlreadyUsed(PointsmanError):
    default_code = "CODE_ALREADY_USED"


class CodeExpired(PointsmanError):
    default_code = "CODE_EXPIRED"


# Identity failures (caller must re-issue or re-scan)


class TokenInvalid(PointsmanError):
    default_code = "TOKEN_INVALID"


class TokenExpired(TokenInvalid):
    default_code = "TOKEN_EXPIRED"


class TokenSuperseded(TokenInvalid):
    default_code = "TOKEN_SUPERSEDED"


# Infrastructure


class ConcurrencyConflict(PointsmanError):
    """Transient conflict that survived the bounded retry loop."""

    default_code = "CONCURRENCY_CONFLICT"


class StorageUnavailable(PointsmanError):
    default_code = "STORAGE_UNAVAILABLE"
