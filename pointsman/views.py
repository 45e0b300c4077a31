"""
Pointsman JSON endpoints.

Thin adapters over PointsService for branch terminals and client apps.
Callers are already authenticated upstream; refs in the payload are trusted.

Errors are returned as:
    {"error": code, "message": message, "data": {...}}
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from pointsman.exceptions import (
    AccountNotFound,
    CodeNotFound,
    ConcurrencyConflict,
    PointsmanError,
    StorageUnavailable,
    TokenInvalid,
    ValidationError,
)
from pointsman.service import PointsService
from pointsman.utils import clean_id

logger = logging.getLogger(__name__)


def error_status(exc: PointsmanError) -> int:
    """HTTP status for a pointsman error."""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, TokenInvalid):
        return 401
    if isinstance(exc, (AccountNotFound, CodeNotFound)):
        return 404
    if isinstance(exc, (ConcurrencyConflict, StorageUnavailable)):
        return 503
    return 409


def error_response(exc: PointsmanError) -> JsonResponse:
    return JsonResponse(
        {"error": exc.code, "message": exc.message, "data": exc.data},
        status=error_status(exc),
    )


# ======================================================================
# Serialization
# ======================================================================


def _iso(value):
    return value.isoformat() if value else None


def serialize_entry(entry) -> dict:
    return {
        "id": entry.pk,
        "direction": entry.direction,
        "amount": entry.amount,
        "delta": entry.delta,
        "balance_after": entry.balance_after,
        "reason_code": entry.reason_code,
        "order_ref": entry.order_ref,
        "description": entry.description,
        "created_at": _iso(entry.created_at),
    }


def serialize_reward(reward) -> dict:
    return {
        "id": reward.pk,
        "name": reward.name,
        "description": reward.description,
        "points_required": reward.points_required,
        "reward_type": reward.reward_type,
        "is_global": reward.is_global,
        "valid_until": _iso(reward.valid_until),
    }


def serialize_redemption(redemption) -> dict:
    return {
        "code": redemption.code,
        "client_ref": redemption.client_ref,
        "branch_ref": redemption.branch_ref,
        "reward_id": redemption.reward_id,
        "points_spent": redemption.points_spent,
        "status": redemption.status,
        "redeemed_at": _iso(redemption.redeemed_at),
        "expires_at": _iso(redemption.expires_at),
        "used_at": _iso(redemption.used_at),
        "used_in_order": redemption.used_in_order,
    }


# ======================================================================
# Base
# ======================================================================


@method_decorator(csrf_exempt, name="dispatch")
class PointsmanView(View):
    """Maps PointsmanError to JSON error responses."""

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except PointsmanError as exc:
            if error_status(exc) == 503:
                logger.warning("%s %s: %s", request.method, request.path, exc)
            else:
                logger.debug("%s %s: %s", request.method, request.path, exc)
            return error_response(exc)

    def json_body(self, request) -> dict:
        try:
            data = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
            raise ValidationError(message="Invalid JSON")
        if not isinstance(data, dict):
            raise ValidationError(message="JSON body must be an object")
        return data

    def query_int(self, request, name: str, default: int) -> int:
        raw = request.GET.get(name)
        if raw in (None, ""):
            return default
        try:
            return int(raw)
        except ValueError:
            raise ValidationError(message=f"{name} must be an integer", field=name)


# ======================================================================
# Cards
# ======================================================================


class CardTokenView(PointsmanView):
    """POST {client_ref, branch_ref, qr?} -> signed card token."""

    def post(self, request):
        data = self.json_body(request)
        result = PointsService.issue_card_token(data.get("client_ref"), data.get("branch_ref"))
        payload = {
            "token": result.token,
            "sequence": result.sequence,
            "expires_at": _iso(result.expires_at),
        }
        if data.get("qr"):
            payload["qr"] = result.qr_data_uri()
        return JsonResponse(payload, status=201)


class CardScanView(PointsmanView):
    """POST {token, branch_ref, terminal_ref?, employee_ref?} -> client, balance, rewards."""

    def post(self, request):
        data = self.json_body(request)
        scan = PointsService.verify_scan(
            data.get("token"),
            data.get("branch_ref"),
            terminal_ref=str(data.get("terminal_ref") or ""),
            employee_ref=str(data.get("employee_ref") or ""),
        )
        return JsonResponse(
            {
                "client_ref": scan.client_ref,
                "branch_ref": scan.branch_ref,
                "balance": scan.balance,
                "eligible_rewards": [serialize_reward(r) for r in scan.eligible_rewards],
            }
        )


# ======================================================================
# Redemptions
# ======================================================================


class RedeemView(PointsmanView):
    """POST {client_ref, reward_id, branch_ref, redeemed_by?} -> issued code."""

    def post(self, request):
        data = self.json_body(request)
        if data.get("reward_id") in (None, ""):
            raise ValidationError(message="reward_id is required", field="reward_id")
        result = PointsService.redeem_reward(
            data.get("client_ref"),
            clean_id("reward_id", data["reward_id"]),
            data.get("branch_ref"),
            redeemed_by=str(data.get("redeemed_by") or ""),
        )
        return JsonResponse(
            {
                "code": result.code,
                "new_balance": result.new_balance,
                "redemption": serialize_redemption(result.redemption),
            },
            status=201,
        )


class UseCodeView(PointsmanView):
    """POST {code, order_ref} -> code consumed."""

    def post(self, request):
        data = self.json_body(request)
        result = PointsService.use_redemption_code(data.get("code"), data.get("order_ref"))
        return JsonResponse(
            {
                "success": result.success,
                "replayed": result.replayed,
                "redemption": serialize_redemption(result.redemption),
            }
        )


# ======================================================================
# Accounts
# ======================================================================


class BalanceView(PointsmanView):
    def get(self, request, branch_ref, client_ref):
        return JsonResponse(
            {
                "client_ref": client_ref,
                "branch_ref": branch_ref,
                "balance": PointsService.get_balance(client_ref, branch_ref),
            }
        )


class HistoryView(PointsmanView):
    def get(self, request, branch_ref, client_ref):
        history = PointsService.get_history(
            client_ref,
            branch_ref,
            page=self.query_int(request, "page", 1),
            page_size=self.query_int(request, "page_size", 20),
        )
        return JsonResponse(
            {
                "client_ref": client_ref,
                "branch_ref": branch_ref,
                "page": history.page,
                "page_size": history.page_size,
                "total": history.total,
                "pages": history.pages,
                "entries": [serialize_entry(e) for e in history.entries],
            }
        )
