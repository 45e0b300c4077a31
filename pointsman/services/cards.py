"""
Cards service — digital card tokens and scan verification.

A card token is a ``django.core.signing`` payload:

    {"v": 1, "c": client_ref, "b": branch_ref, "k": card serial,
     "s": rotation sequence, "iat": issued (epoch), "exp": expiry (epoch)}

Verification trusts nothing but the signature and the card row: tokens of
an older rotation sequence are rejected even before they expire.
"""

import base64
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

import qrcode
from django.core import signing
from django.db import transaction
from django.utils import timezone

from pointsman.conf import pointsman_settings
from pointsman.db import run_atomic
from pointsman.exceptions import TokenExpired, TokenInvalid, TokenSuperseded
from pointsman.models import CardToken, DigitalCard, Reward, ScanLog
from pointsman.services import catalog
from pointsman.services.ledger import current_balance
from pointsman.signals import card_rotated
from pointsman.utils import clean_ref

logger = logging.getLogger(__name__)

TOKEN_SCHEMA_VERSION = 1

_PAYLOAD_FIELDS = {
    "v": int,
    "c": str,
    "b": str,
    "k": str,
    "s": int,
    "iat": int,
    "exp": int,
}


@dataclass(frozen=True)
class CardTokenResult:
    token: str
    expires_at: object
    sequence: int
    card: DigitalCard

    def qr_data_uri(self, box_size: int = 10, border: int = 4) -> str:
        """PNG of the token as a ``data:`` URI for the client app."""
        qr = qrcode.QRCode(version=None, box_size=box_size, border=border)
        qr.add_data(self.token)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        data = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{data}"


@dataclass(frozen=True)
class ScanResult:
    """What the branch terminal sees after a successful scan."""

    client_ref: str
    branch_ref: str
    balance: int
    eligible_rewards: list[Reward]
    card: DigitalCard
    scan: ScanLog


def _signing_kwargs() -> dict:
    return {
        "key": pointsman_settings.CARD_SIGNING_KEY or None,
        "salt": pointsman_settings.CARD_TOKEN_SALT,
    }


def _short(token: str) -> str:
    return f"{token[:12]}..." if len(token) > 12 else token


# ======================================================================
# Cards
# ======================================================================


def get_card(client_ref: str, branch_ref: str) -> DigitalCard | None:
    return DigitalCard.objects.filter(client_ref=client_ref, branch_ref=branch_ref).first()


def _lock_card(client_ref: str, branch_ref: str, create: bool = False, now=None) -> DigitalCard:
    if create:
        now = now or timezone.now()
        DigitalCard.objects.get_or_create(
            client_ref=client_ref,
            branch_ref=branch_ref,
            defaults={
                "interval_days": pointsman_settings.CARD_ROTATION_INTERVAL_DAYS,
                "last_rotation": now,
            },
        )
    try:
        return DigitalCard.objects.select_for_update().get(client_ref=client_ref, branch_ref=branch_ref)
    except DigitalCard.DoesNotExist:
        raise TokenInvalid(message="Card not found", reason="unknown_card", client_ref=client_ref)


def _rotate_locked(card: DigitalCard, now) -> None:
    previous = card.rotation_sequence
    card.rotation_sequence = previous + 1
    card.last_rotation = now
    card.next_rotation = now + timedelta(days=card.interval_days)
    card.save(update_fields=["rotation_sequence", "last_rotation", "next_rotation", "updated_at"])
    CardToken.objects.filter(card=card, superseded_at__isnull=True).update(superseded_at=now)
    transaction.on_commit(
        lambda: card_rotated.send(sender=DigitalCard, card=card, previous_sequence=previous)
    )


def rotate_card(client_ref: str, branch_ref: str, now=None) -> DigitalCard:
    """
    Start a new token generation for the card.

    Outstanding tokens are superseded and fail verification from now on.
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    now = now or timezone.now()

    def _rotate():
        card = _lock_card(client_ref, branch_ref)
        _rotate_locked(card, now)
        return card

    card = run_atomic(_rotate, label="cards.rotate")
    logger.info("Rotated card %s@%s to sequence %d", client_ref, branch_ref, card.rotation_sequence)
    return card


def rotate_due_cards(now=None) -> int:
    """
    Rotate every active card whose rotation is due.

    Returns:
        Number of cards rotated
    """
    now = now or timezone.now()
    due = DigitalCard.objects.filter(
        is_active=True,
        rotation_enabled=True,
        next_rotation__lte=now,
    ).values_list("pk", flat=True)

    rotated = 0
    for pk in list(due):

        def _rotate(pk=pk):
            card = DigitalCard.objects.select_for_update().get(pk=pk)
            # Re-check under lock: a concurrent issue_token may have rotated it
            if not card.is_active or not card.needs_rotation(now):
                return False
            _rotate_locked(card, now)
            return True

        if run_atomic(_rotate, label="cards.rotate_due"):
            rotated += 1

    if rotated:
        logger.info("Rotated %d due cards", rotated)
    return rotated


def deactivate_card(client_ref: str, branch_ref: str, now=None) -> DigitalCard:
    """Disable a card. Its tokens stop verifying immediately."""
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    now = now or timezone.now()

    def _deactivate():
        card = _lock_card(client_ref, branch_ref)
        card.is_active = False
        card.save(update_fields=["is_active", "updated_at"])
        CardToken.objects.filter(card=card, superseded_at__isnull=True).update(superseded_at=now)
        return card

    card = run_atomic(_deactivate, label="cards.deactivate")
    logger.info("Deactivated card %s@%s", client_ref, branch_ref)
    return card


# ======================================================================
# Tokens
# ======================================================================


def issue_token(client_ref: str, branch_ref: str, now=None) -> CardTokenResult:
    """
    Sign a token for the client's card at a branch.

    Opens the card on first use and rotates it first when the rotation is due.

    Raises:
        TokenInvalid: If the card was deactivated
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    now = now or timezone.now()
    ttl = int(pointsman_settings.CARD_TOKEN_TTL_SECONDS)

    def _issue():
        card = _lock_card(client_ref, branch_ref, create=True, now=now)
        if not card.is_active:
            raise TokenInvalid(message="Card is inactive", reason="card_inactive", client_ref=client_ref)
        if card.needs_rotation(now):
            _rotate_locked(card, now)

        expires_at = now + timedelta(seconds=ttl)
        payload = {
            "v": TOKEN_SCHEMA_VERSION,
            "c": client_ref,
            "b": branch_ref,
            "k": str(card.serial),
            "s": card.rotation_sequence,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = signing.dumps(payload, **_signing_kwargs())
        CardToken.objects.create(
            card=card,
            sequence=card.rotation_sequence,
            token=token,
            issued_at=now,
            expires_at=expires_at,
        )
        return CardTokenResult(token=token, expires_at=expires_at, sequence=card.rotation_sequence, card=card)

    result = run_atomic(_issue, label="cards.issue_token")
    logger.info(
        "Issued card token %s for %s@%s (sequence %d)",
        _short(result.token),
        client_ref,
        branch_ref,
        result.sequence,
    )
    return result


def decode_token(raw_payload) -> dict:
    """
    Check the signature and schema of a raw token.

    Raises:
        TokenInvalid: Bad signature, malformed payload or unknown schema version
    """
    if not isinstance(raw_payload, str) or not raw_payload.strip():
        raise TokenInvalid(reason="malformed")
    try:
        payload = signing.loads(raw_payload.strip(), **_signing_kwargs())
    except signing.BadSignature:
        raise TokenInvalid(reason="bad_signature")

    if not isinstance(payload, dict):
        raise TokenInvalid(reason="malformed")
    for name, kind in _PAYLOAD_FIELDS.items():
        value = payload.get(name)
        if not isinstance(value, kind) or isinstance(value, bool):
            raise TokenInvalid(reason="malformed", field=name)
    if payload["v"] != TOKEN_SCHEMA_VERSION:
        raise TokenInvalid(reason="schema_version", version=payload["v"])
    return payload


def verify(
    raw_payload,
    branch_ref: str,
    terminal_ref: str = "",
    employee_ref: str = "",
    now=None,
) -> ScanResult:
    """
    Verify a scanned token at a branch terminal.

    Read-only on the ledger: reports balance and eligible rewards without
    reserving anything. Each successful scan is logged.

    Raises:
        TokenInvalid: Bad signature/schema, unknown or inactive card, other branch
        TokenExpired: Token past its expiry
        TokenSuperseded: Card rotated since the token was issued
    """
    branch_ref = clean_ref("branch_ref", branch_ref)
    now = now or timezone.now()

    try:
        card, payload = _check_token(raw_payload, branch_ref, now)
    except TokenInvalid as exc:
        logger.warning(
            "Rejected card scan at %s (terminal %s): %s %s",
            branch_ref,
            terminal_ref or "-",
            exc.code,
            exc.data,
        )
        raise

    client_ref = payload["c"]
    balance = current_balance(client_ref, branch_ref)
    eligible = catalog.eligible_rewards(client_ref, branch_ref, balance, now=now)

    def _log():
        return ScanLog.objects.create(
            card=card,
            client_ref=client_ref,
            branch_ref=branch_ref,
            terminal_ref=terminal_ref[:64],
            employee_ref=employee_ref[:64],
            balance_seen=balance,
            eligible_count=len(eligible),
            scanned_at=now,
        )

    scan = run_atomic(_log, label="cards.scan_log")
    logger.info(
        "Card scan %s@%s: balance %d, %d eligible rewards",
        client_ref,
        branch_ref,
        balance,
        len(eligible),
    )
    return ScanResult(
        client_ref=client_ref,
        branch_ref=branch_ref,
        balance=balance,
        eligible_rewards=eligible,
        card=card,
        scan=scan,
    )


def _check_token(raw_payload, branch_ref: str, now) -> tuple[DigitalCard, dict]:
    payload = decode_token(raw_payload)

    if payload["b"] != branch_ref:
        raise TokenInvalid(reason="other_branch", branch_ref=branch_ref)

    try:
        serial = uuid.UUID(payload["k"])
    except ValueError:
        raise TokenInvalid(reason="malformed", field="k")

    card = DigitalCard.objects.filter(
        serial=serial,
        client_ref=payload["c"],
        branch_ref=branch_ref,
    ).first()
    if card is None:
        raise TokenInvalid(reason="unknown_card")
    if not card.is_active:
        raise TokenInvalid(reason="card_inactive")

    if int(now.timestamp()) >= payload["exp"]:
        raise TokenExpired(expired_at=payload["exp"])

    if payload["s"] < card.rotation_sequence:
        raise TokenSuperseded(sequence=payload["s"], current_sequence=card.rotation_sequence)
    if payload["s"] > card.rotation_sequence:
        raise TokenInvalid(reason="unknown_sequence")

    return card, payload


# ======================================================================
# Reads
# ======================================================================


def scan_history(client_ref: str, branch_ref: str | None = None, limit: int = 50) -> list[ScanLog]:
    """Latest successful scans of a client."""
    client_ref = clean_ref("client_ref", client_ref)
    qs = ScanLog.objects.filter(client_ref=client_ref)
    if branch_ref:
        qs = qs.filter(branch_ref=branch_ref)
    return list(qs.order_by("-scanned_at", "-id")[:limit])
