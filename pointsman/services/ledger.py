"""Ledger service - balances and the append-only point history.

Every balance change goes through ``append_locked()`` while the caller holds
the account row lock inside ``transaction.atomic()``. The cached balance on
ClientAccount is the live value; summing history is only the consistency check.
"""

import logging
from dataclasses import dataclass

from django.db.models import Sum

from pointsman.conf import pointsman_settings
from pointsman.db import run_atomic
from pointsman.exceptions import AccountNotFound, InsufficientBalance, ValidationError
from pointsman.models import ClientAccount, Direction, LedgerEntry, ReasonCode
from pointsman.utils import ORDER_REF_MAX_LENGTH, clean_page, clean_points, clean_ref

logger = logging.getLogger(__name__)


_DIRECTION_BY_REASON = {
    ReasonCode.PURCHASE_AMOUNT: Direction.EARNED,
    ReasonCode.ACCUMULATED_PURCHASES: Direction.EARNED,
    ReasonCode.FIRST_PURCHASE: Direction.EARNED,
    ReasonCode.CLIENT_REGISTRATION: Direction.EARNED,
    ReasonCode.BRANCH_VISIT: Direction.EARNED,
    ReasonCode.REDEMPTION: Direction.REDEEMED,
    ReasonCode.EXPIRATION: Direction.EXPIRED,
    ReasonCode.MANUAL_ADJUSTMENT: Direction.ADJUSTED,
}


@dataclass(frozen=True)
class EntryDraft:
    """A ledger entry before it is appended. ``delta`` is signed."""

    reason_code: str
    delta: int
    order_ref: str = ""
    description: str = ""
    created_by: str = ""

    @property
    def direction(self) -> str:
        return _DIRECTION_BY_REASON[self.reason_code]

    def validate(self) -> None:
        if self.reason_code not in _DIRECTION_BY_REASON:
            raise ValidationError(message=f"Unknown reason code: {self.reason_code}")
        clean_points("delta", self.delta, allow_negative=True)
        if len(self.order_ref) > ORDER_REF_MAX_LENGTH:
            raise ValidationError(message="order_ref is too long", field="order_ref")
        direction = self.direction
        if direction == Direction.EARNED and self.delta < 0:
            raise ValidationError(message="Earned entries must be credits")
        if direction in (Direction.REDEEMED, Direction.EXPIRED) and self.delta > 0:
            raise ValidationError(message=f"{direction} entries must be debits")


@dataclass(frozen=True)
class HistoryPage:
    """One page of ledger history, newest first."""

    entries: list[LedgerEntry]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


@dataclass(frozen=True)
class ConsistencyReport:
    client_ref: str
    branch_ref: str
    cached_balance: int
    ledger_balance: int

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance


# ======================================================================
# Accounts
# ======================================================================


def get_account(client_ref: str, branch_ref: str) -> ClientAccount | None:
    """Get account without locking (display reads)."""
    try:
        return ClientAccount.objects.get(client_ref=client_ref, branch_ref=branch_ref)
    except ClientAccount.DoesNotExist:
        return None


def lock_account(client_ref: str, branch_ref: str, create: bool = False) -> ClientAccount:
    """
    Get account with row-level lock for mutation.

    MUST be called inside transaction.atomic().
    With ``create=True`` the account is opened first if missing; concurrent
    openings collapse on the unique constraint.

    Raises:
        AccountNotFound: If missing/inactive and ``create`` is False
    """
    if create:
        ClientAccount.objects.get_or_create(client_ref=client_ref, branch_ref=branch_ref)
    try:
        return ClientAccount.objects.select_for_update().get(
            client_ref=client_ref,
            branch_ref=branch_ref,
            is_active=True,
        )
    except ClientAccount.DoesNotExist:
        raise AccountNotFound(client_ref=client_ref, branch_ref=branch_ref)


def open_account(client_ref: str, branch_ref: str) -> ClientAccount:
    """
    Open an account for a client at a branch.

    Idempotent — returns the existing account if already open.
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    account, created = ClientAccount.objects.get_or_create(
        client_ref=client_ref, branch_ref=branch_ref
    )
    if created:
        logger.info("Opened loyalty account %s@%s", client_ref, branch_ref)
    return account


# ======================================================================
# Writes
# ======================================================================


def append_locked(account: ClientAccount, drafts: list[EntryDraft]) -> list[LedgerEntry]:
    """
    Append entries to a locked account and update its cached balance.

    All-or-nothing: if the balance would go negative at any entry, raises
    InsufficientBalance before writing anything.
    """
    for draft in drafts:
        draft.validate()

    running = account.balance
    earned = 0
    for draft in drafts:
        running += draft.delta
        if running < 0:
            raise InsufficientBalance(
                available=account.balance,
                requested=-sum(d.delta for d in drafts if d.delta < 0),
            )
        if draft.delta > 0:
            earned += draft.delta

    entries = []
    balance = account.balance
    for draft in drafts:
        balance += draft.delta
        entries.append(
            LedgerEntry.objects.create(
                account=account,
                direction=draft.direction,
                amount=abs(draft.delta),
                delta=draft.delta,
                balance_after=balance,
                reason_code=draft.reason_code,
                order_ref=draft.order_ref,
                description=draft.description[:200],
                created_by=draft.created_by,
            )
        )

    if entries:
        account.balance = balance
        account.lifetime_points += earned
        account.save(update_fields=["balance", "lifetime_points", "updated_at"])

    return entries


def append(client_ref: str, branch_ref: str, drafts: list[EntryDraft]) -> int:
    """
    Atomically append entries to an account.

    Returns:
        New balance

    Raises:
        AccountNotFound: If the account does not exist
        InsufficientBalance: If the entries would make the balance negative
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)

    def _append():
        account = lock_account(client_ref, branch_ref)
        append_locked(account, list(drafts))
        return account.balance

    return run_atomic(_append, label="ledger.append")


def adjust(
    client_ref: str,
    branch_ref: str,
    delta: int,
    description: str,
    created_by: str = "",
) -> LedgerEntry:
    """
    Manual correction (positive or negative).

    Raises:
        ValidationError: If delta is zero or not an integer
        InsufficientBalance: If a negative adjustment exceeds the balance
    """
    clean_points("delta", delta, allow_negative=True)
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)

    def _adjust():
        account = lock_account(client_ref, branch_ref)
        [entry] = append_locked(
            account,
            [EntryDraft(ReasonCode.MANUAL_ADJUSTMENT, delta, description=description, created_by=created_by)],
        )
        return entry

    entry = run_atomic(_adjust, label="ledger.adjust")
    logger.info(
        "Adjusted %s@%s by %+d (%s)", client_ref, branch_ref, delta, created_by or "system"
    )
    return entry


def expire_points(
    client_ref: str,
    branch_ref: str,
    points: int,
    description: str = "",
    created_by: str = "",
) -> LedgerEntry:
    """Remove expired points from the balance."""
    clean_points("points", points)
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)

    def _expire():
        account = lock_account(client_ref, branch_ref)
        [entry] = append_locked(
            account,
            [
                EntryDraft(
                    ReasonCode.EXPIRATION,
                    -points,
                    description=description or "Pontos expirados",
                    created_by=created_by,
                )
            ],
        )
        return entry

    return run_atomic(_expire, label="ledger.expire")


# ======================================================================
# Reads
# ======================================================================


def current_balance(client_ref: str, branch_ref: str) -> int:
    """Committed balance. Returns 0 if the account does not exist."""
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    balance = (
        ClientAccount.objects.filter(client_ref=client_ref, branch_ref=branch_ref)
        .values_list("balance", flat=True)
        .first()
    )
    return balance or 0


def history(
    client_ref: str,
    branch_ref: str,
    page: int = 1,
    page_size: int = 20,
    direction: str | None = None,
    reason_code: str | None = None,
) -> HistoryPage:
    """Paginated history of an account, newest first."""
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    page, page_size = clean_page(page, page_size, pointsman_settings.HISTORY_MAX_PAGE_SIZE)

    qs = LedgerEntry.objects.filter(
        account__client_ref=client_ref,
        account__branch_ref=branch_ref,
    )
    if direction:
        if direction not in Direction.values:
            raise ValidationError(message=f"Unknown direction: {direction}", field="direction")
        qs = qs.filter(direction=direction)
    if reason_code:
        if reason_code not in ReasonCode.values:
            raise ValidationError(message=f"Unknown reason code: {reason_code}", field="reason_code")
        qs = qs.filter(reason_code=reason_code)

    total = qs.count()
    offset = (page - 1) * page_size
    entries = list(qs.order_by("-created_at", "-id")[offset : offset + page_size])
    return HistoryPage(entries=entries, page=page, page_size=page_size, total=total)


def check_consistency(client_ref: str, branch_ref: str) -> ConsistencyReport:
    """
    Compare the cached balance with the signed sum of the history.

    Raises:
        AccountNotFound: If the account does not exist
    """
    account = get_account(client_ref, branch_ref)
    if account is None:
        raise AccountNotFound(client_ref=client_ref, branch_ref=branch_ref)
    total = account.entries.aggregate(total=Sum("delta"))["total"] or 0
    report = ConsistencyReport(
        client_ref=account.client_ref,
        branch_ref=account.branch_ref,
        cached_balance=account.balance,
        ledger_balance=total,
    )
    if not report.consistent:
        logger.warning(
            "Ledger mismatch on %s@%s: cached=%d ledger=%d",
            account.client_ref,
            account.branch_ref,
            report.cached_balance,
            report.ledger_balance,
        )
    return report
