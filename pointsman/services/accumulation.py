"""
Accumulation service — turns business events into ledger credits.

Each event is applied in one transaction holding the account row lock:
counters and one-shot flags are read and written on the locked row together
with the entries they produce, so all awards of an event commit or none do.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from django.db import IntegrityError, transaction

from pointsman.db import run_atomic
from pointsman.exceptions import ValidationError
from pointsman.models import PURCHASE_REASONS, LedgerEntry, ProcessedEvent
from pointsman.protocols.events import BranchVisited, ClientRegistered, PurchaseCompleted
from pointsman.services import catalog
from pointsman.services.ledger import EntryDraft, append_locked, current_balance, lock_account
from pointsman.signals import points_earned
from pointsman.utils import ORDER_REF_MAX_LENGTH, clean_amount, clean_ref

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerDelta:
    """Outcome of applying one event."""

    entries: list[LedgerEntry] = field(default_factory=list)
    new_balance: int = 0
    replayed: bool = False

    @property
    def points(self) -> int:
        return sum(entry.delta for entry in self.entries)


def apply_event(client_ref: str, branch_ref: str, event) -> LedgerDelta:
    """
    Apply a business event to the client's account at a branch.

    Args:
        client_ref: Client identifier
        branch_ref: Branch identifier
        event: PurchaseCompleted, ClientRegistered or BranchVisited

    Returns:
        LedgerDelta with the entries created (possibly none)

    Raises:
        ValidationError: On malformed input or unknown event type
    """
    if isinstance(event, PurchaseCompleted):
        return apply_purchase(
            client_ref, branch_ref, event.order_ref, event.amount, is_first=event.is_first
        )
    if isinstance(event, ClientRegistered):
        return apply_registration(client_ref, branch_ref)
    if isinstance(event, BranchVisited):
        return apply_visit(client_ref, branch_ref, event.visit_date)
    raise ValidationError(message=f"Unsupported event: {type(event).__name__}", field="event")


def apply_purchase(
    client_ref: str,
    branch_ref: str,
    order_ref: str,
    amount,
    is_first: bool = False,
) -> LedgerDelta:
    """
    Award points for a completed order.

    Idempotent per order: a re-delivered order returns the entries recorded
    the first time with ``replayed=True``.
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    order_ref = clean_ref("order_ref", order_ref, max_length=ORDER_REF_MAX_LENGTH)
    amount = clean_amount("amount", amount)
    nonce = ProcessedEvent.purchase_nonce(client_ref, branch_ref, order_ref)

    def _apply():
        account = lock_account(client_ref, branch_ref, create=True)

        try:
            with transaction.atomic():
                ProcessedEvent.objects.create(nonce=nonce, kind="purchase")
        except IntegrityError:
            entries = list(
                account.entries.filter(
                    order_ref=order_ref, reason_code__in=PURCHASE_REASONS
                ).order_by("id")
            )
            return LedgerDelta(entries=entries, new_balance=account.balance, replayed=True)

        rules = catalog.get_rules(branch_ref)
        account.purchase_count += 1
        awards = rules.purchase_awards(
            amount,
            purchase_count=account.purchase_count,
            is_first=bool(is_first),
            first_purchase_completed=account.first_purchase_completed,
        )
        account.first_purchase_completed = True
        account.save(update_fields=["purchase_count", "first_purchase_completed", "updated_at"])

        entries = append_locked(
            account,
            [EntryDraft(a.reason_code, a.points, order_ref=order_ref, description=a.description) for a in awards],
        )
        _notify(account, entries)
        return LedgerDelta(entries=entries, new_balance=account.balance)

    delta = run_atomic(_apply, label="accumulation.purchase")
    if delta.replayed:
        logger.debug("Purchase %s already applied for %s@%s", order_ref, client_ref, branch_ref)
    else:
        logger.info(
            "Purchase %s: %+d pts for %s@%s (balance %d)",
            order_ref,
            delta.points,
            client_ref,
            branch_ref,
            delta.new_balance,
        )
    return delta


def apply_registration(client_ref: str, branch_ref: str) -> LedgerDelta:
    """
    Open the account and grant the registration bonus once.

    A repeated registration returns an empty delta with ``replayed=True``.
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)

    def _apply():
        account = lock_account(client_ref, branch_ref, create=True)
        if account.registration_bonus_granted:
            return LedgerDelta(new_balance=account.balance, replayed=True)

        award = catalog.get_rules(branch_ref).registration.evaluate(already_granted=False)
        if award is None:
            return LedgerDelta(new_balance=account.balance)

        account.registration_bonus_granted = True
        account.save(update_fields=["registration_bonus_granted", "updated_at"])
        entries = append_locked(account, [EntryDraft(award.reason_code, award.points, description=award.description)])
        _notify(account, entries)
        return LedgerDelta(entries=entries, new_balance=account.balance)

    delta = run_atomic(_apply, label="accumulation.registration")
    if delta.entries:
        logger.info("Registration bonus %+d pts for %s@%s", delta.points, client_ref, branch_ref)
    return delta


def apply_visit(client_ref: str, branch_ref: str, visit_date) -> LedgerDelta:
    """
    Award points for a branch visit, capped per calendar day.

    Visits dated before the last recorded visit award nothing.
    """
    client_ref = clean_ref("client_ref", client_ref)
    branch_ref = clean_ref("branch_ref", branch_ref)
    if isinstance(visit_date, datetime):
        visit_date = visit_date.date()
    if not isinstance(visit_date, date):
        raise ValidationError(message="visit_date must be a date", field="visit_date")

    rule = catalog.get_rules(branch_ref).branch_visit
    if not rule.enabled:
        return LedgerDelta(new_balance=current_balance(client_ref, branch_ref))

    def _apply():
        account = lock_account(client_ref, branch_ref, create=True)
        award = rule.evaluate(visit_date, account.last_visit_date, account.visits_on_last_date)
        if award is None:
            return LedgerDelta(new_balance=account.balance)

        if account.last_visit_date == visit_date:
            account.visits_on_last_date += 1
        else:
            account.last_visit_date = visit_date
            account.visits_on_last_date = 1
        account.save(update_fields=["last_visit_date", "visits_on_last_date", "updated_at"])

        entries = append_locked(account, [EntryDraft(award.reason_code, award.points, description=award.description)])
        _notify(account, entries)
        return LedgerDelta(entries=entries, new_balance=account.balance)

    delta = run_atomic(_apply, label="accumulation.visit")
    if delta.entries:
        logger.info("Visit %s: %+d pts for %s@%s", visit_date, delta.points, client_ref, branch_ref)
    else:
        logger.debug("Visit %s for %s@%s awarded nothing", visit_date, client_ref, branch_ref)
    return delta


def _notify(account, entries: list[LedgerEntry]) -> None:
    if not entries:
        return
    new_balance = account.balance
    transaction.on_commit(
        lambda: points_earned.send(
            sender=account.__class__,
            account=account,
            entries=entries,
            new_balance=new_balance,
        )
    )
