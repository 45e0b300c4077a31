"""
Pointsman public API.

ACCUMULATION:
    PointsService.apply_purchase_event(...)     - Award points for an order
    PointsService.apply_registration_event(...) - Registration bonus
    PointsService.apply_visit_event(...)        - Branch visit points

LEDGER:
    PointsService.get_balance(client, branch)   - Committed balance
    PointsService.get_history(client, branch, page, page_size)

REDEMPTION:
    PointsService.redeem_reward(client, reward_id, branch)
    PointsService.use_redemption_code(code, order_ref)

IDENTITY:
    PointsService.issue_card_token(client, branch)
    PointsService.verify_scan(raw_payload, branch)
"""

from pointsman.services import accumulation, cards, catalog, ledger, redemption
from pointsman.services.accumulation import LedgerDelta
from pointsman.services.cards import CardTokenResult, ScanResult
from pointsman.services.ledger import HistoryPage
from pointsman.services.redemption import CodeUseResult, RedemptionResult


class PointsService:
    """
    Pointsman public API.

    Uses @classmethod for extensibility. Every method delegates to the
    module-level functions in ``pointsman.services``.
    """

    # ======================================================================
    # Accumulation
    # ======================================================================

    @classmethod
    def apply_purchase_event(
        cls,
        client_ref: str,
        branch_ref: str,
        order_ref: str,
        amount,
        is_first_purchase: bool = False,
    ) -> LedgerDelta:
        """
        Award points for a completed order.

        Args:
            client_ref: Client identifier
            branch_ref: Branch identifier
            order_ref: External order ID (idempotency key)
            amount: Amount spent (Decimal, int or numeric string)
            is_first_purchase: Caller's claim that this is the client's first order

        Returns:
            LedgerDelta (replayed=True if the order was already applied)
        """
        return accumulation.apply_purchase(
            client_ref, branch_ref, order_ref, amount, is_first=is_first_purchase
        )

    @classmethod
    def apply_registration_event(cls, client_ref: str, branch_ref: str) -> LedgerDelta:
        """Open the account and grant the registration bonus once."""
        return accumulation.apply_registration(client_ref, branch_ref)

    @classmethod
    def apply_visit_event(cls, client_ref: str, branch_ref: str, date) -> LedgerDelta:
        return accumulation.apply_visit(client_ref, branch_ref, date)

    @classmethod
    def apply_event(cls, client_ref: str, branch_ref: str, event) -> LedgerDelta:
        return accumulation.apply_event(client_ref, branch_ref, event)

    # ======================================================================
    # Ledger
    # ======================================================================

    @classmethod
    def get_balance(cls, client_ref: str, branch_ref: str) -> int:
        """Get current points balance. Returns 0 if no account."""
        return ledger.current_balance(client_ref, branch_ref)

    @classmethod
    def get_history(cls, client_ref: str, branch_ref: str, page: int = 1, page_size: int = 20) -> HistoryPage:
        """Paginated ledger history, newest first."""
        return ledger.history(client_ref, branch_ref, page=page, page_size=page_size)

    @classmethod
    def adjust_points(
        cls,
        client_ref: str,
        branch_ref: str,
        delta: int,
        description: str,
        created_by: str = "",
    ):
        return ledger.adjust(client_ref, branch_ref, delta, description, created_by=created_by)

    # ======================================================================
    # Redemption
    # ======================================================================

    @classmethod
    def eligible_rewards(cls, client_ref: str, branch_ref: str) -> list:
        balance = ledger.current_balance(client_ref, branch_ref)
        return catalog.eligible_rewards(client_ref, branch_ref, balance)

    @classmethod
    def redeem_reward(cls, client_ref: str, reward_id, branch_ref: str, redeemed_by: str = "") -> RedemptionResult:
        """
        Exchange points for a reward and issue a single-use code.

        Raises:
            RewardUnavailable, RewardExhausted, ClientLimitReached, InsufficientBalance
        """
        return redemption.redeem(client_ref, reward_id, branch_ref, redeemed_by=redeemed_by)

    @classmethod
    def use_redemption_code(cls, code: str, order_ref: str) -> CodeUseResult:
        """
        Consume a redemption code in an order.

        Raises:
            CodeNotFound, AlreadyUsed, CodeExpired
        """
        return redemption.use_code(code, order_ref)

    # ======================================================================
    # Identity
    # ======================================================================

    @classmethod
    def issue_card_token(cls, client_ref: str, branch_ref: str) -> CardTokenResult:
        return cards.issue_token(client_ref, branch_ref)

    @classmethod
    def verify_scan(
        cls,
        raw_payload: str,
        branch_ref: str,
        terminal_ref: str = "",
        employee_ref: str = "",
    ) -> ScanResult:
        """
        Verify a scanned card token.

        Raises:
            TokenInvalid, TokenExpired, TokenSuperseded
        """
        return cards.verify(raw_payload, branch_ref, terminal_ref=terminal_ref, employee_ref=employee_ref)
