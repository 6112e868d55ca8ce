"""
Ledger Service - cash-flow view, manual entries and compensating deletions.

This service handles:
- Running-balance view over any visible set of transactions
- Manual expenses (debited from the fund)
- Participant payouts (checked against cash and the participant balance)
- Transaction deletion with compensating balance adjustments
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from studio_ledger.core.config import Config
from studio_ledger.core.errors import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from studio_ledger.domain.models import Actor, NewTransaction, Transaction, TransactionType
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_admin, require_positive_amount
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.datetime_helpers import get_date_string, month_bounds
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import ZERO, format_money

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerRow:
    """A transaction with the cumulative cash total up to and including it."""

    transaction: Transaction
    running_balance: Decimal


def running_balance(transactions: Iterable[Transaction]) -> List[LedgerRow]:
    """
    Attach a running cash total to each transaction.

    Entries are accumulated oldest first, ordered by (date, created_at, id),
    adding income and subtracting everything else. The result is returned
    newest first. Input order does not matter.
    """
    ordered = sorted(
        transactions, key=lambda tx: (tx.date, tx.created_at_utc, tx.id)
    )

    balance = ZERO
    rows: List[LedgerRow] = []
    for tx in ordered:
        balance += tx.signed_amount
        rows.append(LedgerRow(transaction=tx, running_balance=balance))

    rows.reverse()
    return rows


class LedgerService:
    """Service for reading and mutating the cash-flow ledger."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "LedgerService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    def get_transactions(
        self, year: Optional[int] = None, month: Optional[int] = None
    ) -> List[LedgerRow]:
        """
        Return transactions newest first with a running balance.

        Args:
            year: Optional year filter
            month: Optional month filter (requires ``year``)

        The running balance is recomputed over the filtered set only.
        """
        start_date = end_date = None
        if month is not None:
            if year is None:
                raise ValidationError("A month filter requires a year")
            try:
                start_date, end_date = month_bounds(year, month)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
        elif year is not None:
            start_date, end_date = f"{year:04d}-01-01", f"{year:04d}-12-31"

        transactions = self.repository.list_transactions(
            start_date=start_date, end_date=end_date
        )
        return running_balance(transactions)

    def get_recent_transactions(self, limit: int = 10) -> List[Transaction]:
        return self.repository.list_transactions(limit=limit)

    def get_cash_balance(self) -> Decimal:
        """Total cash derived from every ledger entry."""
        return self.repository.get_cash_balance()

    # ------------------------------------------------------------------ #
    # Write side
    # ------------------------------------------------------------------ #

    def create_expense(
        self,
        *,
        category_id: int,
        description: str,
        amount: object,
        actor: Actor,
        date: Optional[str] = None,
    ) -> Transaction:
        """
        Record a manual expense paid out of the fund.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the category does not exist
            InsufficientFundsError: If the fund cannot cover the amount
        """
        require_admin(actor, "add expenses")
        value = require_positive_amount(amount)
        if not self.repository.category_exists(category_id):
            raise NotFoundError(f"Expense category not found: {category_id}")

        with transactional(self.db):
            fund = self.repository.get_fund()
            if fund.current_balance < value:
                available = format_money(fund.current_balance, Config.CURRENCY_SYMBOL)
                raise InsufficientFundsError(
                    f"Insufficient funds in the fund. Available: {available}"
                )

            transaction_id = self.repository.insert_transaction(
                NewTransaction(
                    date=date or get_date_string(),
                    type=TransactionType.EXPENSE,
                    amount=value,
                    created_by=actor.id,
                    category_id=category_id,
                    description=description,
                )
            )
            self.repository.increment_fund_balance(-value)

        logger.info(
            "expense_recorded",
            transaction_id=transaction_id,
            category_id=category_id,
            amount=str(value),
            created_by=actor.id,
        )
        return self.repository.get_transaction(transaction_id)

    def create_payout(
        self,
        participant_id: int,
        amount: object,
        actor: Actor,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Pay cash out to a participant.

        Both the shared cash pool and the participant's available balance must
        cover the amount; the checks run under the write lock.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the participant or their balance does not exist
            InsufficientFundsError: If cash or the participant balance is short
        """
        require_admin(actor, "make payouts")
        value = require_positive_amount(amount)

        with transactional(self.db):
            participant = self.repository.get_participant(participant_id)
            if participant is None:
                raise NotFoundError(f"Participant not found: {participant_id}")

            cash_balance = self.repository.get_cash_balance()
            if cash_balance < value:
                available = format_money(cash_balance, Config.CURRENCY_SYMBOL)
                raise InsufficientFundsError(f"Insufficient cash. Available: {available}")

            balance = self.repository.get_balance(participant_id)
            if balance is None or balance.available_amount < value:
                raise InsufficientFundsError("Insufficient funds on the participant balance")

            transaction_id = self.repository.insert_transaction(
                NewTransaction(
                    date=get_date_string(),
                    type=TransactionType.PAYOUT,
                    amount=value,
                    created_by=actor.id,
                    description=description or f"Payout: {participant.full_name}",
                    related_participant_id=participant_id,
                )
            )
            self.repository.increment_participant_balance(
                participant_id, -value, withdrawn_delta=value
            )

        logger.info(
            "payout_recorded",
            transaction_id=transaction_id,
            participant_id=participant_id,
            amount=str(value),
            created_by=actor.id,
        )
        return self.repository.get_transaction(transaction_id)

    def delete_transaction(self, transaction_id: int, actor: Actor) -> Transaction:
        """
        Delete a ledger entry and compensate the balance it moved.

        Deleting a payout credits the participant back; deleting an expense
        credits the fund back. Entries produced by invoice settlement cannot
        be deleted. Returns the deleted entry.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the transaction does not exist
            InvalidStateError: If the entry belongs to a settled invoice
        """
        require_admin(actor, "delete transactions")

        with transactional(self.db):
            transaction = self.repository.get_transaction(transaction_id)
            if transaction is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            if transaction.related_invoice_id is not None:
                raise InvalidStateError(
                    "Transactions produced by invoice settlement cannot be deleted"
                )

            if (
                transaction.type == TransactionType.PAYOUT
                and transaction.related_participant_id is not None
            ):
                self.repository.increment_participant_balance(
                    transaction.related_participant_id,
                    transaction.amount,
                    withdrawn_delta=-transaction.amount,
                )
            elif transaction.type == TransactionType.EXPENSE:
                self.repository.increment_fund_balance(transaction.amount)

            self.repository.delete_transaction(transaction_id)

        logger.info(
            "transaction_deleted",
            transaction_id=transaction_id,
            type=transaction.type.value,
            amount=str(transaction.amount),
            deleted_by=actor.id,
        )
        return transaction
