"""
Dashboard Service - one-call financial summary of the studio.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from studio_ledger.domain.models import Balance, InvoiceStatus, Transaction
from studio_ledger.repositories import StudioRepository
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import ZERO, round_money

logger = get_logger(__name__)

RECENT_TRANSACTION_LIMIT = 10


@dataclass(frozen=True)
class DashboardSummary:
    """
    Snapshot shown on the home screen.

    Attributes:
        cash_balance: Ledger-derived total cash
        receivables: Sum of invoices sent but not yet paid
        fund_balance: Current fund balance
        fund_limit: Configured fund ceiling
        free_cash: Fund limit minus all available balances, floored at zero
        balances: Participant balances, largest available amount first
        recent_transactions: Newest ledger entries
    """

    cash_balance: Decimal
    receivables: Decimal
    fund_balance: Decimal
    fund_limit: Decimal
    free_cash: Decimal
    balances: List[Balance]
    recent_transactions: List[Transaction]


class DashboardService:
    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "DashboardService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_summary(self) -> DashboardSummary:
        settings = self.repository.get_settings()
        fund = self.repository.get_fund()
        balances = self.repository.list_balances()
        owed = sum((b.available_amount for b in balances), ZERO)

        summary = DashboardSummary(
            cash_balance=self.repository.get_cash_balance(),
            receivables=self.repository.sum_invoices(InvoiceStatus.SENT),
            fund_balance=fund.current_balance,
            fund_limit=settings.fund_limit,
            free_cash=max(ZERO, round_money(settings.fund_limit - owed)),
            balances=balances,
            recent_transactions=self.repository.list_transactions(
                limit=RECENT_TRANSACTION_LIMIT
            ),
        )
        logger.debug(
            "dashboard_summary_built",
            cash_balance=str(summary.cash_balance),
            receivables=str(summary.receivables),
        )
        return summary
