"""
Unit tests for LedgerService and the running-balance view.
"""

from __future__ import annotations

import random
from decimal import Decimal

import pytest

from studio_ledger.core.errors import (
    AuthorizationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from studio_ledger.domain.models import NewTransaction, Transaction, TransactionType
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.ledger_service import LedgerService, running_balance


def _tx(tx_id: int, date: str, tx_type: TransactionType, amount: str, created: str = None) -> Transaction:
    return Transaction(
        id=tx_id,
        date=date,
        type=tx_type,
        amount=Decimal(amount),
        created_by="admin-1",
        created_at_utc=created or f"{date}T10:00:00.000Z",
    )


def _seed_income(db_conn, amount: str, date: str = "2025-03-01") -> int:
    repo = StudioRepository(db_conn)
    tx_id = repo.insert_transaction(
        NewTransaction(
            date=date,
            type=TransactionType.INCOME,
            amount=Decimal(amount),
            created_by="admin-1",
            description="Opening cash",
        )
    )
    db_conn.commit()
    return tx_id


class TestRunningBalance:
    def test_accumulates_oldest_first_and_returns_newest_first(self):
        transactions = [
            _tx(1, "2025-01-01", TransactionType.INCOME, "1000"),
            _tx(2, "2025-01-02", TransactionType.EXPENSE, "150"),
            _tx(3, "2025-01-03", TransactionType.PAYOUT, "200"),
        ]

        rows = running_balance(transactions)

        assert [row.transaction.id for row in rows] == [3, 2, 1]
        assert [row.running_balance for row in rows] == [
            Decimal("650.00"),
            Decimal("850.00"),
            Decimal("1000.00"),
        ]

    def test_input_order_does_not_matter(self):
        transactions = [
            _tx(1, "2025-01-01", TransactionType.INCOME, "500"),
            _tx(2, "2025-01-01", TransactionType.EXPENSE, "20", created="2025-01-01T11:00:00.000Z"),
            _tx(3, "2025-01-05", TransactionType.INCOME, "75.50"),
            _tx(4, "2025-01-06", TransactionType.PAYOUT, "100"),
        ]
        shuffled = transactions[:]
        random.Random(7).shuffle(shuffled)

        assert running_balance(shuffled) == running_balance(transactions)

    def test_same_day_entries_ordered_by_creation_time(self):
        transactions = [
            _tx(2, "2025-01-01", TransactionType.EXPENSE, "100", created="2025-01-01T12:00:00.000Z"),
            _tx(1, "2025-01-01", TransactionType.INCOME, "300", created="2025-01-01T09:00:00.000Z"),
        ]

        rows = running_balance(transactions)

        assert rows[-1].transaction.id == 1
        assert rows[-1].running_balance == Decimal("300.00")
        assert rows[0].running_balance == Decimal("200.00")

    def test_empty(self):
        assert running_balance([]) == []


class TestReadSide:
    def test_month_filter_recomputes_over_visible_rows(self, db_conn):
        _seed_income(db_conn, "1000", date="2025-02-15")
        _seed_income(db_conn, "250", date="2025-03-10")
        service = LedgerService(db_conn)

        rows = service.get_transactions(year=2025, month=3)

        assert len(rows) == 1
        assert rows[0].running_balance == Decimal("250.00")
        assert service.get_cash_balance() == Decimal("1250.00")

    def test_year_filter(self, db_conn):
        _seed_income(db_conn, "100", date="2024-12-31")
        _seed_income(db_conn, "200", date="2025-01-01")
        service = LedgerService(db_conn)

        rows = service.get_transactions(year=2025)

        assert [row.transaction.amount for row in rows] == [Decimal("200.00")]

    def test_month_without_year_rejected(self, db_conn):
        with pytest.raises(ValidationError, match="requires a year"):
            LedgerService(db_conn).get_transactions(month=3)

    def test_invalid_month_rejected(self, db_conn):
        with pytest.raises(ValidationError, match="Invalid month"):
            LedgerService(db_conn).get_transactions(year=2025, month=13)


class TestExpenses:
    def _category(self, db_conn) -> int:
        category_id = StudioRepository(db_conn).insert_expense_category("Software", "software")
        db_conn.commit()
        return category_id

    def test_expense_debits_fund(self, db_conn, admin):
        StudioRepository(db_conn).update_fund_balance(Decimal("1000"))
        db_conn.commit()
        category_id = self._category(db_conn)
        service = LedgerService(db_conn)

        tx = service.create_expense(
            category_id=category_id,
            description="Licences",
            amount="300",
            actor=admin,
            date="2025-04-01",
        )

        assert tx.type == TransactionType.EXPENSE
        assert tx.amount == Decimal("300.00")
        assert tx.category_slug == "software"
        assert StudioRepository(db_conn).get_fund().current_balance == Decimal("700.00")

    def test_expense_larger_than_fund_rejected(self, db_conn, admin):
        category_id = self._category(db_conn)

        with pytest.raises(InsufficientFundsError, match="Insufficient funds in the fund"):
            LedgerService(db_conn).create_expense(
                category_id=category_id, description="Too much", amount="1", actor=admin
            )

        assert StudioRepository(db_conn).list_transactions() == []

    def test_unknown_category_rejected(self, db_conn, admin):
        with pytest.raises(NotFoundError):
            LedgerService(db_conn).create_expense(
                category_id=999, description="x", amount="1", actor=admin
            )

    def test_non_admin_rejected(self, db_conn, member):
        with pytest.raises(AuthorizationError, match="Only an admin"):
            LedgerService(db_conn).create_expense(
                category_id=1, description="x", amount="1", actor=member
            )


class TestPayouts:
    def test_payout_debits_participant(self, db_conn, admin, roster):
        _seed_income(db_conn, "5000")
        repo = StudioRepository(db_conn)
        repo.increment_participant_balance(
            roster["partner_a"], Decimal("1000"), earned_delta=Decimal("1000")
        )
        db_conn.commit()
        service = LedgerService(db_conn)

        tx = service.create_payout(roster["partner_a"], "400", admin)

        balance = repo.get_balance(roster["partner_a"])
        assert tx.type == TransactionType.PAYOUT
        assert tx.related_participant_id == roster["partner_a"]
        assert tx.description == "Payout: Alex Partner"
        assert balance.available_amount == Decimal("600.00")
        assert balance.total_withdrawn == Decimal("400.00")
        assert service.get_cash_balance() == Decimal("4600.00")

    def test_payout_exceeding_cash_rejected(self, db_conn, admin, roster):
        _seed_income(db_conn, "100")
        StudioRepository(db_conn).increment_participant_balance(
            roster["partner_a"], Decimal("1000"), earned_delta=Decimal("1000")
        )
        db_conn.commit()

        with pytest.raises(InsufficientFundsError, match="Insufficient cash"):
            LedgerService(db_conn).create_payout(roster["partner_a"], "500", admin)

    def test_payout_exceeding_balance_rejected(self, db_conn, admin, roster):
        _seed_income(db_conn, "5000")

        with pytest.raises(InsufficientFundsError, match="participant balance"):
            LedgerService(db_conn).create_payout(roster["partner_a"], "1", admin)

        balance = StudioRepository(db_conn).get_balance(roster["partner_a"])
        assert balance.available_amount == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_invalid_amount_rejected(self, db_conn, admin, roster, amount):
        with pytest.raises(ValidationError):
            LedgerService(db_conn).create_payout(roster["partner_a"], amount, admin)


class TestDeletion:
    def test_deleting_payout_restores_participant(self, db_conn, admin, roster):
        _seed_income(db_conn, "5000")
        repo = StudioRepository(db_conn)
        repo.increment_participant_balance(
            roster["partner_b"], Decimal("800"), earned_delta=Decimal("800")
        )
        db_conn.commit()
        service = LedgerService(db_conn)
        payout = service.create_payout(roster["partner_b"], "300", admin)

        service.delete_transaction(payout.id, admin)

        balance = repo.get_balance(roster["partner_b"])
        assert balance.available_amount == Decimal("800.00")
        assert balance.total_withdrawn == Decimal("0.00")
        assert repo.get_transaction(payout.id) is None

    def test_deleting_expense_restores_fund(self, db_conn, admin):
        repo = StudioRepository(db_conn)
        repo.update_fund_balance(Decimal("500"))
        category_id = repo.insert_expense_category("Rent", "rent")
        db_conn.commit()
        service = LedgerService(db_conn)
        expense = service.create_expense(
            category_id=category_id, description="March rent", amount="200", actor=admin
        )

        service.delete_transaction(expense.id, admin)

        assert repo.get_fund().current_balance == Decimal("500.00")

    def test_deleting_income_has_no_compensation(self, db_conn, admin):
        tx_id = _seed_income(db_conn, "100")

        deleted = LedgerService(db_conn).delete_transaction(tx_id, admin)

        assert deleted.id == tx_id
        assert StudioRepository(db_conn).get_cash_balance() == Decimal("0.00")

    def test_settlement_entries_cannot_be_deleted(self, db_conn, admin, client_id):
        repo = StudioRepository(db_conn)
        invoice_id = repo.insert_invoice("INV-0001", client_id, Decimal("100"), "admin-1")
        tx_id = repo.insert_transaction(
            NewTransaction(
                date="2025-01-01",
                type=TransactionType.INCOME,
                amount=Decimal("100"),
                created_by="admin-1",
                related_invoice_id=invoice_id,
            )
        )
        db_conn.commit()

        with pytest.raises(InvalidStateError):
            LedgerService(db_conn).delete_transaction(tx_id, admin)

        assert repo.get_transaction(tx_id) is not None

    def test_missing_transaction(self, db_conn, admin):
        with pytest.raises(NotFoundError):
            LedgerService(db_conn).delete_transaction(42, admin)


def test_recent_transactions_newest_first(db_conn):
    for day in range(1, 13):
        _seed_income(db_conn, "10", date=f"2025-01-{day:02d}")

    recent = LedgerService(db_conn).get_recent_transactions(limit=10)

    assert len(recent) == 10
    assert recent[0].date == "2025-01-12"
    assert recent[-1].date == "2025-01-03"
