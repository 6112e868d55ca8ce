"""Unit tests for AdjustmentService (bonuses, returns to fund, free cash)."""

from decimal import Decimal

import pytest

from studio_ledger.core.errors import AuthorizationError, InsufficientFundsError, NotFoundError
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.adjustment_service import AdjustmentService


@pytest.fixture
def funded(db_conn):
    StudioRepository(db_conn).update_fund_balance(Decimal("10000"))
    db_conn.commit()
    return db_conn


class TestBonus:
    def test_bonus_moves_money_from_fund_to_participant(self, funded, admin, roster):
        service = AdjustmentService(funded)

        new_fund = service.issue_bonus(roster["designer"], "2500", admin)

        balance = StudioRepository(funded).get_balance(roster["designer"])
        assert new_fund == Decimal("7500.00")
        assert balance.available_amount == Decimal("2500.00")
        assert balance.total_earned == Decimal("2500.00")

    def test_bonus_writes_no_ledger_entry(self, funded, admin, roster):
        AdjustmentService(funded).issue_bonus(roster["designer"], "100", admin)

        assert StudioRepository(funded).list_transactions() == []

    def test_bonus_larger_than_fund_rejected(self, funded, admin, roster):
        service = AdjustmentService(funded)

        with pytest.raises(InsufficientFundsError):
            service.issue_bonus(roster["designer"], "10000.01", admin)

        assert service.get_fund_balance() == Decimal("10000.00")
        balance = StudioRepository(funded).get_balance(roster["designer"])
        assert balance.available_amount == Decimal("0.00")

    def test_bonus_requires_admin(self, funded, member, roster):
        with pytest.raises(AuthorizationError):
            AdjustmentService(funded).issue_bonus(roster["designer"], "1", member)

    def test_unknown_participant(self, funded, admin):
        with pytest.raises(NotFoundError):
            AdjustmentService(funded).issue_bonus(999, "1", admin)


class TestReturnToFund:
    def test_return_moves_money_back(self, funded, admin, roster):
        service = AdjustmentService(funded)
        service.issue_bonus(roster["partner_a"], "1000", admin)

        new_fund = service.return_to_fund(roster["partner_a"], "400", admin)

        balance = StudioRepository(funded).get_balance(roster["partner_a"])
        assert new_fund == Decimal("9400.00")
        assert balance.available_amount == Decimal("600.00")
        assert balance.total_returned == Decimal("400.00")
        assert balance.available_amount == (
            balance.total_earned - balance.total_withdrawn - balance.total_returned
        )

    def test_return_exceeding_balance_rejected(self, funded, admin, roster):
        with pytest.raises(InsufficientFundsError, match="participant balance"):
            AdjustmentService(funded).return_to_fund(roster["partner_a"], "1", admin)

        assert AdjustmentService(funded).get_fund_balance() == Decimal("10000.00")


class TestFreeCash:
    def test_free_cash_is_limit_minus_obligations(self, funded, admin, roster):
        service = AdjustmentService(funded)
        service.issue_bonus(roster["partner_a"], "3000", admin)

        assert service.get_free_cash_amount() == Decimal("497000.00")

    def test_free_cash_floors_at_zero(self, db_conn, roster):
        repo = StudioRepository(db_conn)
        repo.update_settings(Decimal("6"), Decimal("10"), Decimal("100"))
        repo.increment_participant_balance(
            roster["partner_a"], Decimal("500"), earned_delta=Decimal("500")
        )
        db_conn.commit()

        assert AdjustmentService(db_conn).get_free_cash_amount() == Decimal("0.00")
