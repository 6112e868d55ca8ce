"""
Unit tests for the distribution calculator.

The calculator is pure, so these tests build Settings and Participant records
directly without a database.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from studio_ledger.domain.models import Participant, ParticipantType, Settings, TransactionType
from studio_ledger.services.distribution_calculator import (
    calculate_distribution,
    select_active_participants,
)
from studio_ledger.utils.money import round_money


def _settings(tax="6", fund_rate="10", limit="500000") -> Settings:
    return Settings(
        tax_rate=Decimal(tax),
        fund_contribution_rate=Decimal(fund_rate),
        fund_limit=Decimal(limit),
    )


def _partner(pid: int, name: str = None) -> Participant:
    return Participant(pid, name or f"Partner {pid}", ParticipantType.PARTNER)


def _percentage(pid: int, rate: str) -> Participant:
    return Participant(pid, f"Percent {pid}", ParticipantType.PERCENTAGE, Decimal(rate))


@pytest.fixture
def roster():
    return [_percentage(1, "15"), _partner(2), _partner(3)]


class TestReferenceScenario:
    def test_full_breakdown(self, roster):
        """
        Given gross 100,000, tax 6%, fund 10%, limit 500,000 and fund at 490,000
        When the invoice is distributed to one 15% participant and two partners
        Then every intermediate amount matches the hand calculation.
        """
        result = calculate_distribution(
            Decimal("100000"), _settings(), Decimal("490000"), roster
        )
        breakdown = result.breakdown

        assert breakdown.gross_amount == Decimal("100000.00")
        assert breakdown.tax_amount == Decimal("6000.00")
        assert breakdown.after_tax == Decimal("94000.00")
        assert breakdown.fund_contribution == Decimal("9400.00")
        assert breakdown.after_fund == Decimal("84600.00")
        assert [p.amount for p in breakdown.percentage_payments] == [Decimal("12690.00")]
        assert breakdown.after_percentage == Decimal("71910.00")
        assert [p.amount for p in breakdown.partner_payments] == [
            Decimal("35955.00"),
            Decimal("35955.00"),
        ]
        assert breakdown.total_distributed == Decimal("84600.00")
        assert breakdown.retained_amount == Decimal("0.00")
        assert breakdown.new_fund_balance == Decimal("499400.00")

    def test_ledger_entries_and_balance_updates(self, roster):
        result = calculate_distribution(
            Decimal("100000"), _settings(), Decimal("490000"), roster
        )

        assert [(t.type, t.category_slug, t.amount) for t in result.transactions] == [
            (TransactionType.INCOME, None, Decimal("100000.00")),
            (TransactionType.EXPENSE, "tax", Decimal("6000.00")),
            (TransactionType.EXPENSE, "fund_contribution", Decimal("9400.00")),
        ]
        assert {u.participant_id: u.amount for u in result.balance_updates} == {
            1: Decimal("12690.00"),
            2: Decimal("35955.00"),
            3: Decimal("35955.00"),
        }


class TestRounding:
    def test_partner_remainder_goes_to_first_partner(self):
        partners = [_partner(1), _partner(2), _partner(3)]
        result = calculate_distribution(
            Decimal("100"), _settings(tax="0", fund_rate="0"), Decimal("0"), partners
        )

        amounts = [p.amount for p in result.breakdown.partner_payments]
        assert amounts == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert sum(amounts) == Decimal("100.00")

    def test_conservation_with_awkward_amounts(self):
        participants = [_percentage(1, "12.5"), _percentage(2, "7"), _partner(3), _partner(4), _partner(5)]
        result = calculate_distribution(
            Decimal("12345.67"), _settings(tax="6.5", fund_rate="11"), Decimal("0"), participants
        )
        b = result.breakdown

        assert b.tax_amount + b.after_tax == b.gross_amount
        assert b.fund_contribution + b.after_fund == b.after_tax
        assert b.total_distributed + b.retained_amount == b.after_fund
        assert b.retained_amount == Decimal("0.00")

    def test_percentage_total_matches_combined_rate(self):
        """
        Given 12.5% and 7% participants on an amount that rounds per payment
        When the invoice is distributed
        Then the percentage payouts stay within a cent per payment of the combined rate.
        """
        participants = [_percentage(1, "12.5"), _percentage(2, "7"), _partner(3)]
        result = calculate_distribution(
            Decimal("12345.67"), _settings(tax="6.5", fund_rate="11"), Decimal("0"), participants
        )
        b = result.breakdown

        expected = round_money(b.after_fund * (Decimal("12.5") + Decimal("7")) / Decimal("100"))
        paid = sum(p.amount for p in b.percentage_payments)
        tolerance = Decimal("0.01") * len(b.percentage_payments)
        assert abs(paid - expected) <= tolerance


class TestFundClamping:
    def test_zero_headroom_skips_contribution_entry(self, roster):
        result = calculate_distribution(
            Decimal("100000"), _settings(), Decimal("500000"), roster
        )

        assert result.breakdown.fund_contribution == Decimal("0.00")
        assert result.breakdown.after_fund == result.breakdown.after_tax
        assert all(t.category_slug != "fund_contribution" for t in result.transactions)

    def test_contribution_never_exceeds_limit(self, roster):
        result = calculate_distribution(
            Decimal("100000"), _settings(), Decimal("499999.50"), roster
        )

        assert result.breakdown.fund_contribution == Decimal("0.50")
        assert result.breakdown.new_fund_balance == Decimal("500000.00")

    def test_zero_tax_skips_tax_entry(self, roster):
        result = calculate_distribution(
            Decimal("1000"), _settings(tax="0"), Decimal("0"), roster
        )

        assert [t.type for t in result.transactions] == [
            TransactionType.INCOME,
            TransactionType.EXPENSE,
        ]
        assert result.transactions[1].category_slug == "fund_contribution"


class TestParticipantSelection:
    def test_selection_keeps_roster_order(self, roster):
        selected = select_active_participants(roster, [3, 1])
        assert [p.id for p in selected] == [1, 3]

    def test_no_selection_means_whole_roster(self, roster):
        assert select_active_participants(roster) == roster

    def test_no_partners_leaves_residual_retained(self):
        result = calculate_distribution(
            Decimal("1000"),
            _settings(tax="0", fund_rate="0"),
            Decimal("0"),
            [_percentage(1, "20")],
        )

        assert result.breakdown.total_distributed == Decimal("200.00")
        assert result.breakdown.partner_payments == []
        assert result.breakdown.retained_amount == Decimal("800.00")

    def test_empty_roster_distributes_nothing(self):
        result = calculate_distribution(
            Decimal("1000"), _settings(), Decimal("0"), []
        )

        assert result.balance_updates == []
        assert result.breakdown.total_distributed == Decimal("0.00")
        assert result.breakdown.retained_amount == result.breakdown.after_fund

    def test_deterministic(self, roster):
        first = calculate_distribution(Decimal("777.77"), _settings(), Decimal("10"), roster)
        second = calculate_distribution(Decimal("777.77"), _settings(), Decimal("10"), roster)
        assert first == second
