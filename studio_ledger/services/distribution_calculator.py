"""
Distribution Calculator - split invoice revenue into tax, fund and payouts.

This module handles:
- Tax on the gross amount (global rate or client override, resolved by the caller)
- Fund contribution clamped to the fund's remaining headroom
- Fixed-rate payouts for percentage participants
- Equal residual shares for partners, remainder to the first partner

Everything here is pure: identical inputs always produce identical results.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from studio_ledger.core.seed_data import (
    FUND_CONTRIBUTION_CATEGORY_SLUG,
    TAX_CATEGORY_SLUG,
)
from studio_ledger.domain.models import Participant, ParticipantType, Settings, TransactionType
from studio_ledger.utils.money import (
    ZERO,
    calculate_fund_contribution,
    calculate_tax,
    round_money,
    to_decimal,
)


@dataclass(frozen=True)
class Payment:
    """Payout owed to one participant from one invoice."""

    participant_id: int
    participant_name: str
    amount: Decimal


@dataclass(frozen=True)
class BalanceUpdate:
    """Positive increment to apply to a participant balance."""

    participant_id: int
    amount: Decimal


@dataclass(frozen=True)
class TransactionToCreate:
    """
    Ledger entry a settlement must write.

    Attributes:
        type: Transaction type (income or expense)
        category_slug: Expense category, None for income
        label: Human-readable prefix for the entry description
        amount: Non-negative magnitude
    """

    type: TransactionType
    category_slug: Optional[str]
    label: str
    amount: Decimal


@dataclass(frozen=True)
class DistributionBreakdown:
    """
    Complete split of one invoice.

    Attributes:
        gross_amount: Invoice total
        tax_amount: Tax withheld from the gross amount
        after_tax: Gross minus tax
        fund_contribution: Amount moved into the fund (already clamped)
        after_fund: After-tax minus fund contribution
        percentage_payments: Payouts to percentage participants
        after_percentage: Residual left for partners
        partner_payments: Equal partner shares, remainder on the first partner
        total_distributed: Sum of every payout
        retained_amount: Residual nobody received (non-zero only without partners)
        new_fund_balance: Fund balance after the contribution
    """

    gross_amount: Decimal
    tax_amount: Decimal
    after_tax: Decimal
    fund_contribution: Decimal
    after_fund: Decimal
    percentage_payments: List[Payment]
    after_percentage: Decimal
    partner_payments: List[Payment]
    total_distributed: Decimal
    retained_amount: Decimal
    new_fund_balance: Decimal

    @property
    def all_payments(self) -> List[Payment]:
        return [*self.percentage_payments, *self.partner_payments]


@dataclass(frozen=True)
class DistributionResult:
    breakdown: DistributionBreakdown
    transactions: List[TransactionToCreate]
    balance_updates: List[BalanceUpdate]


def select_active_participants(
    participants: Sequence[Participant],
    active_participant_ids: Optional[Iterable[int]] = None,
) -> List[Participant]:
    """Restrict the roster to the selected ids, keeping roster order."""
    if active_participant_ids is None:
        return list(participants)
    selected = set(active_participant_ids)
    return [p for p in participants if p.id in selected]


def _split_partner_shares(
    partners: Sequence[Participant], after_percentage: Decimal
) -> List[Payment]:
    if not partners:
        return []

    base_share = round_money(after_percentage / Decimal(len(partners)))
    payments = [Payment(p.id, p.full_name, base_share) for p in partners]

    remainder = round_money(after_percentage - sum(p.amount for p in payments))
    if remainder != ZERO:
        first = payments[0]
        payments[0] = Payment(
            first.participant_id,
            first.participant_name,
            round_money(first.amount + remainder),
        )
    return payments


def calculate_distribution(
    invoice_amount: Decimal,
    settings: Settings,
    current_fund_balance: Decimal,
    participants: Sequence[Participant],
    active_participant_ids: Optional[Iterable[int]] = None,
) -> DistributionResult:
    """
    Split an invoice's gross amount into tax, fund contribution and payouts.

    Inputs are assumed validated by the caller (non-negative amount, rates
    within 0-100). An empty participant list yields no payouts; whatever is
    left after tax, fund and percentage payouts is reported as
    ``retained_amount``.

    Args:
        invoice_amount: Gross invoice total
        settings: Rates and fund limit, tax rate already resolved for the client
        current_fund_balance: Fund balance read immediately before the call
        participants: Eligible roster in roster order
        active_participant_ids: Optional subset selected for this invoice

    Returns:
        DistributionResult with breakdown, ledger entries and balance deltas
    """
    gross_amount = round_money(invoice_amount)
    current_fund = round_money(current_fund_balance)
    active = select_active_participants(participants, active_participant_ids)

    tax_amount = calculate_tax(gross_amount, settings.tax_rate)
    after_tax = round_money(gross_amount - tax_amount)

    fund_contribution = calculate_fund_contribution(
        after_tax,
        settings.fund_contribution_rate,
        current_fund,
        settings.fund_limit,
    )
    after_fund = round_money(after_tax - fund_contribution)
    new_fund_balance = round_money(current_fund + fund_contribution)

    percentage_payments = [
        Payment(
            p.id,
            p.full_name,
            round_money(after_fund * to_decimal(p.percentage_rate) / Decimal("100")),
        )
        for p in active
        if p.participant_type == ParticipantType.PERCENTAGE
    ]
    total_percentage = sum((p.amount for p in percentage_payments), ZERO)
    after_percentage = round_money(after_fund - total_percentage)

    partners = [p for p in active if p.participant_type == ParticipantType.PARTNER]
    partner_payments = _split_partner_shares(partners, after_percentage)
    total_partner = sum((p.amount for p in partner_payments), ZERO)

    total_distributed = round_money(total_percentage + total_partner)
    retained_amount = round_money(after_percentage - total_partner)

    breakdown = DistributionBreakdown(
        gross_amount=gross_amount,
        tax_amount=tax_amount,
        after_tax=after_tax,
        fund_contribution=fund_contribution,
        after_fund=after_fund,
        percentage_payments=percentage_payments,
        after_percentage=after_percentage,
        partner_payments=partner_payments,
        total_distributed=total_distributed,
        retained_amount=retained_amount,
        new_fund_balance=new_fund_balance,
    )

    transactions = [
        TransactionToCreate(TransactionType.INCOME, None, "Invoice payment", gross_amount)
    ]
    if tax_amount > ZERO:
        transactions.append(
            TransactionToCreate(TransactionType.EXPENSE, TAX_CATEGORY_SLUG, "Tax", tax_amount)
        )
    if fund_contribution > ZERO:
        transactions.append(
            TransactionToCreate(
                TransactionType.EXPENSE,
                FUND_CONTRIBUTION_CATEGORY_SLUG,
                "Fund contribution",
                fund_contribution,
            )
        )

    balance_updates = [
        BalanceUpdate(payment.participant_id, payment.amount)
        for payment in breakdown.all_payments
    ]

    return DistributionResult(
        breakdown=breakdown,
        transactions=transactions,
        balance_updates=balance_updates,
    )
