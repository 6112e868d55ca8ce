"""
Settlement Service - mark invoices paid and distribute their revenue.

This service handles:
- Validating the invoice and the selected participants
- Previewing the distribution without writing anything
- Writing income, tax and fund-contribution ledger entries
- Crediting the fund and participant balances
- Advancing the invoice and its jobs to ``paid``

Every write of a settlement happens inside a single ``BEGIN IMMEDIATE``
transaction, so either all of them land or none do.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from studio_ledger.core.errors import (
    InvalidStateError,
    NotFoundError,
    SettlementError,
    ValidationError,
)
from studio_ledger.domain.models import (
    Actor,
    Invoice,
    InvoiceStatus,
    JobStatus,
    NewTransaction,
    Participant,
    ParticipantType,
)
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.distribution_calculator import (
    DistributionBreakdown,
    DistributionResult,
    calculate_distribution,
)
from studio_ledger.services.permissions import require_admin
from studio_ledger.utils.database_utils import TransactionError, transactional
from studio_ledger.utils.datetime_helpers import get_date_string, utc_now_iso
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import HUNDRED, ZERO, to_decimal

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a committed settlement."""

    invoice_id: int
    invoice_number: str
    breakdown: DistributionBreakdown
    transaction_ids: List[int]
    participant_ids: List[int]
    paid_at_utc: str


class SettlementService:
    """Turn a sent (or draft) invoice into ledger entries and balance credits."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "SettlementService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def list_eligible_participants(self) -> List[Participant]:
        """Active participants with a distribution type, ordered by name."""
        roster = self.repository.get_eligible_participants()
        return sorted(roster, key=lambda p: (p.full_name, p.id))

    def get_invoice_participants(self, invoice_id: int) -> List[int]:
        """
        Return the participant ids recorded when the invoice was settled.

        Unsettled invoices have no recorded payers and return an empty list.

        Raises:
            NotFoundError: If the invoice does not exist
        """
        if self.repository.get_invoice(invoice_id) is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        return self.repository.get_invoice_participant_ids(invoice_id)

    def preview_settlement(
        self, invoice_id: int, participant_ids: Sequence[int]
    ) -> DistributionResult:
        """
        Compute the distribution an invoice would produce, without writing.

        The fund balance used is the current one; the committed settlement
        re-reads it under the write lock and may differ if it moved.
        """
        selected = self._normalize_ids(participant_ids)
        invoice = self._load_settleable_invoice(invoice_id)
        return self._calculate(invoice, selected)

    def mark_invoice_paid(
        self, invoice_id: int, participant_ids: Sequence[int], actor: Actor
    ) -> SettlementResult:
        """
        Settle an invoice and distribute its gross amount.

        Args:
            invoice_id: Invoice to settle
            participant_ids: Participants who share in this invoice
            actor: Caller; must be an admin

        Returns:
            SettlementResult with the breakdown and written transaction ids

        Raises:
            ValidationError: If the actor, invoice or participant selection is invalid
            SettlementError: If any write fails; nothing is persisted
        """
        require_admin(actor, "mark invoices as paid")
        selected = self._normalize_ids(participant_ids)
        self._load_settleable_invoice(invoice_id)

        logger.info(
            "settling_invoice",
            invoice_id=invoice_id,
            participant_count=len(selected),
            actor=actor.id,
        )

        try:
            with transactional(self.db):
                # Re-read under the write lock
                invoice = self._load_settleable_invoice(invoice_id)
                result = self._calculate(invoice, selected)
                paid_at = utc_now_iso()
                transaction_ids = self._write_transactions(invoice, result, actor)

                fund_contribution = result.breakdown.fund_contribution
                if fund_contribution > ZERO:
                    self.repository.increment_fund_balance(fund_contribution)

                for update in result.balance_updates:
                    self.repository.increment_participant_balance(
                        update.participant_id,
                        update.amount,
                        earned_delta=update.amount,
                    )

                self.repository.record_invoice_participants(invoice.id, selected)
                self.repository.set_invoice_status(
                    invoice.id, InvoiceStatus.PAID, paid_at_utc=paid_at
                )
                self.repository.set_job_status(invoice.job_ids, JobStatus.PAID)
        except ValidationError:
            raise
        except TransactionError as exc:
            logger.error(
                "settlement_failed",
                invoice_id=invoice_id,
                error=str(exc.__cause__ or exc),
            )
            raise SettlementError(
                f"Failed to settle invoice {invoice_id}; no changes were saved"
            ) from exc

        breakdown = result.breakdown
        if breakdown.retained_amount != ZERO:
            logger.warning(
                "settlement_residual_retained",
                invoice_id=invoice.id,
                retained_amount=str(breakdown.retained_amount),
            )

        logger.info(
            "settlement_completed",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            gross_amount=str(breakdown.gross_amount),
            tax_amount=str(breakdown.tax_amount),
            fund_contribution=str(breakdown.fund_contribution),
            total_distributed=str(breakdown.total_distributed),
            transactions=len(transaction_ids),
        )

        return SettlementResult(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            breakdown=breakdown,
            transaction_ids=transaction_ids,
            participant_ids=selected,
            paid_at_utc=paid_at,
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _normalize_ids(participant_ids: Optional[Iterable[int]]) -> List[int]:
        selected = sorted(set(participant_ids or []))
        if not selected:
            raise ValidationError("Select at least one participant")
        return selected

    def _load_settleable_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        if invoice.status == InvoiceStatus.PAID:
            raise InvalidStateError("Invoice is already paid")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvalidStateError("Cannot mark a cancelled invoice as paid")
        return invoice

    def _eligible_roster(self, selected: Sequence[int]) -> List[Participant]:
        roster = self.repository.get_eligible_participants()
        known = {participant.id for participant in roster}
        unknown = [pid for pid in selected if pid not in known]
        if unknown:
            raise ValidationError(
                f"Participants are not eligible for distribution: {unknown}"
            )
        return roster

    @staticmethod
    def _check_percentage_total(
        roster: Sequence[Participant], selected: Sequence[int]
    ) -> None:
        chosen = set(selected)
        total_rate = sum(
            (
                to_decimal(p.percentage_rate)
                for p in roster
                if p.id in chosen and p.participant_type == ParticipantType.PERCENTAGE
            ),
            Decimal("0"),
        )
        if total_rate > HUNDRED:
            raise ValidationError("Selected percentage rates exceed 100%")

    def _calculate(self, invoice: Invoice, selected: Sequence[int]) -> DistributionResult:
        settings = self.repository.get_settings()
        if invoice.client_tax_rate is not None:
            settings = settings.with_tax_rate(invoice.client_tax_rate)

        roster = self._eligible_roster(selected)
        self._check_percentage_total(roster, selected)
        fund = self.repository.get_fund()
        return calculate_distribution(
            invoice.total_amount,
            settings,
            fund.current_balance,
            roster,
            active_participant_ids=selected,
        )

    def _write_transactions(
        self, invoice: Invoice, result: DistributionResult, actor: Actor
    ) -> List[int]:
        transaction_date = get_date_string()
        transaction_ids: List[int] = []
        for entry in result.transactions:
            category_id = None
            if entry.category_slug is not None:
                category_id = self.repository.get_category_id(entry.category_slug)
                if category_id is None:
                    raise RuntimeError(f"Missing system category: {entry.category_slug}")

            transaction_ids.append(
                self.repository.insert_transaction(
                    NewTransaction(
                        date=transaction_date,
                        type=entry.type,
                        amount=entry.amount,
                        created_by=actor.id,
                        category_id=category_id,
                        description=f"{entry.label} for invoice {invoice.invoice_number}",
                        related_invoice_id=invoice.id,
                    )
                )
            )
        return transaction_ids
