"""
Invoice Service - invoice creation and the non-settlement status transitions.

Lifecycle: ``draft -> sent -> paid | cancelled``. Settlement (``-> paid``) is
handled by SettlementService; everything here leaves the ledger, the fund and
participant balances untouched.
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional, Sequence

from studio_ledger.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from studio_ledger.domain.models import Actor, Invoice, InvoiceStatus, JobStatus
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_admin
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import ZERO, round_money

logger = get_logger(__name__)


class InvoiceService:
    """Create invoices from available jobs and move them through their lifecycle."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "InvoiceService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self.repository.get_invoice(invoice_id)

    def list_invoices(self, status: Optional[InvoiceStatus] = None) -> List[Invoice]:
        return self.repository.list_invoices(status)

    def create_invoice(
        self, client_id: int, job_ids: Sequence[int], actor: Actor
    ) -> Invoice:
        """
        Create a draft invoice from available jobs of one client.

        The invoice total is frozen as the sum of the job amounts; the jobs
        move to ``invoiced``.

        Raises:
            AuthorizationError: If there is no authenticated actor
            ValidationError: If no jobs were given or a job does not qualify
        """
        if actor is None:
            raise AuthorizationError("Not authenticated")

        unique_ids = sorted(set(job_ids or []))
        if not unique_ids:
            raise ValidationError("Select at least one job")

        with transactional(self.db):
            client = self.repository.get_client(client_id)
            if client is None:
                raise NotFoundError(f"Client not found: {client_id}")

            jobs = self.repository.get_jobs(unique_ids)
            found = {job.id for job in jobs}
            missing = [job_id for job_id in unique_ids if job_id not in found]
            if missing:
                raise NotFoundError(f"Jobs not found: {missing}")

            for job in jobs:
                if job.status != JobStatus.AVAILABLE:
                    raise InvalidStateError(f"Job {job.id} is already invoiced")
                if job.client_id != client_id:
                    raise ValidationError(
                        f"Job {job.id} belongs to a different client"
                    )

            total_amount = round_money(sum((job.amount for job in jobs), ZERO))
            invoice_number = self.repository.next_invoice_number()
            invoice_id = self.repository.insert_invoice(
                invoice_number, client_id, total_amount, actor.id
            )
            self.repository.link_invoice_jobs(invoice_id, unique_ids)
            self.repository.set_job_status(unique_ids, JobStatus.INVOICED)

        logger.info(
            "invoice_created",
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            client_id=client_id,
            job_count=len(unique_ids),
            total_amount=str(total_amount),
            created_by=actor.id,
        )
        return self.repository.get_invoice(invoice_id)

    def send_invoice(self, invoice_id: int, actor: Actor) -> Invoice:
        """Move a draft invoice to ``sent``."""
        require_admin(actor, "change invoice status")

        with transactional(self.db):
            invoice = self._require_invoice(invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(
                    f"Only draft invoices can be sent (status: {invoice.status.value})"
                )
            self.repository.set_invoice_status(invoice_id, InvoiceStatus.SENT)

        logger.info("invoice_sent", invoice_id=invoice_id, actor=actor.id)
        return self.repository.get_invoice(invoice_id)

    def cancel_invoice(self, invoice_id: int, actor: Actor) -> Invoice:
        """
        Cancel a sent invoice and release its jobs.

        Job links are kept for history; no ledger entries are written and no
        balances change.
        """
        require_admin(actor, "change invoice status")

        with transactional(self.db):
            invoice = self._require_invoice(invoice_id)
            if invoice.status == InvoiceStatus.DRAFT:
                raise InvalidStateError("Draft invoices are deleted, not cancelled")
            if invoice.status.is_terminal:
                raise InvalidStateError(
                    f"Invoice is already {invoice.status.value}"
                )
            self.repository.set_invoice_status(invoice_id, InvoiceStatus.CANCELLED)
            self.repository.set_job_status(invoice.job_ids, JobStatus.AVAILABLE)

        logger.info(
            "invoice_cancelled",
            invoice_id=invoice_id,
            released_jobs=len(invoice.job_ids),
            actor=actor.id,
        )
        return self.repository.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: int, actor: Actor) -> None:
        """Delete a non-paid invoice; its jobs become available again."""
        require_admin(actor, "delete invoices")

        with transactional(self.db):
            invoice = self._require_invoice(invoice_id)
            if invoice.status == InvoiceStatus.PAID:
                raise InvalidStateError("Cannot delete a paid invoice")
            # Cancelled invoices already released their jobs
            if invoice.status != InvoiceStatus.CANCELLED:
                self.repository.set_job_status(invoice.job_ids, JobStatus.AVAILABLE)
            self.repository.delete_invoice(invoice_id)

        logger.info(
            "invoice_deleted",
            invoice_id=invoice_id,
            invoice_number=invoice.invoice_number,
            actor=actor.id,
        )

    def _require_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        return invoice
