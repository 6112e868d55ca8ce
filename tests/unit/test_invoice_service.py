"""
Unit tests for InvoiceService: creation and non-settlement transitions.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from studio_ledger.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from studio_ledger.domain.models import InvoiceStatus, JobStatus
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.invoice_service import InvoiceService
from studio_ledger.services.job_service import JobService


@pytest.fixture
def jobs(db_conn, client_id, member):
    service = JobService(db_conn)
    return [
        service.create_job(client_id, "Logo", "1200.50", member).id,
        service.create_job(client_id, "Landing page", "800", member).id,
    ]


def _snapshot(db_conn):
    repo = StudioRepository(db_conn)
    return (
        repo.get_fund(),
        repo.list_balances(),
        repo.list_transactions(),
    )


class TestCreateInvoice:
    def test_total_is_frozen_sum_and_jobs_are_invoiced(self, db_conn, client_id, jobs, member):
        service = InvoiceService(db_conn)

        invoice = service.create_invoice(client_id, jobs, member)

        assert invoice.invoice_number == "INV-0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.total_amount == Decimal("2000.50")
        assert invoice.job_ids == sorted(jobs)
        assert invoice.client_name == "Acme Corp"
        statuses = {job.status for job in StudioRepository(db_conn).get_jobs(jobs)}
        assert statuses == {JobStatus.INVOICED}

    def test_invoice_numbers_increment(self, db_conn, client_id, jobs, member):
        service = InvoiceService(db_conn)

        first = service.create_invoice(client_id, jobs[:1], member)
        second = service.create_invoice(client_id, jobs[1:], member)

        assert (first.invoice_number, second.invoice_number) == ("INV-0001", "INV-0002")

    def test_already_invoiced_job_rejected(self, db_conn, client_id, jobs, member):
        service = InvoiceService(db_conn)
        service.create_invoice(client_id, jobs[:1], member)

        with pytest.raises(InvalidStateError, match="already invoiced"):
            service.create_invoice(client_id, jobs, member)

        # Nothing from the rejected attempt persisted
        assert len(service.list_invoices()) == 1
        assert StudioRepository(db_conn).get_job(jobs[1]).status == JobStatus.AVAILABLE

    def test_job_of_other_client_rejected(self, db_conn, client_id, jobs, member):
        other_client = StudioRepository(db_conn).insert_client("Other Ltd")
        db_conn.commit()

        with pytest.raises(ValidationError, match="different client"):
            InvoiceService(db_conn).create_invoice(other_client, jobs, member)

    def test_unknown_job_rejected(self, db_conn, client_id, member):
        with pytest.raises(NotFoundError):
            InvoiceService(db_conn).create_invoice(client_id, [123], member)

    def test_empty_selection_rejected(self, db_conn, client_id, member):
        with pytest.raises(ValidationError, match="at least one job"):
            InvoiceService(db_conn).create_invoice(client_id, [], member)


class TestTransitions:
    def test_send_draft(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)

        sent = service.send_invoice(invoice.id, admin)

        assert sent.status == InvoiceStatus.SENT

    def test_send_requires_admin(self, db_conn, client_id, jobs, member):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, member)

        with pytest.raises(AuthorizationError):
            service.send_invoice(invoice.id, member)

    def test_send_twice_rejected(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)
        service.send_invoice(invoice.id, admin)

        with pytest.raises(InvalidStateError):
            service.send_invoice(invoice.id, admin)

    def test_cancel_releases_jobs_without_ledger_writes(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)
        service.send_invoice(invoice.id, admin)
        before = _snapshot(db_conn)

        cancelled = service.cancel_invoice(invoice.id, admin)

        assert cancelled.status == InvoiceStatus.CANCELLED
        assert cancelled.job_ids == sorted(jobs)
        statuses = {job.status for job in StudioRepository(db_conn).get_jobs(jobs)}
        assert statuses == {JobStatus.AVAILABLE}
        assert _snapshot(db_conn) == before

    def test_cancel_draft_rejected(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)

        with pytest.raises(InvalidStateError, match="deleted, not cancelled"):
            service.cancel_invoice(invoice.id, admin)

    def test_cancelled_invoice_is_terminal(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)
        service.send_invoice(invoice.id, admin)
        service.cancel_invoice(invoice.id, admin)

        with pytest.raises(InvalidStateError):
            service.cancel_invoice(invoice.id, admin)
        with pytest.raises(InvalidStateError):
            service.send_invoice(invoice.id, admin)

    def test_released_jobs_can_be_invoiced_again(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)
        service.send_invoice(invoice.id, admin)
        service.cancel_invoice(invoice.id, admin)

        again = service.create_invoice(client_id, jobs, admin)

        assert again.invoice_number == "INV-0002"
        assert again.total_amount == Decimal("2000.50")


class TestDeleteInvoice:
    def test_delete_draft_releases_jobs(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        invoice = service.create_invoice(client_id, jobs, admin)

        service.delete_invoice(invoice.id, admin)

        assert service.get_invoice(invoice.id) is None
        statuses = {job.status for job in StudioRepository(db_conn).get_jobs(jobs)}
        assert statuses == {JobStatus.AVAILABLE}

    def test_delete_cancelled_keeps_reinvoiced_jobs(self, db_conn, client_id, jobs, admin):
        service = InvoiceService(db_conn)
        old = service.create_invoice(client_id, jobs, admin)
        service.send_invoice(old.id, admin)
        service.cancel_invoice(old.id, admin)
        service.create_invoice(client_id, jobs, admin)

        service.delete_invoice(old.id, admin)

        statuses = {job.status for job in StudioRepository(db_conn).get_jobs(jobs)}
        assert statuses == {JobStatus.INVOICED}

    def test_delete_missing_invoice(self, db_conn, admin):
        with pytest.raises(NotFoundError):
            InvoiceService(db_conn).delete_invoice(77, admin)
