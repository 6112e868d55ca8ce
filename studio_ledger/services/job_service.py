"""
Job Service - record billable work before it is invoiced.
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from studio_ledger.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from studio_ledger.domain.models import Actor, Job, JobStatus
from studio_ledger.repositories import StudioRepository
from studio_ledger.services.permissions import require_positive_amount
from studio_ledger.utils.database_utils import transactional
from studio_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class JobService:
    """Create, list and delete jobs."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self.repository = StudioRepository(db)
        self.db = self.repository.db

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "JobService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        return self.repository.list_jobs(status)

    def create_job(
        self, client_id: int, description: str, amount: object, actor: Actor
    ) -> Job:
        """
        Record a job for a client.

        Raises:
            ValidationError: If the description is blank or amount is not positive
            NotFoundError: If the client does not exist
            InvalidStateError: If the client is archived
        """
        if actor is None:
            raise AuthorizationError("Not authenticated")
        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required")
        value = require_positive_amount(amount)

        with transactional(self.db):
            client = self.repository.get_client(client_id)
            if client is None:
                raise NotFoundError(f"Client not found: {client_id}")
            if client["is_archived"]:
                raise InvalidStateError(f"Client {client['name']} is archived")
            job_id = self.repository.insert_job(client_id, description, value, actor.id)

        logger.info(
            "job_created",
            job_id=job_id,
            client_id=client_id,
            amount=str(value),
            created_by=actor.id,
        )
        return self.repository.get_job(job_id)

    def delete_job(self, job_id: int, actor: Actor) -> None:
        """
        Delete an available job. Only its author or an admin may delete it.

        Jobs that were ever attached to an invoice stay for history.
        """
        if actor is None:
            raise AuthorizationError("Not authenticated")

        with transactional(self.db):
            job = self.repository.get_job(job_id)
            if job is None:
                raise NotFoundError(f"Job not found: {job_id}")
            if not actor.is_admin and job.created_by != actor.id:
                raise AuthorizationError("Only the author or an admin can delete a job")
            if job.status != JobStatus.AVAILABLE:
                raise InvalidStateError("Only available jobs can be deleted")
            if self.repository.job_has_invoice_links(job_id):
                raise InvalidStateError("Job is referenced by an invoice and cannot be deleted")
            self.repository.delete_job(job_id)

        logger.info("job_deleted", job_id=job_id, actor=actor.id)
