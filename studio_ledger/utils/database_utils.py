"""
Database utility helpers.

Provides consistent transaction handling for SQLite connections used across
services. ``BEGIN IMMEDIATE`` takes the database write lock before the first
statement, so precondition reads made inside the block cannot be invalidated
by a concurrent writer before the writes land.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from studio_ledger.core.errors import ValidationError
from studio_ledger.utils.logging_config import get_logger


logger = get_logger(__name__)


class TransactionError(Exception):
    """Raised when a database transaction fails."""

    pass


@contextmanager
def transactional(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Provide a transactional scope around a series of database operations.

    Ensures an explicit BEGIN/COMMIT pair and performs rollback when any
    exception escapes the context block. Validation errors are re-raised
    unchanged after the rollback; anything else is wrapped in
    ``TransactionError``.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
    except ValidationError as exc:
        logger.info("transaction_rejected", reason=str(exc))
        conn.rollback()
        raise
    except Exception as exc:
        logger.error("transaction_rollback", error=str(exc))
        conn.rollback()
        raise TransactionError("Database transaction failed") from exc
    else:
        conn.commit()
