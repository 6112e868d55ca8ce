"""
Repository layer for the Studio Ledger.

Exposes the narrow read/write contracts the settlement engine consumes.
Writes never commit on their own: callers group them inside
``transactional`` so a unit of work lands or rolls back as a whole.
Fund and balance mutations are single ``col = col + ?`` statements, which
SQLite applies atomically under its write lock.
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from studio_ledger.core.database import get_db_connection
from studio_ledger.core.errors import NotFoundError
from studio_ledger.domain.models import (
    Balance,
    Fund,
    Invoice,
    InvoiceStatus,
    Job,
    JobStatus,
    NewTransaction,
    Participant,
    ParticipantType,
    Settings,
    Transaction,
    TransactionType,
)
from studio_ledger.utils.datetime_helpers import utc_now_iso
from studio_ledger.utils.logging_config import get_logger
from studio_ledger.utils.money import from_cents, to_cents, to_decimal

logger = get_logger(__name__)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    return to_decimal(value)


def _row_to_participant(row: sqlite3.Row) -> Participant:
    participant_type = row["participant_type"]
    return Participant(
        id=row["id"],
        full_name=row["full_name"],
        participant_type=ParticipantType(participant_type) if participant_type else None,
        percentage_rate=_optional_decimal(row["percentage_rate"]),
        is_active=bool(row["is_active"]),
        is_admin=bool(row["is_admin"]),
    )


def _row_to_balance(row: sqlite3.Row) -> Balance:
    return Balance(
        participant_id=row["participant_id"],
        available_amount=from_cents(row["available_cents"]),
        total_earned=from_cents(row["total_earned_cents"]),
        total_withdrawn=from_cents(row["total_withdrawn_cents"]),
        total_returned=from_cents(row["total_returned_cents"]),
        updated_at_utc=row["updated_at_utc"],
    )


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        client_id=row["client_id"],
        description=row["description"],
        amount=from_cents(row["amount_cents"]),
        status=JobStatus(row["status"]),
        created_by=row["created_by"],
        created_at_utc=row["created_at_utc"],
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        date=row["date"],
        type=TransactionType(row["type"]),
        amount=from_cents(row["amount_cents"]),
        created_by=row["created_by"],
        created_at_utc=row["created_at_utc"],
        category_slug=row["category_slug"],
        category_name=row["category_name"],
        description=row["description"],
        related_invoice_id=row["related_invoice_id"],
        related_participant_id=row["related_participant_id"],
    )


_TRANSACTION_SELECT = """
    SELECT
        t.id,
        t.date,
        t.type,
        t.amount_cents,
        t.description,
        t.related_invoice_id,
        t.related_participant_id,
        t.created_by,
        t.created_at_utc,
        c.slug AS category_slug,
        c.name AS category_name
    FROM transactions t
    LEFT JOIN expense_categories c ON c.id = t.category_id
"""


class StudioRepository:
    """Data access helpers for settings, fund, roster, invoices, jobs and the ledger."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self._owns_connection = db is None
        self.db = db or get_db_connection()
        self.db.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the managed database connection if owned by the repository."""
        if not self._owns_connection:
            return
        self.db.close()

    def __enter__(self) -> "StudioRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------------------------------------------------- #
    # Settings & fund
    # --------------------------------------------------------------------- #

    def get_settings(self) -> Settings:
        row = self.db.execute(
            """
            SELECT tax_rate, fund_contribution_rate, fund_limit_cents, updated_at_utc
            FROM settings WHERE id = 1
            """
        ).fetchone()
        if row is None:
            raise NotFoundError("Settings not found")
        return Settings(
            tax_rate=to_decimal(row["tax_rate"]),
            fund_contribution_rate=to_decimal(row["fund_contribution_rate"]),
            fund_limit=from_cents(row["fund_limit_cents"]),
            updated_at_utc=row["updated_at_utc"],
        )

    def update_settings(
        self, tax_rate: Decimal, fund_contribution_rate: Decimal, fund_limit: Decimal
    ) -> None:
        self.db.execute(
            """
            UPDATE settings
            SET tax_rate = ?,
                fund_contribution_rate = ?,
                fund_limit_cents = ?,
                updated_at_utc = ?
            WHERE id = 1
            """,
            (str(tax_rate), str(fund_contribution_rate), to_cents(fund_limit), utc_now_iso()),
        )

    def get_fund(self) -> Fund:
        row = self.db.execute(
            "SELECT current_balance_cents, updated_at_utc FROM fund WHERE id = 1"
        ).fetchone()
        if row is None:
            raise NotFoundError("Fund not found")
        return Fund(
            current_balance=from_cents(row["current_balance_cents"]),
            updated_at_utc=row["updated_at_utc"],
        )

    def update_fund_balance(self, new_value: Decimal) -> None:
        """Overwrite the fund balance (direct admin adjustment only)."""
        self.db.execute(
            "UPDATE fund SET current_balance_cents = ?, updated_at_utc = ? WHERE id = 1",
            (to_cents(new_value), utc_now_iso()),
        )

    def increment_fund_balance(self, delta: Decimal) -> None:
        """Atomically add a signed delta to the fund balance."""
        self.db.execute(
            """
            UPDATE fund
            SET current_balance_cents = current_balance_cents + ?,
                updated_at_utc = ?
            WHERE id = 1
            """,
            (to_cents(delta), utc_now_iso()),
        )

    # --------------------------------------------------------------------- #
    # Roster & balances
    # --------------------------------------------------------------------- #

    def get_eligible_participants(self) -> List[Participant]:
        """Active participants with a distribution type, in roster (id) order."""
        rows = self.db.execute(
            """
            SELECT * FROM participants
            WHERE is_active = TRUE AND participant_type IS NOT NULL
            ORDER BY id
            """
        ).fetchall()
        return [_row_to_participant(row) for row in rows]

    def list_participants(self) -> List[Participant]:
        rows = self.db.execute("SELECT * FROM participants ORDER BY full_name, id").fetchall()
        return [_row_to_participant(row) for row in rows]

    def get_participant(self, participant_id: int) -> Optional[Participant]:
        row = self.db.execute(
            "SELECT * FROM participants WHERE id = ?", (participant_id,)
        ).fetchone()
        return _row_to_participant(row) if row else None

    def insert_participant(
        self,
        full_name: str,
        participant_type: Optional[ParticipantType],
        percentage_rate: Optional[Decimal],
        *,
        is_admin: bool = False,
    ) -> int:
        cursor = self.db.execute(
            """
            INSERT INTO participants (full_name, participant_type, percentage_rate, is_admin)
            VALUES (?, ?, ?, ?)
            """,
            (
                full_name,
                participant_type.value if participant_type else None,
                str(percentage_rate) if percentage_rate is not None else None,
                is_admin,
            ),
        )
        participant_id = int(cursor.lastrowid)
        self.db.execute(
            "INSERT OR IGNORE INTO balances (participant_id) VALUES (?)",
            (participant_id,),
        )
        return participant_id

    def update_participant(
        self,
        participant_id: int,
        full_name: str,
        participant_type: Optional[ParticipantType],
        percentage_rate: Optional[Decimal],
        is_active: bool,
    ) -> None:
        self.db.execute(
            """
            UPDATE participants
            SET full_name = ?,
                participant_type = ?,
                percentage_rate = ?,
                is_active = ?,
                updated_at_utc = ?
            WHERE id = ?
            """,
            (
                full_name,
                participant_type.value if participant_type else None,
                str(percentage_rate) if percentage_rate is not None else None,
                is_active,
                utc_now_iso(),
                participant_id,
            ),
        )

    def get_balance(self, participant_id: int) -> Optional[Balance]:
        row = self.db.execute(
            "SELECT * FROM balances WHERE participant_id = ?", (participant_id,)
        ).fetchone()
        return _row_to_balance(row) if row else None

    def list_balances(self) -> List[Balance]:
        rows = self.db.execute(
            "SELECT * FROM balances ORDER BY available_cents DESC, participant_id"
        ).fetchall()
        return [_row_to_balance(row) for row in rows]

    def increment_participant_balance(
        self,
        participant_id: int,
        available_delta: Decimal,
        *,
        earned_delta: Decimal = Decimal("0"),
        withdrawn_delta: Decimal = Decimal("0"),
        returned_delta: Decimal = Decimal("0"),
    ) -> None:
        """
        Atomically apply signed deltas to a participant balance.

        Raises:
            NotFoundError: If the participant has no balance row.
        """
        cursor = self.db.execute(
            """
            UPDATE balances
            SET available_cents = available_cents + ?,
                total_earned_cents = total_earned_cents + ?,
                total_withdrawn_cents = total_withdrawn_cents + ?,
                total_returned_cents = total_returned_cents + ?,
                updated_at_utc = ?
            WHERE participant_id = ?
            """,
            (
                to_cents(available_delta),
                to_cents(earned_delta),
                to_cents(withdrawn_delta),
                to_cents(returned_delta),
                utc_now_iso(),
                participant_id,
            ),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Balance not found for participant {participant_id}")

    def sum_available_balances(self) -> Decimal:
        row = self.db.execute(
            "SELECT COALESCE(SUM(available_cents), 0) AS total FROM balances"
        ).fetchone()
        return from_cents(row["total"])

    # --------------------------------------------------------------------- #
    # Clients & categories
    # --------------------------------------------------------------------- #

    def get_client(self, client_id: int) -> Optional[Dict[str, Any]]:
        row = self.db.execute(
            "SELECT id, name, tax_rate, is_archived FROM clients WHERE id = ?",
            (client_id,),
        ).fetchone()
        if row is None:
            return None
        return {
            "id": row["id"],
            "name": row["name"],
            "tax_rate": _optional_decimal(row["tax_rate"]),
            "is_archived": bool(row["is_archived"]),
        }

    def insert_client(self, name: str, tax_rate: Optional[Decimal] = None) -> int:
        cursor = self.db.execute(
            "INSERT INTO clients (name, tax_rate) VALUES (?, ?)",
            (name, str(tax_rate) if tax_rate is not None else None),
        )
        return int(cursor.lastrowid)

    def insert_expense_category(self, name: str, slug: Optional[str] = None) -> int:
        cursor = self.db.execute(
            "INSERT INTO expense_categories (name, slug, is_system) VALUES (?, ?, FALSE)",
            (name, slug),
        )
        return int(cursor.lastrowid)

    def get_category_id(self, slug: str) -> Optional[int]:
        row = self.db.execute(
            "SELECT id FROM expense_categories WHERE slug = ?", (slug,)
        ).fetchone()
        return row["id"] if row else None

    def category_exists(self, category_id: int) -> bool:
        row = self.db.execute(
            "SELECT 1 FROM expense_categories WHERE id = ?", (category_id,)
        ).fetchone()
        return row is not None

    # --------------------------------------------------------------------- #
    # Jobs
    # --------------------------------------------------------------------- #

    def insert_job(
        self, client_id: int, description: str, amount: Decimal, created_by: str
    ) -> int:
        cursor = self.db.execute(
            """
            INSERT INTO jobs (client_id, description, amount_cents, status, created_by)
            VALUES (?, ?, ?, 'available', ?)
            """,
            (client_id, description, to_cents(amount), created_by),
        )
        return int(cursor.lastrowid)

    def get_job(self, job_id: int) -> Optional[Job]:
        row = self.db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def get_jobs(self, job_ids: Sequence[int]) -> List[Job]:
        if not job_ids:
            return []
        placeholders = ", ".join("?" for _ in job_ids)
        rows = self.db.execute(
            f"SELECT * FROM jobs WHERE id IN ({placeholders}) ORDER BY id",
            list(job_ids),
        ).fetchall()
        return [_row_to_job(row) for row in rows]

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        query = "SELECT * FROM jobs"
        params: List[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at_utc DESC, id DESC"
        return [_row_to_job(row) for row in self.db.execute(query, params).fetchall()]

    def set_job_status(self, job_ids: Iterable[int], status: JobStatus) -> None:
        job_ids = list(job_ids)
        if not job_ids:
            return
        timestamp = utc_now_iso()
        self.db.executemany(
            "UPDATE jobs SET status = ?, updated_at_utc = ? WHERE id = ?",
            [(status.value, timestamp, job_id) for job_id in job_ids],
        )

    def job_has_invoice_links(self, job_id: int) -> bool:
        row = self.db.execute(
            "SELECT 1 FROM invoice_jobs WHERE job_id = ? LIMIT 1", (job_id,)
        ).fetchone()
        return row is not None

    def delete_job(self, job_id: int) -> None:
        self.db.execute("DELETE FROM jobs WHERE id = ?", (job_id,))

    # --------------------------------------------------------------------- #
    # Invoices
    # --------------------------------------------------------------------- #

    def next_invoice_number(self) -> str:
        row = self.db.execute(
            """
            SELECT COALESCE(MAX(CAST(SUBSTR(invoice_number, 5) AS INTEGER)), 0) AS last_number
            FROM invoices
            WHERE invoice_number LIKE 'INV-%'
            """
        ).fetchone()
        return f"INV-{row['last_number'] + 1:04d}"

    def insert_invoice(
        self,
        invoice_number: str,
        client_id: int,
        total_amount: Decimal,
        created_by: str,
    ) -> int:
        cursor = self.db.execute(
            """
            INSERT INTO invoices (invoice_number, client_id, total_amount_cents, status, created_by)
            VALUES (?, ?, ?, 'draft', ?)
            """,
            (invoice_number, client_id, to_cents(total_amount), created_by),
        )
        return int(cursor.lastrowid)

    def link_invoice_jobs(self, invoice_id: int, job_ids: Iterable[int]) -> None:
        self.db.executemany(
            "INSERT INTO invoice_jobs (invoice_id, job_id) VALUES (?, ?)",
            [(invoice_id, job_id) for job_id in job_ids],
        )

    def get_invoice_job_ids(self, invoice_id: int) -> List[int]:
        rows = self.db.execute(
            "SELECT job_id FROM invoice_jobs WHERE invoice_id = ? ORDER BY job_id",
            (invoice_id,),
        ).fetchall()
        return [row["job_id"] for row in rows]

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        row = self.db.execute(
            """
            SELECT
                i.*,
                c.name AS client_name,
                c.tax_rate AS client_tax_rate
            FROM invoices i
            JOIN clients c ON c.id = i.client_id
            WHERE i.id = ?
            """,
            (invoice_id,),
        ).fetchone()
        if row is None:
            return None
        return Invoice(
            id=row["id"],
            invoice_number=row["invoice_number"],
            client_id=row["client_id"],
            total_amount=from_cents(row["total_amount_cents"]),
            status=InvoiceStatus(row["status"]),
            created_by=row["created_by"],
            client_name=row["client_name"],
            client_tax_rate=_optional_decimal(row["client_tax_rate"]),
            paid_at_utc=row["paid_at_utc"],
            created_at_utc=row["created_at_utc"],
            job_ids=self.get_invoice_job_ids(invoice_id),
        )

    def list_invoices(self, status: Optional[InvoiceStatus] = None) -> List[Invoice]:
        query = "SELECT id FROM invoices"
        params: List[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at_utc DESC, id DESC"
        ids = [row["id"] for row in self.db.execute(query, params).fetchall()]
        return [invoice for invoice in (self.get_invoice(i) for i in ids) if invoice]

    def sum_invoices(self, status: InvoiceStatus) -> Decimal:
        row = self.db.execute(
            "SELECT COALESCE(SUM(total_amount_cents), 0) AS total FROM invoices WHERE status = ?",
            (status.value,),
        ).fetchone()
        return from_cents(row["total"])

    def set_invoice_status(
        self,
        invoice_id: int,
        status: InvoiceStatus,
        *,
        paid_at_utc: Optional[str] = None,
    ) -> None:
        timestamp = utc_now_iso()
        if paid_at_utc is not None:
            self.db.execute(
                """
                UPDATE invoices
                SET status = ?, paid_at_utc = ?, updated_at_utc = ?
                WHERE id = ?
                """,
                (status.value, paid_at_utc, timestamp, invoice_id),
            )
        else:
            self.db.execute(
                "UPDATE invoices SET status = ?, updated_at_utc = ? WHERE id = ?",
                (status.value, timestamp, invoice_id),
            )

    def record_invoice_participants(
        self, invoice_id: int, participant_ids: Iterable[int]
    ) -> None:
        self.db.executemany(
            "INSERT INTO invoice_participants (invoice_id, participant_id) VALUES (?, ?)",
            [(invoice_id, participant_id) for participant_id in participant_ids],
        )

    def get_invoice_participant_ids(self, invoice_id: int) -> List[int]:
        rows = self.db.execute(
            """
            SELECT participant_id FROM invoice_participants
            WHERE invoice_id = ? ORDER BY participant_id
            """,
            (invoice_id,),
        ).fetchall()
        return [row["participant_id"] for row in rows]

    def delete_invoice(self, invoice_id: int) -> None:
        """Remove job links and the invoice row."""
        self.db.execute("DELETE FROM invoice_jobs WHERE invoice_id = ?", (invoice_id,))
        self.db.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))

    # --------------------------------------------------------------------- #
    # Ledger
    # --------------------------------------------------------------------- #

    def insert_transaction(self, entry: NewTransaction) -> int:
        cursor = self.db.execute(
            """
            INSERT INTO transactions (
                date,
                type,
                category_id,
                description,
                amount_cents,
                related_invoice_id,
                related_participant_id,
                created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.date,
                entry.type.value,
                entry.category_id,
                entry.description,
                to_cents(entry.amount),
                entry.related_invoice_id,
                entry.related_participant_id,
                entry.created_by,
            ),
        )
        return int(cursor.lastrowid)

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        row = self.db.execute(
            _TRANSACTION_SELECT + " WHERE t.id = ?", (transaction_id,)
        ).fetchone()
        return _row_to_transaction(row) if row else None

    def list_transactions(
        self,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        invoice_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        """Transactions newest first, optionally filtered by date range or invoice."""
        clauses: List[str] = []
        params: List[Any] = []
        if start_date is not None:
            clauses.append("t.date >= ?")
            params.append(start_date)
        if end_date is not None:
            clauses.append("t.date <= ?")
            params.append(end_date)
        if invoice_id is not None:
            clauses.append("t.related_invoice_id = ?")
            params.append(invoice_id)

        query = _TRANSACTION_SELECT
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY t.date DESC, t.created_at_utc DESC, t.id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        return [_row_to_transaction(row) for row in self.db.execute(query, params).fetchall()]

    def delete_transaction(self, transaction_id: int) -> None:
        self.db.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    def get_cash_balance(self) -> Decimal:
        """Ledger-derived cash: income minus every other transaction type."""
        row = self.db.execute(
            """
            SELECT COALESCE(SUM(
                CASE WHEN type = 'income' THEN amount_cents ELSE -amount_cents END
            ), 0) AS total
            FROM transactions
            """
        ).fetchone()
        return from_cents(row["total"])
