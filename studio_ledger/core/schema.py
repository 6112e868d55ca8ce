"""
Database schema definition for the Studio Ledger.

Money is stored in INTEGER minor units (``*_cents`` columns) so that fund and
balance mutations can run as atomic ``col = col + ?`` statements. Percentage
rates are stored as Decimal text.
"""

import sqlite3


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create all database tables with proper constraints and indexes.

    Args:
        conn: SQLite database connection.
    """
    # Create tables in dependency order
    create_participants_table(conn)
    create_balances_table(conn)
    create_clients_table(conn)
    create_expense_categories_table(conn)
    create_settings_table(conn)
    create_fund_table(conn)
    create_jobs_table(conn)
    create_invoices_table(conn)
    create_invoice_jobs_table(conn)
    create_invoice_participants_table(conn)
    create_transactions_table(conn)

    # Create triggers for data integrity
    create_transactions_immutable_trigger(conn)
    create_invoice_terminal_state_triggers(conn)
    create_job_lock_trigger(conn)


def create_participants_table(conn: sqlite3.Connection) -> None:
    """Create the participants table (team roster)."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS participants (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            full_name TEXT NOT NULL,
            participant_type TEXT CHECK (participant_type IN ('partner', 'percentage') OR participant_type IS NULL),
            percentage_rate TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            is_admin BOOLEAN NOT NULL DEFAULT FALSE,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            CHECK (participant_type IS NOT 'percentage' OR percentage_rate IS NOT NULL)
        )
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_participants_active
        ON participants(is_active, participant_type)
    """
    )


def create_balances_table(conn: sqlite3.Connection) -> None:
    """Create the balances table (one row per participant)."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS balances (
            participant_id INTEGER PRIMARY KEY REFERENCES participants(id) ON DELETE CASCADE,
            available_cents INTEGER NOT NULL DEFAULT 0,
            total_earned_cents INTEGER NOT NULL DEFAULT 0,
            total_withdrawn_cents INTEGER NOT NULL DEFAULT 0,
            total_returned_cents INTEGER NOT NULL DEFAULT 0,
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )


def create_clients_table(conn: sqlite3.Connection) -> None:
    """Create the clients table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            tax_rate TEXT,
            is_archived BOOLEAN NOT NULL DEFAULT FALSE,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )


def create_expense_categories_table(conn: sqlite3.Connection) -> None:
    """Create the expense_categories table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS expense_categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            slug TEXT UNIQUE,
            is_system BOOLEAN NOT NULL DEFAULT FALSE,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )


def create_settings_table(conn: sqlite3.Connection) -> None:
    """Create the settings singleton table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            tax_rate TEXT NOT NULL,
            fund_contribution_rate TEXT NOT NULL,
            fund_limit_cents INTEGER NOT NULL CHECK (fund_limit_cents >= 0),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )


def create_fund_table(conn: sqlite3.Connection) -> None:
    """Create the fund singleton table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS fund (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            current_balance_cents INTEGER NOT NULL DEFAULT 0 CHECK (current_balance_cents >= 0),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )


def create_jobs_table(conn: sqlite3.Connection) -> None:
    """Create the jobs table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL REFERENCES clients(id),
            description TEXT NOT NULL,
            amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
            status TEXT NOT NULL DEFAULT 'available' CHECK (status IN ('available', 'invoiced', 'paid')),
            created_by TEXT NOT NULL,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_jobs_status
        ON jobs(status)
    """
    )


def create_invoices_table(conn: sqlite3.Connection) -> None:
    """Create the invoices table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_number TEXT NOT NULL UNIQUE,
            client_id INTEGER NOT NULL REFERENCES clients(id),
            total_amount_cents INTEGER NOT NULL CHECK (total_amount_cents >= 0),
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'sent', 'paid', 'cancelled')),
            paid_at_utc TEXT,
            created_by TEXT NOT NULL,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_invoices_status
        ON invoices(status)
    """
    )


def create_invoice_jobs_table(conn: sqlite3.Connection) -> None:
    """Create the invoice_jobs link table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS invoice_jobs (
            invoice_id INTEGER NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
            job_id INTEGER NOT NULL REFERENCES jobs(id),
            PRIMARY KEY (invoice_id, job_id)
        )
    """
    )


def create_invoice_participants_table(conn: sqlite3.Connection) -> None:
    """Create the invoice_participants audit table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS invoice_participants (
            invoice_id INTEGER NOT NULL REFERENCES invoices(id),
            participant_id INTEGER NOT NULL REFERENCES participants(id),
            PRIMARY KEY (invoice_id, participant_id)
        )
    """
    )


def create_transactions_table(conn: sqlite3.Connection) -> None:
    """Create the transactions (cash-flow ledger) table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date TEXT NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('income', 'expense', 'payout')),
            category_id INTEGER REFERENCES expense_categories(id),
            description TEXT,
            amount_cents INTEGER NOT NULL CHECK (amount_cents >= 0),
            related_invoice_id INTEGER REFERENCES invoices(id),
            related_participant_id INTEGER REFERENCES participants(id),
            created_by TEXT NOT NULL,
            created_at_utc TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_date
        ON transactions(date, created_at_utc)
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_invoice
        ON transactions(related_invoice_id)
    """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_participant
        ON transactions(related_participant_id)
    """
    )


def create_transactions_immutable_trigger(conn: sqlite3.Connection) -> None:
    """Create trigger to prevent UPDATE on transactions (ledger entries are immutable)."""
    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS prevent_transaction_update
        BEFORE UPDATE ON transactions
        BEGIN
            SELECT RAISE(ABORT, 'Cannot update transactions - ledger entries are immutable');
        END
    """
    )


def create_invoice_terminal_state_triggers(conn: sqlite3.Connection) -> None:
    """Create triggers protecting paid and cancelled invoices."""
    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS prevent_paid_invoice_delete
        BEFORE DELETE ON invoices
        WHEN OLD.status = 'paid'
        BEGIN
            SELECT RAISE(ABORT, 'Cannot delete a paid invoice');
        END
    """
    )

    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS prevent_terminal_invoice_update
        BEFORE UPDATE ON invoices
        WHEN OLD.status IN ('paid', 'cancelled')
        BEGIN
            SELECT RAISE(ABORT, 'Cannot modify an invoice in a terminal state');
        END
    """
    )


def create_job_lock_trigger(conn: sqlite3.Connection) -> None:
    """Create trigger to prevent amount/client changes once a job is invoiced."""
    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS prevent_locked_job_update
        BEFORE UPDATE OF amount_cents, client_id ON jobs
        WHEN OLD.status != 'available'
        BEGIN
            SELECT RAISE(ABORT, 'Cannot modify amount or client of an invoiced job');
        END
    """
    )
