"""
Seed data insertion for the Studio Ledger.

This module inserts the singleton rows and system categories the settlement
engine requires.
"""

import sqlite3
from typing import Dict

from studio_ledger.core.config import Config
from studio_ledger.utils.datetime_helpers import utc_now_iso
from studio_ledger.utils.money import to_cents

TAX_CATEGORY_SLUG = "tax"
FUND_CONTRIBUTION_CATEGORY_SLUG = "fund_contribution"


def insert_seed_data(conn: sqlite3.Connection) -> None:
    """
    Insert all seed data into the database.

    Args:
        conn: SQLite database connection.
    """
    insert_settings(conn)
    insert_fund(conn)
    insert_expense_categories(conn)


def insert_settings(conn: sqlite3.Connection) -> None:
    """Insert the settings singleton from configured defaults."""
    conn.execute(
        """
        INSERT OR IGNORE INTO settings
        (id, tax_rate, fund_contribution_rate, fund_limit_cents, updated_at_utc)
        VALUES (1, ?, ?, ?, ?)
    """,
        (
            str(Config.DEFAULT_TAX_RATE),
            str(Config.DEFAULT_FUND_CONTRIBUTION_RATE),
            to_cents(Config.DEFAULT_FUND_LIMIT),
            utc_now_iso(),
        ),
    )


def insert_fund(conn: sqlite3.Connection) -> None:
    """Insert the empty fund singleton."""
    conn.execute(
        """
        INSERT OR IGNORE INTO fund (id, current_balance_cents, updated_at_utc)
        VALUES (1, 0, ?)
    """,
        (utc_now_iso(),),
    )


def insert_expense_categories(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Insert the system expense categories.

    Returns:
        Dictionary mapping category slugs to their IDs.
    """
    categories = [
        {"name": "Tax", "slug": TAX_CATEGORY_SLUG},
        {"name": "Fund contribution", "slug": FUND_CONTRIBUTION_CATEGORY_SLUG},
    ]

    category_ids = {}
    for category in categories:
        conn.execute(
            """
            INSERT OR IGNORE INTO expense_categories (name, slug, is_system, created_at_utc)
            VALUES (?, ?, TRUE, ?)
        """,
            (category["name"], category["slug"], utc_now_iso()),
        )
        row = conn.execute(
            "SELECT id FROM expense_categories WHERE slug = ?",
            (category["slug"],),
        ).fetchone()
        category_ids[category["slug"]] = row[0]

    return category_ids
