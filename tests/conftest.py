"""Shared fixtures: an in-memory studio database with a small roster."""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from typing import Dict

import pytest

from studio_ledger.core.schema import create_schema
from studio_ledger.core.seed_data import insert_seed_data
from studio_ledger.domain.models import Actor, ParticipantType
from studio_ledger.repositories import StudioRepository


@pytest.fixture
def db_conn() -> sqlite3.Connection:
    """In-memory database with schema, settings (6% / 10% / 500,000) and an empty fund."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    create_schema(conn)
    insert_seed_data(conn)
    conn.execute(
        "UPDATE settings SET tax_rate = '6', fund_contribution_rate = '10', "
        "fund_limit_cents = 50000000 WHERE id = 1"
    )
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", is_admin=True)


@pytest.fixture
def member() -> Actor:
    return Actor(id="member-1", is_admin=False)


@pytest.fixture
def roster(db_conn: sqlite3.Connection) -> Dict[str, int]:
    """One 15% participant, two partners and one participant without a type."""
    repo = StudioRepository(db_conn)
    ids = {
        "designer": repo.insert_participant(
            "Dana Designer", ParticipantType.PERCENTAGE, Decimal("15")
        ),
        "partner_a": repo.insert_participant("Alex Partner", ParticipantType.PARTNER, None),
        "partner_b": repo.insert_participant("Blair Partner", ParticipantType.PARTNER, None),
        "observer": repo.insert_participant("Oli Observer", None, None),
    }
    db_conn.commit()
    return ids


@pytest.fixture
def client_id(db_conn: sqlite3.Connection) -> int:
    repo = StudioRepository(db_conn)
    client = repo.insert_client("Acme Corp")
    db_conn.commit()
    return client

