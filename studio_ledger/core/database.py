"""
Database initialization and connection management for the Studio Ledger.

This module handles:
- Creating the data directory if it doesn't exist
- Setting up SQLite with WAL mode and foreign keys
- Providing database connection utilities
"""

import sqlite3
import threading
from pathlib import Path
from typing import Optional, Set

from studio_ledger.core.config import Config
from studio_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

_SCHEMA_LOCK = threading.Lock()
_SCHEMA_INITIALIZED: Set[str] = set()


def ensure_data_directory(db_path: Optional[str] = None) -> None:
    """Create the data directory if it doesn't exist."""
    path = db_path or Config.DB_PATH
    if path == ":memory:":
        return
    data_dir = Path(path).parent

    if not data_dir.exists():
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("data_directory_created", path=str(data_dir))


def get_db_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Get a database connection with proper configuration.

    Args:
        db_path: Path to the SQLite database file. If None, uses Config.DB_PATH.

    Returns:
        Configured SQLite connection with WAL mode and foreign keys enabled.
    """
    if db_path is None:
        db_path = Config.DB_PATH

    ensure_data_directory(db_path)

    # Row factory gives dict-like access; timeout waits on a held write lock
    conn = sqlite3.connect(db_path, check_same_thread=False, timeout=30)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA temp_store = MEMORY")

    # Schema is ensured once per database file per process
    if db_path == ":memory:" or db_path not in _SCHEMA_INITIALIZED:
        with _SCHEMA_LOCK:
            if db_path == ":memory:" or db_path not in _SCHEMA_INITIALIZED:
                # Local import avoids circular dependency during module load
                from studio_ledger.core.schema import create_schema

                create_schema(conn)
                conn.commit()
                _SCHEMA_INITIALIZED.add(db_path)

    return conn


def initialize_database(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Initialize the database with schema and seed data.

    Args:
        db_path: Path to the SQLite database file. If None, uses Config.DB_PATH.

    Returns:
        Database connection with initialized schema.
    """
    conn = get_db_connection(db_path)

    # Import here to avoid circular imports
    from studio_ledger.core.schema import create_schema
    from studio_ledger.core.seed_data import insert_seed_data

    create_schema(conn)
    insert_seed_data(conn)
    conn.commit()

    return conn

