"""
Database initialization job.

Creates the schema, the settings and fund singletons and the system expense
categories. Safe to run repeatedly: existing rows are left as they are.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from studio_ledger.core.config import Config
from studio_ledger.core.database import initialize_database
from studio_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create and seed the studio ledger database.")
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite file to initialize (defaults to DB_PATH).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    db_path = args.db_path or Config.DB_PATH
    try:
        Config.validate()
        conn = initialize_database(db_path)
        conn.close()
    except Exception as exc:  # pragma: no cover - ensures job surfaces failure
        logger.error("database_init_failed", db_path=db_path, error=str(exc))
        sys.exit(1)
    logger.info("database_initialized", db_path=db_path)


if __name__ == "__main__":
    main()
