"""
Cash-flow export job.

Runs the CashflowExportService so scheduled backups produce the same workbook
as a manual export.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from studio_ledger.core.config import Config
from studio_ledger.services.cashflow_export_service import (
    CashflowExportResult,
    CashflowExportService,
)
from studio_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


def export_cashflow(
    year: Optional[int] = None,
    month: Optional[int] = None,
    export_dir: Optional[str] = None,
) -> CashflowExportResult:
    """Run the cash-flow export and return metadata."""
    service = CashflowExportService(export_dir=export_dir)
    result = service.export_cashflow(year=year, month=month)
    logger.info(
        "cashflow_export_job_completed",
        file_path=result.file_path,
        row_count=result.row_count,
        size_bytes=result.file_size_bytes,
        period=result.period_label,
    )
    return result


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export the cash-flow ledger to Excel.")
    parser.add_argument("--year", type=int, default=None, help="Limit the export to one year.")
    parser.add_argument(
        "--month",
        type=int,
        default=None,
        choices=range(1, 13),
        metavar="{1..12}",
        help="Limit the export to one month (requires --year).",
    )
    parser.add_argument(
        "--export-dir",
        default=None,
        help="Directory for the workbook (defaults to EXPORT_DIR).",
    )
    args = parser.parse_args(argv)
    if args.month is not None and args.year is None:
        parser.error("--month requires --year")
    return args


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        Config.validate()
        export_cashflow(year=args.year, month=args.month, export_dir=args.export_dir)
    except Exception as exc:  # pragma: no cover - ensures job surfaces failure
        logger.error("cashflow_export_job_failed", error=str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
