"""
Cash-flow Export Service

Writes the running-balance ledger view to a styled Excel workbook and checks
the written file before reporting success.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from openpyxl import load_workbook
from xlsxwriter.utility import xl_col_to_name

from studio_ledger.core.config import Config
from studio_ledger.services.ledger_service import LedgerRow, LedgerService
from studio_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

FIELDNAMES = [
    "date",
    "type",
    "category",
    "description",
    "amount",
    "running_balance",
    "invoice_id",
    "participant_id",
    "created_by",
    "transaction_id",
]

CURRENCY_COLUMNS = {"amount", "running_balance"}
INTEGER_COLUMNS = {"invoice_id", "participant_id", "transaction_id"}


@dataclass
class CashflowExportResult:
    """Metadata returned after a cash-flow export completes."""

    file_path: str
    row_count: int
    file_size_bytes: int
    period_label: str


class CashflowExportService:
    """Export the cash-flow ledger, optionally limited to a year or month."""

    def __init__(
        self,
        db: sqlite3.Connection | None = None,
        export_dir: Optional[str] = None,
    ) -> None:
        self.db = db
        self.export_dir = Path(export_dir or Config.EXPORT_DIR) / "cashflow"
        self.export_dir.mkdir(parents=True, exist_ok=True)

    def export_cashflow(
        self, year: Optional[int] = None, month: Optional[int] = None
    ) -> CashflowExportResult:
        """
        Export transactions with their running balance to an .xlsx workbook.

        Rows are ordered newest first, matching the on-screen ledger view.

        Raises:
            ValidationError: If the period filter is invalid
            ValueError: If the written workbook fails validation
        """
        period_label = self._period_label(year, month)
        file_path: Optional[Path] = None

        try:
            with LedgerService(self.db) as ledger:
                rows = ledger.get_transactions(year=year, month=month)

            file_path = self._make_unique_path(self._build_filename(period_label))
            logger.info(
                "starting_cashflow_export",
                file_path=str(file_path),
                period=period_label,
            )

            row_count = self._write_workbook(rows, file_path)
            self._validate_export(file_path, row_count)
        except Exception as exc:
            logger.error(
                "cashflow_export_failed",
                error=str(exc),
                period=period_label,
                file_path=str(file_path) if file_path else None,
            )
            raise

        logger.info(
            "cashflow_export_completed",
            file_path=str(file_path),
            row_count=row_count,
            period=period_label,
        )
        return CashflowExportResult(
            file_path=str(file_path),
            row_count=row_count,
            file_size_bytes=file_path.stat().st_size,
            period_label=period_label,
        )

    def _write_workbook(self, rows: List[LedgerRow], file_path: Path) -> int:
        records = [self._format_row(row) for row in rows]
        dataframe = pd.DataFrame(records, columns=FIELDNAMES)
        export_df = dataframe.astype(object).where(pd.notnull(dataframe), None)
        column_widths = self._compute_column_widths(dataframe)
        row_count = len(records)

        with pd.ExcelWriter(file_path, engine="xlsxwriter") as writer:
            export_df.to_excel(writer, sheet_name="Cashflow", index=False)
            workbook = writer.book
            worksheet = writer.sheets["Cashflow"]

            header_format = workbook.add_format(
                {"bold": True, "bg_color": "#E5ECFF", "border": 1}
            )
            for col_num, header in enumerate(FIELDNAMES):
                worksheet.write(0, col_num, header, header_format)

            worksheet.freeze_panes(1, 0)
            worksheet.autofilter(0, 0, max(row_count, 1), len(FIELDNAMES) - 1)

            currency_format = workbook.add_format({"num_format": "#,##0.00"})
            integer_format = workbook.add_format({"num_format": "0"})
            for idx, column in enumerate(FIELDNAMES):
                if column in CURRENCY_COLUMNS:
                    cell_format = currency_format
                elif column in INTEGER_COLUMNS:
                    cell_format = integer_format
                else:
                    cell_format = None
                worksheet.set_column(idx, idx, column_widths[column], cell_format)

            if row_count > 0:
                type_col = xl_col_to_name(FIELDNAMES.index("type"))
                income_format = workbook.add_format({"bg_color": "#E6F4EA"})
                payout_format = workbook.add_format({"bg_color": "#FDECEA"})
                for value, cell_format in (("income", income_format), ("payout", payout_format)):
                    worksheet.conditional_format(
                        1,
                        0,
                        row_count,
                        len(FIELDNAMES) - 1,
                        {
                            "type": "formula",
                            "criteria": f'=${type_col}2="{value}"',
                            "format": cell_format,
                        },
                    )

        return row_count

    @staticmethod
    def _format_row(row: LedgerRow) -> Dict[str, object]:
        tx = row.transaction
        return {
            "date": tx.date,
            "type": tx.type.value,
            "category": tx.category_name or "",
            "description": tx.description or "",
            "amount": float(tx.amount),
            "running_balance": float(row.running_balance),
            "invoice_id": tx.related_invoice_id,
            "participant_id": tx.related_participant_id,
            "created_by": tx.created_by,
            "transaction_id": tx.id,
        }

    @staticmethod
    def _compute_column_widths(dataframe: pd.DataFrame) -> Dict[str, float]:
        widths: Dict[str, float] = {}
        for column in FIELDNAMES:
            series = dataframe[column]
            if series.empty:
                max_length = len(column)
            else:
                max_length = int(series.fillna("").astype(str).map(len).max())
            widths[column] = float(min(max(max_length, len(column)) + 2, 60))
        return widths

    def _validate_export(self, file_path: Path, expected_row_count: int) -> None:
        if not file_path.exists():
            raise FileNotFoundError(f"Export file not created: {file_path}")

        workbook = load_workbook(file_path, data_only=True)
        try:
            worksheet = workbook.active
            actual_row_count = sum(
                1
                for row in worksheet.iter_rows(min_row=2, values_only=True)
                if any(cell not in (None, "") for cell in row)
            )
        finally:
            workbook.close()

        if actual_row_count != expected_row_count:
            raise ValueError(
                f"Row count mismatch: expected {expected_row_count}, "
                f"found {actual_row_count} in export"
            )
        logger.info(
            "export_validation_passed", file_path=str(file_path), row_count=actual_row_count
        )

    @staticmethod
    def _period_label(year: Optional[int], month: Optional[int]) -> str:
        if year is None and month is None:
            return "all"
        if month is None:
            return f"{year:04d}"
        if year is None:
            # LedgerService rejects this combination; keep a readable label for the log
            return f"month-{month:02d}"
        return f"{year:04d}-{month:02d}"

    @staticmethod
    def _build_filename(period_label: str) -> str:
        date_str = datetime.now().strftime("%d-%m-%Y")
        return f"cashflow_{period_label}_{date_str}.xlsx"

    def _make_unique_path(self, base_filename: str) -> Path:
        """Ensure the export filename is unique within the export directory."""
        path = self.export_dir / base_filename
        if not path.exists():
            return path

        counter = 1
        while True:
            candidate = self.export_dir / f"{path.stem}_{counter}{path.suffix}"
            if not candidate.exists():
                return candidate
            counter += 1
