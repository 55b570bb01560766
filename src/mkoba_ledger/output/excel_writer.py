"""Excel workbook writer for the payments ledger export."""

import io
from pathlib import Path
from typing import Optional

from mkoba_ledger.config import OutputConfig
from mkoba_ledger.models.report import ExportRow, ExportTable
from mkoba_ledger.utils.logging_config import get_logger
from mkoba_ledger.utils.sanitize import sanitize_cell

logger = get_logger(__name__)

# Import openpyxl
try:
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
    from openpyxl.utils import get_column_letter
    from openpyxl.worksheet.worksheet import Worksheet

    OPENPYXL_AVAILABLE = True
except ImportError:
    OPENPYXL_AVAILABLE = False
    Workbook = None  # type: ignore


class ExcelWriter:
    """Writes an export table to a single-sheet Excel workbook.

    Layout: a header row (Name, one column per month, Total), one row per
    member and a bold ``GRAND TOTAL`` row at the bottom. Amounts are stored
    as numbers so the sheet stays usable for further calculation.
    """

    def __init__(self, output_config: Optional[OutputConfig] = None):
        """Initialize Excel writer.

        Args:
            output_config: Export settings (sheet name, currency, decimals).
        """
        if not OPENPYXL_AVAILABLE:
            raise ImportError("openpyxl library not installed")

        self.output_config = output_config or OutputConfig()

        # Style definitions
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(
            start_color="0F172A", end_color="0F172A", fill_type="solid"
        )
        self.total_font = Font(bold=True)
        self.total_fill = PatternFill(
            start_color="E2E8F0", end_color="E2E8F0", fill_type="solid"
        )
        self.centered = Alignment(horizontal="center")
        self.thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

    def write(self, table: ExportTable) -> bytes:
        """Render the workbook in memory.

        Args:
            table: Export content.

        Returns:
            The ``.xlsx`` file as bytes.
        """
        wb = self._build_workbook(table)
        buffer = io.BytesIO()
        wb.save(buffer)
        data = buffer.getvalue()
        logger.debug(f"Rendered workbook: {len(table.rows)} members, {len(table.months)} months, {len(data)} bytes")
        return data

    def save(self, output_path: Path, table: ExportTable) -> None:
        """Write the workbook to a file.

        Args:
            output_path: Path for output file.
            table: Export content.
        """
        logger.info(f"Writing Excel workbook to {output_path}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.write(table))
        logger.info(f"Excel workbook saved: {output_path}")

    def _build_workbook(self, table: ExportTable) -> "Workbook":
        wb = Workbook()
        ws = wb.active
        ws.title = self.output_config.sheet_name

        for col, header in enumerate(table.headers, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.centered
            cell.border = self.thin_border

        row = 2
        for export_row in table.rows:
            self._write_row(ws, row, export_row)
            row += 1

        self._write_row(ws, row, table.grand_total_row)
        for col in range(1, len(table.headers) + 1):
            cell = ws.cell(row=row, column=col)
            cell.font = self.total_font
            cell.fill = self.total_fill

        # Adjust column widths
        longest_name = max((len(r.label) for r in table.all_rows), default=10)
        ws.column_dimensions["A"].width = min(max(longest_name + 2, 14), 40)
        for col in range(2, len(table.headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 13

        ws.freeze_panes = "B2"
        return wb

    def _write_row(self, ws: "Worksheet", row: int, export_row: ExportRow) -> None:
        """Write one label cell, the month amounts and the row total."""
        money_fmt = self._money_format()
        name_cell = ws.cell(row=row, column=1, value=sanitize_cell(export_row.label))
        name_cell.border = self.thin_border

        values = [*export_row.amounts, export_row.total]
        for offset, amount in enumerate(values):
            cell = ws.cell(row=row, column=offset + 2, value=float(amount))
            cell.number_format = money_fmt
            cell.border = self.thin_border

    def _money_format(self) -> str:
        """Get number format for money values.

        Returns:
            Excel number format string.
        """
        places = self.output_config.decimal_places
        digits = "#,##0" + ("." + "0" * places if places > 0 else "")
        symbol = self.output_config.currency_symbol
        if symbol:
            return f'"{symbol}"{digits}'
        return digits
