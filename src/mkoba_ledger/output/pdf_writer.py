"""PDF writer for the payments ledger export."""

import io
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

from mkoba_ledger.config import OutputConfig
from mkoba_ledger.models.report import ExportRow, ExportTable
from mkoba_ledger.utils.decimal_utils import format_amount
from mkoba_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# PDF imports
try:
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import mm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    PDF_AVAILABLE = True
except ImportError:
    PDF_AVAILABLE = False

# Above this many month columns the table switches to a smaller font
WIDE_TABLE_MONTHS = 12


class PDFWriter:
    """Writes an export table as a landscape, paginated PDF document.

    The header row repeats on every page. Amounts are printed with the same
    digits as the workbook cells hold.
    """

    def __init__(self, output_config: Optional[OutputConfig] = None):
        """Initialize PDF writer.

        Args:
            output_config: Export settings (title, decimals).
        """
        if not PDF_AVAILABLE:
            raise ImportError("reportlab library not installed")

        self.output_config = output_config or OutputConfig()

        self.header_bg = colors.Color(15 / 255, 23 / 255, 42 / 255)
        self.total_bg = colors.HexColor("#E2E8F0")
        self.row_alt = colors.HexColor("#F8FAFC")
        self.grid_color = colors.HexColor("#CBD5E1")

    def write(self, table: ExportTable, subtitle: Optional[str] = None) -> bytes:
        """Render the document in memory.

        Args:
            table: Export content.
            subtitle: Optional line printed under the title.

        Returns:
            The PDF file as bytes.
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=landscape(A4),
            rightMargin=10 * mm,
            leftMargin=10 * mm,
            topMargin=12 * mm,
            bottomMargin=10 * mm,
            title=self.output_config.title,
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "LedgerTitle",
            parent=styles["Heading1"],
            fontSize=16,
            textColor=self.header_bg,
            spaceAfter=4,
        )
        meta_style = ParagraphStyle(
            "LedgerMeta",
            parent=styles["Normal"],
            fontSize=9,
            textColor=colors.HexColor("#64748B"),
        )

        story = [Paragraph(escape(self.output_config.title), title_style)]
        meta = f"Months: {table.range_display}"
        if subtitle:
            meta = f"{escape(subtitle)} | {meta}"
        story.append(Paragraph(meta, meta_style))
        story.append(Spacer(1, 4 * mm))
        story.append(self._build_table(table, doc.width))

        doc.build(story)
        data = buffer.getvalue()
        logger.debug(f"Rendered document: {len(table.rows)} members, {len(table.months)} months, {len(data)} bytes")
        return data

    def save(self, output_path: Path, table: ExportTable, subtitle: Optional[str] = None) -> None:
        """Write the document to a file.

        Args:
            output_path: Path for output file.
            table: Export content.
            subtitle: Optional line printed under the title.
        """
        logger.info(f"Writing PDF document to {output_path}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.write(table, subtitle))
        logger.info(f"PDF document saved: {output_path}")

    def _row_cells(self, row: ExportRow) -> list[str]:
        places = self.output_config.decimal_places
        return [
            row.label,
            *(format_amount(amount, places) for amount in row.amounts),
            format_amount(row.total, places),
        ]

    def _build_table(self, table: ExportTable, available_width: float) -> "Table":
        data = [table.headers]
        data.extend(self._row_cells(r) for r in table.all_rows)

        amount_columns = len(table.months) + 1
        name_width = min(45 * mm, available_width * 0.25)
        amount_width = (available_width - name_width) / amount_columns
        col_widths = [name_width] + [amount_width] * amount_columns

        font_size = 8 if len(table.months) <= WIDE_TABLE_MONTHS else 6
        last = len(data) - 1

        row_backgrounds = [
            ("BACKGROUND", (0, i), (-1, i), self.row_alt)
            for i in range(2, last, 2)
        ]

        pdf_table = Table(data, colWidths=col_widths, repeatRows=1)
        pdf_table.setStyle(TableStyle([
            # Header
            ("BACKGROUND", (0, 0), (-1, 0), self.header_bg),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            # Body
            ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
            ("FONTSIZE", (0, 0), (-1, -1), font_size),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ("LEFTPADDING", (0, 0), (-1, -1), 3),
            ("RIGHTPADDING", (0, 0), (-1, -1), 3),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("ALIGN", (0, 0), (0, -1), "LEFT"),
            ("GRID", (0, 0), (-1, -1), 0.4, self.grid_color),
            *row_backgrounds,
            # Grand total
            ("BACKGROUND", (0, last), (-1, last), self.total_bg),
            ("FONTNAME", (0, last), (-1, last), "Helvetica-Bold"),
            ("LINEABOVE", (0, last), (-1, last), 1.0, self.header_bg),
        ]))
        return pdf_table
