"""Export serializer: selects a month range and renders both artifacts.

The spreadsheet and the document are always produced together from one
``ExportTable`` so their numbers cannot diverge.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

from mkoba_ledger.config import OutputConfig
from mkoba_ledger.errors import PreconditionError, ValidationError
from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.report import GRAND_TOTAL_LABEL, ExportRow, ExportTable, LedgerSummary
from mkoba_ledger.output.excel_writer import ExcelWriter
from mkoba_ledger.output.pdf_writer import PDFWriter
from mkoba_ledger.processing.aggregator import get_aggregation
from mkoba_ledger.utils.decimal_utils import sum_amounts
from mkoba_ledger.utils.logging_config import get_logger
from mkoba_ledger.utils.month_utils import validate_month

logger = get_logger(__name__)


@dataclass
class ExportBundle:
    """The two export artifacts for one month range.

    Attributes:
        spreadsheet: ``.xlsx`` bytes.
        document: PDF bytes.
        spreadsheet_name: Suggested file name for the workbook.
        document_name: Suggested file name for the PDF.
        months: The exported months.
    """

    spreadsheet: bytes
    document: bytes
    spreadsheet_name: str = "MKoba_Payments.xlsx"
    document_name: str = "MKoba_Payments.pdf"
    months: list[str] = field(default_factory=list)

    def save(self, directory: Path) -> tuple[Path, Path]:
        """Write both artifacts into a directory.

        Args:
            directory: Target directory (created if missing).

        Returns:
            Paths of the workbook and the document.
        """
        directory.mkdir(parents=True, exist_ok=True)
        spreadsheet_path = directory / self.spreadsheet_name
        document_path = directory / self.document_name
        spreadsheet_path.write_bytes(self.spreadsheet)
        document_path.write_bytes(self.document)
        logger.info(f"Export saved: {spreadsheet_path}, {document_path}")
        return spreadsheet_path, document_path


def select_export_months(
    months: Sequence[str],
    from_month: Optional[str] = None,
    to_month: Optional[str] = None,
) -> list[str]:
    """Pick the inclusive slice of ``months`` between two endpoints.

    Args:
        months: Enabled months, ascending.
        from_month: First exported month (default: first enabled month).
        to_month: Last exported month (default: last enabled month).

    Returns:
        The selected months, ascending.

    Raises:
        PreconditionError: If there are no months (ledger not initialized).
        ValidationError: If an endpoint is not an enabled month or the
            range is reversed.
    """
    if not months:
        raise PreconditionError("Ledger is not initialized; nothing to export")

    month_list = list(months)
    start = validate_month(from_month) if from_month else month_list[0]
    end = validate_month(to_month) if to_month else month_list[-1]

    for name, value in (("from_month", start), ("to_month", end)):
        if value not in month_list:
            raise ValidationError(
                f"{value} is not a month of this ledger "
                f"({month_list[0]} to {month_list[-1]})",
                field=name,
            )

    from_idx = month_list.index(start)
    to_idx = month_list.index(end)
    if from_idx > to_idx:
        raise ValidationError(f"Export range is reversed: {start} is after {end}", field="to_month")

    return month_list[from_idx:to_idx + 1]


def build_export_table(
    members: Sequence[Member],
    month_range: Sequence[str],
    summary: LedgerSummary,
) -> ExportTable:
    """Lay out member rows and the grand total row for a month range.

    Row totals cover only ``month_range``; amounts are read cell by cell
    from ``summary``.
    """
    rows: list[ExportRow] = []
    for member in members:
        amounts = [summary.amount(member.id, month) for month in month_range]
        rows.append(ExportRow(label=member.name, amounts=amounts, total=sum_amounts(amounts)))

    month_totals = [
        sum_amounts(row.amounts[i] for row in rows)
        for i in range(len(month_range))
    ]
    grand_total = sum_amounts(row.total for row in rows)
    return ExportTable(
        months=list(month_range),
        rows=rows,
        grand_total_row=ExportRow(label=GRAND_TOTAL_LABEL, amounts=month_totals, total=grand_total),
    )


def build_export(
    members: Sequence[Member],
    month_range: Sequence[str],
    summary: LedgerSummary,
    output_config: Optional[OutputConfig] = None,
    subtitle: Optional[str] = None,
) -> ExportBundle:
    """Render the workbook and document for a month range.

    Args:
        members: Rows, in display order.
        month_range: Exported months.
        summary: Aggregation covering at least ``month_range``.
        output_config: File names, sheet name, title and decimals.
        subtitle: Optional line for the document heading.

    Returns:
        ExportBundle with both artifacts.
    """
    output_config = output_config or OutputConfig()
    table = build_export_table(members, month_range, summary)

    logger.info(
        f"Exporting {len(table.rows)} members over {table.range_display}, "
        f"grand total {table.grand_total_row.total}"
    )
    return ExportBundle(
        spreadsheet=ExcelWriter(output_config).write(table),
        document=PDFWriter(output_config).write(table, subtitle),
        spreadsheet_name=output_config.spreadsheet_name,
        document_name=output_config.document_name,
        months=list(table.months),
    )


def export_range(
    members: Sequence[Member],
    contributions: Iterable[Contribution],
    months: Sequence[str],
    from_month: Optional[str] = None,
    to_month: Optional[str] = None,
    period_id: Optional[str] = None,
    output_config: Optional[OutputConfig] = None,
    subtitle: Optional[str] = None,
) -> ExportBundle:
    """Select a month range, aggregate it and render both artifacts.

    Args:
        members: Rows, in display order.
        contributions: Contribution snapshot of the period.
        months: Enabled months of the period.
        from_month: First exported month (default: first enabled month).
        to_month: Last exported month (default: last enabled month).
        period_id: Period used to filter ``contributions``.
        output_config: Export settings.
        subtitle: Optional line for the document heading.

    Returns:
        ExportBundle with both artifacts.

    Raises:
        PreconditionError: If there are no months.
        ValidationError: If the range is invalid.
    """
    month_range = select_export_months(months, from_month, to_month)
    summary = get_aggregation(members, contributions, month_range, period_id)
    return build_export(members, month_range, summary, output_config, subtitle)
