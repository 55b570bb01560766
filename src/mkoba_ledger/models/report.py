"""Computed ledger views: the member x month matrix and dashboard totals."""

from dataclasses import dataclass, field
from decimal import Decimal

from mkoba_ledger.utils.decimal_utils import ZERO, format_amount


@dataclass
class LedgerSummary:
    """Pre-computed member x month matrix for one period.

    Single source of truth for the ledger table and both export formats.

    Attributes:
        months: Columns, ascending.
        member_ids: Rows, in display order.
        per_cell: Recorded amounts keyed by (member_id, month). Absent keys
            mean "not yet recorded".
        per_member_total: Row totals over ``months``.
        per_month_total: Column totals over ``member_ids``.
        grand_total: Sum of all row totals (equal to the sum of column totals).
        ratio: Liquidity ratio of the period as a fraction.
    """

    months: list[str]
    member_ids: list[str]
    per_cell: dict[tuple[str, str], Decimal] = field(default_factory=dict)
    per_member_total: dict[str, Decimal] = field(default_factory=dict)
    per_month_total: dict[str, Decimal] = field(default_factory=dict)
    grand_total: Decimal = ZERO
    ratio: Decimal = ZERO

    def amount(self, member_id: str, month: str) -> Decimal:
        """Amount in a cell, zero when nothing is recorded."""
        return self.per_cell.get((member_id, month), ZERO)

    def is_recorded(self, member_id: str, month: str) -> bool:
        """Whether a contribution exists for the cell."""
        return (member_id, month) in self.per_cell

    def member_total(self, member_id: str) -> Decimal:
        """Row total for a member."""
        return self.per_member_total.get(member_id, ZERO)

    def month_total(self, month: str) -> Decimal:
        """Column total for a month."""
        return self.per_month_total.get(month, ZERO)

    def display_cell(self, member_id: str, month: str, decimal_places: int = 0) -> str:
        """Cell text for on-screen display: a dash when nothing is recorded."""
        if not self.is_recorded(member_id, month):
            return "—"
        return format_amount(self.amount(member_id, month), decimal_places)

    @property
    def is_empty(self) -> bool:
        """True for an uninitialized ledger (no months)."""
        return not self.months


@dataclass
class DashboardTotals:
    """Headline numbers for a period.

    Attributes:
        total_collected: Sum of every contribution recorded in the period.
        total_disbursed: Sum of member payout amounts.
        member_count: Number of members.
        payout_count: Members who have received their payout.
        liquidity_ratio: Net balance over total collected (fraction).
    """

    total_collected: Decimal
    total_disbursed: Decimal
    member_count: int
    payout_count: int
    liquidity_ratio: Decimal

    @property
    def net_balance(self) -> Decimal:
        """Money still held by the group."""
        return self.total_collected - self.total_disbursed

    @property
    def liquidity_percent(self) -> str:
        """Liquidity ratio as a whole-number percentage, e.g. ``75%``."""
        return f"{format_amount(self.liquidity_ratio * 100, 0)}%"


GRAND_TOTAL_LABEL = "GRAND TOTAL"


@dataclass
class ExportRow:
    """One row of an export: a label, one amount per month and a row total."""

    label: str
    amounts: list[Decimal]
    total: Decimal


@dataclass
class ExportTable:
    """Format-neutral content shared by the spreadsheet and document exports.

    Attributes:
        months: Exported month columns.
        rows: One row per member.
        grand_total_row: Synthesized ``GRAND TOTAL`` row of month totals.
    """

    months: list[str]
    rows: list[ExportRow]
    grand_total_row: ExportRow

    @property
    def headers(self) -> list[str]:
        """Column headers: Name, each month, Total."""
        return ["Name", *self.months, "Total"]

    @property
    def all_rows(self) -> list[ExportRow]:
        """Member rows followed by the grand total row."""
        return [*self.rows, self.grand_total_row]

    @property
    def range_display(self) -> str:
        """Formatted month range string."""
        if not self.months:
            return "No months"
        return f"{self.months[0]} to {self.months[-1]}"
