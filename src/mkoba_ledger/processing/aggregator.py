"""Ledger aggregation: cell amounts, row and column totals, ratios.

Every function is a pure reducer over a snapshot of members and
contributions. Totals are recomputed on each call and never cached, so the
view cannot drift from what the store returned.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from mkoba_ledger.errors import AggregationError
from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.report import DashboardTotals, LedgerSummary
from mkoba_ledger.utils.decimal_utils import ZERO, sum_amounts
from mkoba_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


def _for_period(contributions: Iterable[Contribution], period_id: Optional[str]) -> list[Contribution]:
    if period_id is None:
        return list(contributions)
    return [c for c in contributions if c.period_id == period_id]


def index_contributions(
    contributions: Iterable[Contribution],
    period_id: Optional[str] = None,
) -> dict[tuple[str, str], Decimal]:
    """Map (member_id, month) to amount.

    The store guarantees one record per key; should a snapshot still hold
    duplicates, the first record seen wins.

    Args:
        contributions: Contribution snapshot.
        period_id: Restrict to this period (None keeps all).

    Returns:
        Dict of recorded amounts.
    """
    cells: dict[tuple[str, str], Decimal] = {}
    for c in _for_period(contributions, period_id):
        key = (c.member_id, c.month)
        if key in cells:
            logger.warning(f"Duplicate contribution for member {c.member_id} in {c.month}; keeping the first")
            continue
        cells[key] = c.amount
    return cells


def liquidity_ratio(total_collected: Decimal, total_disbursed: Decimal) -> Decimal:
    """Net balance as a fraction of money collected.

    With nothing collected the ratio is reported as zero rather than
    dividing by zero.

    Args:
        total_collected: Sum of contributions.
        total_disbursed: Sum of payouts.

    Returns:
        ``(collected - disbursed) / collected``, or 0 when collected is 0.
    """
    if total_collected == 0:
        return ZERO
    return (total_collected - total_disbursed) / total_collected


def get_aggregation(
    members: Sequence[Member],
    contributions: Iterable[Contribution],
    months: Sequence[str],
    period_id: Optional[str] = None,
    ratio: Optional[Decimal] = None,
) -> LedgerSummary:
    """Build the member x month matrix with all totals.

    Args:
        members: Rows, in display order.
        contributions: Contribution snapshot (may span periods if ``period_id`` is given).
        months: Columns; an empty list yields an empty summary (uninitialized ledger).
        period_id: Active period used to filter ``contributions``.
        ratio: Liquidity ratio of the whole period. Pass it when ``members``
            is a filtered subset; otherwise it is computed from ``members``.

    Returns:
        LedgerSummary with per-cell amounts, row, column and grand totals and
        the period's liquidity ratio.

    Raises:
        AggregationError: If row totals and column totals disagree.
    """
    period_contributions = _for_period(contributions, period_id)
    member_ids = [m.id for m in members]
    month_list = list(months)

    if ratio is None:
        total_collected = sum_amounts(c.amount for c in period_contributions)
        total_disbursed = sum_amounts(m.payout_amount for m in members)
        ratio = liquidity_ratio(total_collected, total_disbursed)

    if not month_list:
        return LedgerSummary(months=[], member_ids=member_ids, ratio=ratio)

    all_cells = index_contributions(period_contributions)
    wanted_members = set(member_ids)
    wanted_months = set(month_list)
    per_cell = {
        key: amount for key, amount in all_cells.items()
        if key[0] in wanted_members and key[1] in wanted_months
    }

    per_member_total = {
        member_id: sum_amounts(per_cell.get((member_id, month), ZERO) for month in month_list)
        for member_id in member_ids
    }
    per_month_total = {
        month: sum_amounts(per_cell.get((member_id, month), ZERO) for member_id in member_ids)
        for month in month_list
    }

    grand_total = sum_amounts(per_member_total.values())
    by_month = sum_amounts(per_month_total.values())
    if grand_total != by_month:
        raise AggregationError(
            f"Ledger totals disagree: members sum to {grand_total}, months sum to {by_month}"
        )

    return LedgerSummary(
        months=month_list,
        member_ids=member_ids,
        per_cell=per_cell,
        per_member_total=per_member_total,
        per_month_total=per_month_total,
        grand_total=grand_total,
        ratio=ratio,
    )


def compute_dashboard_totals(
    members: Sequence[Member],
    contributions: Iterable[Contribution],
    period_id: Optional[str] = None,
) -> DashboardTotals:
    """Headline totals for the dashboard.

    ``total_collected`` covers every contribution of the period, including
    months outside the currently displayed range.

    Args:
        members: All members.
        contributions: Contribution snapshot.
        period_id: Active period used to filter ``contributions``.

    Returns:
        DashboardTotals for the period.
    """
    collected = sum_amounts(c.amount for c in _for_period(contributions, period_id))
    disbursed = sum_amounts(m.payout_amount for m in members)
    return DashboardTotals(
        total_collected=collected,
        total_disbursed=disbursed,
        member_count=len(members),
        payout_count=sum(1 for m in members if m.received_payout),
        liquidity_ratio=liquidity_ratio(collected, disbursed),
    )


def filter_members(members: Sequence[Member], query: Optional[str]) -> list[Member]:
    """Case-insensitive name search for the ledger view.

    Args:
        members: Members to filter.
        query: Substring to look for; empty keeps everyone.

    Returns:
        Matching members in their original order.
    """
    if not query:
        return list(members)
    needle = query.strip().lower()
    return [m for m in members if needle in m.name.lower()]
