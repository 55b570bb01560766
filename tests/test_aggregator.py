"""Tests for ledger aggregation and dashboard totals."""

from decimal import Decimal

import pytest

from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.processing.aggregator import (
    compute_dashboard_totals,
    filter_members,
    get_aggregation,
    index_contributions,
    liquidity_ratio,
)

MONTHS = ["2025-01", "2025-02", "2025-03"]


def create_contribution(
    member_id: str,
    month: str,
    amount: str,
    period_id: str = "period-2025",
) -> Contribution:
    """Helper to create a Contribution for testing."""
    return Contribution(
        member_id=member_id,
        period_id=period_id,
        month=month,
        amount=Decimal(amount),
    )


@pytest.fixture
def ledger_members() -> list[Member]:
    """Three members with fixed ids."""
    return [
        Member(name="Asha Juma", id="m1"),
        Member(name="Baraka Mwita", id="m2"),
        Member(name="Chausiku Ali", id="m3"),
    ]


@pytest.fixture
def ledger_contributions() -> list[Contribution]:
    """Contributions for January to March, plus noise from another period."""
    return [
        create_contribution("m1", "2025-01", "1000"),
        create_contribution("m1", "2025-02", "2000"),
        create_contribution("m2", "2025-01", "1500"),
        create_contribution("m2", "2025-03", "0"),
        create_contribution("m3", "2025-03", "500.50"),
        create_contribution("m1", "2025-01", "99999", period_id="period-2024"),
    ]


class TestGetAggregation:
    """Tests for get_aggregation."""

    def test_totals(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test row, column and grand totals."""
        summary = get_aggregation(ledger_members, ledger_contributions, MONTHS, "period-2025")

        assert summary.member_total("m1") == Decimal("3000")
        assert summary.member_total("m2") == Decimal("1500")
        assert summary.member_total("m3") == Decimal("500.50")
        assert summary.month_total("2025-01") == Decimal("2500")
        assert summary.month_total("2025-02") == Decimal("2000")
        assert summary.month_total("2025-03") == Decimal("500.50")
        assert summary.grand_total == Decimal("5000.50")

    def test_grand_total_consistency(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test that grand total equals both the column and row sums."""
        summary = get_aggregation(ledger_members, ledger_contributions, MONTHS, "period-2025")

        assert summary.grand_total == sum(summary.per_month_total.values())
        assert summary.grand_total == sum(summary.per_member_total.values())

    def test_absent_versus_recorded_zero(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test that absent cells read 0 but display as a dash."""
        summary = get_aggregation(ledger_members, ledger_contributions, MONTHS, "period-2025")

        assert summary.amount("m2", "2025-02") == Decimal("0")
        assert not summary.is_recorded("m2", "2025-02")
        assert summary.display_cell("m2", "2025-02") == "—"

        assert summary.is_recorded("m2", "2025-03")
        assert summary.display_cell("m2", "2025-03") == "0"

    def test_totals_restricted_to_months(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test that row totals only cover the given months."""
        summary = get_aggregation(ledger_members, ledger_contributions, ["2025-02"], "period-2025")

        assert summary.member_total("m1") == Decimal("2000")
        assert summary.grand_total == Decimal("2000")

    def test_empty_months(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test that an uninitialized ledger aggregates to an empty summary."""
        summary = get_aggregation(ledger_members, ledger_contributions, [], "period-2025")

        assert summary.is_empty
        assert summary.grand_total == Decimal("0")
        assert summary.per_cell == {}

    def test_no_members(self, ledger_contributions: list[Contribution]) -> None:
        """Test that month totals are zero with no members."""
        summary = get_aggregation([], ledger_contributions, MONTHS, "period-2025")

        assert summary.grand_total == Decimal("0")
        assert all(total == Decimal("0") for total in summary.per_month_total.values())

    def test_ratio_uses_payouts(self, ledger_members: list[Member]) -> None:
        """Test the liquidity ratio carried on the summary."""
        ledger_members[0].payout_amount = Decimal("1000")
        contributions = [create_contribution("m1", "2025-01", "4000")]

        summary = get_aggregation(ledger_members, contributions, MONTHS, "period-2025")

        assert summary.ratio == Decimal("0.75")

    def test_given_ratio_wins_for_subset(self, ledger_members: list[Member]) -> None:
        """Test that a filtered row set carries the whole period's ratio when given."""
        ledger_members[1].payout_amount = Decimal("2000")
        contributions = [create_contribution("m1", "2025-01", "4000")]
        totals = compute_dashboard_totals(ledger_members, contributions)

        summary = get_aggregation(
            ledger_members[:1], contributions, MONTHS, "period-2025", ratio=totals.liquidity_ratio
        )

        assert summary.ratio == Decimal("0.5")
        assert summary.grand_total == Decimal("4000")


class TestIndexContributions:
    """Tests for index_contributions."""

    def test_duplicate_keeps_first(self) -> None:
        """Test that the first record wins when a snapshot holds duplicates."""
        cells = index_contributions([
            create_contribution("m1", "2025-01", "100"),
            create_contribution("m1", "2025-01", "900"),
        ])
        assert cells == {("m1", "2025-01"): Decimal("100")}


class TestLiquidity:
    """Tests for liquidity_ratio and dashboard totals."""

    def test_zero_collected(self) -> None:
        """Test that nothing collected gives a ratio of 0, not an error."""
        assert liquidity_ratio(Decimal("0"), Decimal("0")) == Decimal("0")
        assert liquidity_ratio(Decimal("0"), Decimal("500")) == Decimal("0")

    def test_ratio(self) -> None:
        """Test a plain ratio."""
        assert liquidity_ratio(Decimal("4000"), Decimal("1000")) == Decimal("0.75")

    def test_dashboard_totals(self, ledger_members: list[Member], ledger_contributions: list[Contribution]) -> None:
        """Test dashboard totals, including contributions outside displayed months."""
        ledger_members[1].received_payout = True
        ledger_members[1].payout_amount = Decimal("1000.50")
        extra = create_contribution("m1", "2025-09", "1000")

        totals = compute_dashboard_totals(ledger_members, [*ledger_contributions, extra], "period-2025")

        assert totals.total_collected == Decimal("6000.50")
        assert totals.total_disbursed == Decimal("1000.50")
        assert totals.net_balance == Decimal("5000.00")
        assert totals.member_count == 3
        assert totals.payout_count == 1

    def test_liquidity_percent(self) -> None:
        """Test percentage rendering."""
        totals = compute_dashboard_totals(
            [Member(name="A", id="a", payout_amount=Decimal("1000"))],
            [create_contribution("a", "2025-01", "4000")],
        )
        assert totals.liquidity_percent == "75%"


class TestFilterMembers:
    """Tests for filter_members."""

    def test_case_insensitive(self, ledger_members: list[Member]) -> None:
        """Test substring search ignoring case."""
        result = filter_members(ledger_members, "  BARAKA ")
        assert [m.id for m in result] == ["m2"]

    def test_empty_query_keeps_all(self, ledger_members: list[Member]) -> None:
        """Test that an empty query keeps the original order."""
        assert filter_members(ledger_members, "") == ledger_members
        assert filter_members(ledger_members, None) == ledger_members
