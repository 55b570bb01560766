"""Tests for LedgerService orchestration."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from mkoba_ledger.errors import PreconditionError, StoreError, ValidationError
from mkoba_ledger.models.audit import AuditEvent
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.role import Role
from mkoba_ledger.processing.ledger_service import LedgerContext, LedgerService
from mkoba_ledger.store.adapter import LedgerStoreAdapter


def in_period(context: LedgerContext, period_id: str, role: Role | None = None) -> LedgerContext:
    """Copy of a context with a period selected (and optionally another role)."""
    return LedgerContext(
        role=role or context.role,
        actor_id=context.actor_id,
        period_id=period_id,
    )


class TestPeriods:
    """Tests for creating and initializing periods."""

    def test_create_period_requires_officer(self, service: LedgerService) -> None:
        """Test that ordinary members cannot open periods."""
        with pytest.raises(PreconditionError):
            service.create_period(LedgerContext(role=Role.MEMBER), 2025)

    @pytest.mark.parametrize("year", [25, 20250, True])
    def test_create_period_invalid_year(self, service: LedgerService, treasurer: LedgerContext, year: object) -> None:
        """Test that implausible years are rejected."""
        with pytest.raises(ValidationError):
            service.create_period(treasurer, year)  # type: ignore[arg-type]

    def test_latest_period_is_default(self, service: LedgerService, treasurer: LedgerContext) -> None:
        """Test that the newest year is the default selection."""
        service.create_period(treasurer, 2024)
        newest = service.create_period(treasurer, 2025)

        assert service.latest_period_id() == newest.id

    def test_initialize_period(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test start 2025-01 with today in April 2025."""
        months = service.initialize_period(in_period(treasurer, period_id), "2025-01")

        assert months == ["2025-01", "2025-02", "2025-03", "2025-04"]
        assert service.derive_months(period_id) == months

    def test_initialize_only_once(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that the start month cannot be changed after initialization."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")

        with pytest.raises(PreconditionError, match="already starts"):
            service.initialize_period(context, "2025-02")

    def test_initialize_requires_permission(
        self, service: LedgerService, treasurer: LedgerContext, period_id: str
    ) -> None:
        """Test that a secretary cannot initialize the ledger."""
        with pytest.raises(PreconditionError):
            service.initialize_period(in_period(treasurer, period_id, Role.SECRETARY), "2025-01")

    def test_initialize_without_period(self, service: LedgerService, treasurer: LedgerContext) -> None:
        """Test that a period must be selected."""
        with pytest.raises(PreconditionError, match="No active contribution period"):
            service.initialize_period(treasurer, "2025-01")

    def test_initialize_malformed_month(
        self, service: LedgerService, treasurer: LedgerContext, period_id: str
    ) -> None:
        """Test that a malformed start month is rejected."""
        with pytest.raises(ValidationError):
            service.initialize_period(in_period(treasurer, period_id), "January")

    def test_initialize_future_month_rejected(
        self, service: LedgerService, treasurer: LedgerContext, period_id: str
    ) -> None:
        """Test that a start after the current month is refused and leaves the period open."""
        context = in_period(treasurer, period_id)

        with pytest.raises(ValidationError) as exc_info:
            service.initialize_period(context, "2025-09")

        assert exc_info.value.field == "start_month"
        assert service.load_ledger(context).needs_initialization
        assert service.initialize_period(context, "2025-04") == ["2025-04"]


class TestAddMonth:
    """Tests for add_month."""

    def test_extends_beyond_today_and_persists(
        self, service: LedgerService, treasurer: LedgerContext, period_id: str
    ) -> None:
        """Test that a future month can be pre-provisioned and survives a reload."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-03")

        months = service.add_month(context)

        assert months == ["2025-03", "2025-04", "2025-05"]
        assert service.load_ledger(context).months == months

    def test_uninitialized(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that an uninitialized ledger cannot be extended."""
        with pytest.raises(PreconditionError):
            service.add_month(in_period(treasurer, period_id))

    def test_requires_edit_rights(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that members cannot extend the ledger."""
        service.initialize_period(in_period(treasurer, period_id), "2025-01")
        with pytest.raises(PreconditionError):
            service.add_month(in_period(treasurer, period_id, Role.MEMBER))


class TestUpdateContribution:
    """Tests for update_contribution and retry_failed_edit."""

    @pytest.fixture
    def context(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> LedgerContext:
        """Treasurer on an initialized 2025 period (January to April)."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        return context

    def test_overwrite_keeps_latest(
        self, service: LedgerService, context: LedgerContext, members: list[Member]
    ) -> None:
        """Test upsert 1000 then 2000 reads back 2000 in a single record."""
        asha = members[0]
        service.update_contribution(context, asha.id, "2025-03", "1000")
        fresh = service.update_contribution(context, asha.id, "2025-03", "2000")

        assert len(fresh) == 1
        assert fresh[0].amount == Decimal("2000")
        assert fresh[0].updated_by == "treasurer-1"

        view = service.load_ledger(context)
        assert view.summary.amount(asha.id, "2025-03") == Decimal("2000")

    def test_zero_is_a_recorded_amount(
        self, service: LedgerService, context: LedgerContext, members: list[Member]
    ) -> None:
        """Test that zero is stored and distinguishable from absent."""
        service.update_contribution(context, members[0].id, "2025-01", 0)

        view = service.load_ledger(context)
        assert view.summary.is_recorded(members[0].id, "2025-01")
        assert not view.summary.is_recorded(members[1].id, "2025-01")

    def test_month_outside_period(
        self, service: LedgerService, context: LedgerContext, members: list[Member]
    ) -> None:
        """Test that a month after the enabled range is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            service.update_contribution(context, members[0].id, "2025-05", "1000")
        assert exc_info.value.field == "month"

    @pytest.mark.parametrize("role", [Role.MEMBER, Role.SECRETARY])
    def test_read_only_roles(
        self,
        service: LedgerService,
        context: LedgerContext,
        members: list[Member],
        role: Role,
    ) -> None:
        """Test that read-only roles cannot edit cells."""
        with pytest.raises(PreconditionError):
            service.update_contribution(
                in_period(context, context.period_id, role), members[0].id, "2025-01", "1000"
            )

    def test_no_period_selected(self, service: LedgerService, treasurer: LedgerContext) -> None:
        """Test that editing needs a selected period."""
        with pytest.raises(PreconditionError, match="No active contribution period"):
            service.update_contribution(treasurer, "m1", "2025-01", "1000")

    @pytest.mark.parametrize("amount", ["-500", "abc", "", None, "100.555"])
    def test_invalid_amount_never_reaches_store(self, amount: object) -> None:
        """Test that validation happens before any store call."""
        store = MagicMock(spec=LedgerStoreAdapter)
        service = LedgerService(store)
        context = LedgerContext(role=Role.TREASURER, actor_id="t1", period_id="p1")

        with pytest.raises(ValidationError):
            service.update_contribution(context, "m1", "2025-01", amount)

        assert store.method_calls == []

    def test_permission_checked_before_store(self) -> None:
        """Test that a member's edit is rejected without touching the store."""
        store = MagicMock(spec=LedgerStoreAdapter)
        service = LedgerService(store)
        context = LedgerContext(role=Role.MEMBER, actor_id="m1", period_id="p1")

        with pytest.raises(PreconditionError):
            service.update_contribution(context, "m1", "2025-01", "100")

        assert store.method_calls == []

    def test_store_failure_is_not_applied_and_can_be_retried(
        self,
        service: LedgerService,
        context: LedgerContext,
        members: list[Member],
    ) -> None:
        """Test that a failed write leaves the ledger unchanged until retried."""
        asha = members[0]
        failure = StoreError("upsert_contribution timed out after 10s", operation="upsert", retryable=True)

        with patch.object(service.store, "upsert", side_effect=failure):
            with pytest.raises(StoreError):
                service.update_contribution(context, asha.id, "2025-02", "3000")

        assert service.failed_edit is not None
        assert service.failed_edit.amount == Decimal("3000")
        assert service.load_ledger(context).summary.grand_total == Decimal("0")

        fresh = service.retry_failed_edit()

        assert [c.amount for c in fresh] == [Decimal("3000")]
        assert service.failed_edit is None

    def test_retry_targets_original_period(
        self,
        service: LedgerService,
        context: LedgerContext,
        treasurer: LedgerContext,
        members: list[Member],
    ) -> None:
        """Test that a retry writes to the period the failed edit was aimed at."""
        original_id = context.period_id
        other = service.create_period(treasurer, 2024)
        failure = StoreError("upsert_contribution failed: database is locked", operation="upsert", retryable=True)

        with patch.object(service.store, "upsert", side_effect=failure):
            with pytest.raises(StoreError):
                service.update_contribution(context, members[0].id, "2025-02", "5000")

        context.period_id = other.id
        service.retry_failed_edit()

        stored = service.store.fetch_by_period(original_id)
        assert [(c.month, c.amount) for c in stored] == [("2025-02", Decimal("5000"))]
        assert service.store.fetch_by_period(other.id) == []

    def test_failed_reread_keeps_nothing_to_retry(
        self,
        service: LedgerService,
        context: LedgerContext,
        members: list[Member],
    ) -> None:
        """Test that a write which landed is not queued for retry when the re-read fails."""
        failure = StoreError("list_contributions timed out after 10s", operation="list_contributions", retryable=True)

        with patch.object(service.store, "fetch_by_period", side_effect=failure):
            with pytest.raises(StoreError):
                service.update_contribution(context, members[0].id, "2025-03", "750")

        assert service.failed_edit is None
        assert [c.amount for c in service.store.fetch_by_period(context.period_id)] == [Decimal("750")]

    def test_retry_without_failure(self, service: LedgerService) -> None:
        """Test that there is nothing to retry by default."""
        with pytest.raises(PreconditionError):
            service.retry_failed_edit()


class TestLoadLedger:
    """Tests for load_ledger."""

    def test_no_period(self, service: LedgerService, treasurer: LedgerContext, members: list[Member]) -> None:
        """Test the empty view when nothing is selected."""
        view = service.load_ledger(treasurer)

        assert view.period is None
        assert view.months == []
        assert view.editable is False
        assert len(view.members) == 2

    def test_uninitialized_period(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that an uninitialized period asks for initialization."""
        view = service.load_ledger(in_period(treasurer, period_id))

        assert view.needs_initialization
        assert view.summary.is_empty
        assert view.editable is False

    def test_scenario_totals(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        members: list[Member],
    ) -> None:
        """Test a full period: entries, totals, search and read-only view."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        asha, baraka = members
        service.update_contribution(context, asha.id, "2025-01", "5000")
        service.update_contribution(context, asha.id, "2025-02", "5000")
        service.update_contribution(context, baraka.id, "2025-01", "2500")
        service.update_contribution(context, baraka.id, "2025-04", "7500")

        view = service.load_ledger(context)
        assert view.editable is True
        assert view.summary.member_total(asha.id) == Decimal("10000")
        assert view.summary.month_total("2025-01") == Decimal("7500")
        assert view.summary.grand_total == Decimal("20000")
        assert view.totals.total_collected == Decimal("20000")

        filtered = service.load_ledger(context, query="baraka")
        assert [m.id for m in filtered.members] == [baraka.id]
        assert filtered.totals.member_count == 2

        member_view = service.load_ledger(in_period(context, period_id, Role.MEMBER))
        assert member_view.editable is False
        assert member_view.summary.grand_total == Decimal("20000")

    def test_filtered_view_keeps_period_ratio(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        members: list[Member],
    ) -> None:
        """Test that the name filter changes the rows but not the liquidity ratio."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        asha, baraka = members
        service.update_contribution(context, asha.id, "2025-01", "10000")
        service.update_contribution(context, baraka.id, "2025-01", "10000")
        service.record_payout(context, baraka.id, "10000")

        view = service.load_ledger(context, query="asha")

        assert [m.id for m in view.members] == [asha.id]
        assert view.totals.liquidity_ratio == Decimal("0.5")
        assert view.summary.ratio == view.totals.liquidity_ratio


class TestRecordPayout:
    """Tests for record_payout."""

    def test_payout_updates_member_and_totals(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        members: list[Member],
    ) -> None:
        """Test that a payout feeds the disbursed total and ratio."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        service.update_contribution(context, members[0].id, "2025-01", "4000")

        updated = service.record_payout(context, members[1].id, "1000")

        assert updated.received_payout is True
        assert updated.payout_amount == Decimal("1000")
        totals = service.load_ledger(context).totals
        assert totals.total_disbursed == Decimal("1000")
        assert totals.payout_count == 1
        assert totals.liquidity_percent == "75%"

    def test_zero_clears_flag(self, service: LedgerService, treasurer: LedgerContext, members: list[Member]) -> None:
        """Test that a zero payout leaves the member unpaid."""
        updated = service.record_payout(treasurer, members[0].id, "0")
        assert updated.received_payout is False

    def test_requires_permission(self, service: LedgerService, members: list[Member]) -> None:
        """Test that members cannot record payouts."""
        with pytest.raises(PreconditionError):
            service.record_payout(LedgerContext(role=Role.MEMBER), members[0].id, "100")

    def test_unknown_member(self, service: LedgerService, treasurer: LedgerContext) -> None:
        """Test that an unknown member is reported as a validation error."""
        with pytest.raises(ValidationError):
            service.record_payout(treasurer, "missing", "100")


class TestAudit:
    """Tests for audit event emission."""

    def test_events_after_mutations(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        members: list[Member],
        audit_events: list[AuditEvent],
    ) -> None:
        """Test that each successful mutation emits one event."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        service.add_month(context)
        service.update_contribution(context, members[0].id, "2025-01", "1000")

        actions = [(e.action, e.table_name) for e in audit_events]
        assert actions == [
            ("INSERT", "contribution_periods"),
            ("INSERT", "members"),
            ("INSERT", "members"),
            ("INITIALIZE", "contribution_periods"),
            ("EXTEND", "contribution_periods"),
            ("UPDATE", "contributions"),
        ]
        assert all(e.actor_id == "treasurer-1" for e in audit_events)

    def test_rejected_edit_emits_nothing(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        audit_events: list[AuditEvent],
    ) -> None:
        """Test that failed validation leaves no audit trail."""
        audit_events.clear()
        with pytest.raises(ValidationError):
            service.update_contribution(in_period(treasurer, period_id), "m1", "2025-01", "-1")
        assert audit_events == []

    def test_failing_sink_does_not_undo_write(
        self,
        store: LedgerStoreAdapter,
        treasurer: LedgerContext,
    ) -> None:
        """Test that a broken audit sink is logged, not raised."""
        sink = MagicMock(side_effect=RuntimeError("audit table unavailable"))
        service = LedgerService(store, audit_sink=sink)

        period = service.create_period(treasurer, 2025)

        assert store.get_period(period.id).year == 2025
        sink.assert_called_once()


class TestExport:
    """Tests for LedgerService.export."""

    def test_export_range(
        self,
        service: LedgerService,
        treasurer: LedgerContext,
        period_id: str,
        members: list[Member],
    ) -> None:
        """Test that the context's range is exported."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        context.export_from = "2025-02"
        context.export_to = "2025-03"

        bundle = service.export(context)

        assert bundle.months == ["2025-02", "2025-03"]
        assert bundle.spreadsheet[:2] == b"PK"
        assert bundle.document.startswith(b"%PDF")

    def test_reversed_range(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that a reversed range is rejected."""
        context = in_period(treasurer, period_id)
        service.initialize_period(context, "2025-01")
        context.export_from = "2025-04"
        context.export_to = "2025-01"

        with pytest.raises(ValidationError):
            service.export(context)

    def test_uninitialized(self, service: LedgerService, treasurer: LedgerContext, period_id: str) -> None:
        """Test that an uninitialized ledger cannot be exported."""
        with pytest.raises(PreconditionError):
            service.export(in_period(treasurer, period_id))

    def test_no_period(self, service: LedgerService, treasurer: LedgerContext) -> None:
        """Test that export needs a selected period."""
        with pytest.raises(PreconditionError):
            service.export(treasurer)
