"""Ledger orchestration: months, edits, payouts and exports for one period.

``LedgerService`` is the single entry point a host (the CLI, a web handler)
uses to read and mutate a period's ledger. Session state that a UI would
keep implicitly (selected period, acting role, chosen export range) is
passed in explicitly as a ``LedgerContext`` on every call.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Sequence

from mkoba_ledger.config import OutputConfig
from mkoba_ledger.errors import PreconditionError, StoreError, ValidationError
from mkoba_ledger.models.audit import AuditEvent, AuditSink
from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod
from mkoba_ledger.models.report import DashboardTotals, LedgerSummary
from mkoba_ledger.models.role import Capability, Role
from mkoba_ledger.output.exporter import ExportBundle, export_range
from mkoba_ledger.processing.access_gate import can_edit, require_capability, require_edit
from mkoba_ledger.processing.aggregator import (
    compute_dashboard_totals,
    filter_members,
    get_aggregation,
)
from mkoba_ledger.store.adapter import LedgerStoreAdapter
from mkoba_ledger.utils.decimal_utils import ZERO, parse_amount
from mkoba_ledger.utils.logging_config import get_logger, sanitize_context
from mkoba_ledger.utils.month_utils import (
    append_month,
    current_month,
    months_between,
    parse_month,
    validate_month,
)

logger = get_logger(__name__)


@dataclass
class LedgerContext:
    """Who is acting, on which period, over which export range.

    Attributes:
        role: Role of the acting official.
        actor_id: Identifier recorded as editor and audit actor.
        period_id: Selected period; None when nothing is selected.
        export_from: First month of the export range (None: first month).
        export_to: Last month of the export range (None: last month).
    """

    role: Role = Role.MEMBER
    actor_id: str = "anonymous"
    period_id: Optional[str] = None
    export_from: Optional[str] = None
    export_to: Optional[str] = None

    @property
    def has_active_period(self) -> bool:
        return self.period_id is not None


@dataclass
class LedgerView:
    """Everything needed to render a period's ledger.

    Attributes:
        period: The selected period, if any.
        months: Enabled months; empty means "initialize ledger".
        members: Displayed members (after the name filter).
        contributions: All contributions of the period.
        summary: Member x month matrix with totals.
        totals: Dashboard totals over all members of the period.
        editable: Whether the acting role may edit cells right now.
    """

    period: Optional[ContributionPeriod]
    months: list[str]
    members: list[Member]
    contributions: list[Contribution]
    summary: LedgerSummary
    totals: DashboardTotals
    editable: bool = False

    @property
    def needs_initialization(self) -> bool:
        return self.period is not None and not self.months


@dataclass
class PendingEdit:
    """A contribution edit that failed in the store and can be re-issued.

    ``context`` is a copy taken when the edit failed, so a later change of
    the caller's selected period does not redirect the retry.
    """

    context: LedgerContext
    member_id: str
    month: str
    amount: Decimal
    error: str = ""


def derive_months(period: ContributionPeriod, today: Optional[date] = None) -> list[str]:
    """Enabled months of a period.

    Months run from ``start_month`` through the current month, or through
    ``horizon_month`` when a manual extension reached further.

    Args:
        period: The contribution period.
        today: Reference date (defaults to the system date).

    Returns:
        Ascending month list; empty for an uninitialized period.
    """
    if not period.start_month:
        return []

    end = current_month(today)
    if period.horizon_month and parse_month(period.horizon_month) > parse_month(end):
        end = period.horizon_month
    return months_between(period.start_month, end)


def log_audit_event(event: AuditEvent) -> None:
    """Default audit sink: write the event to the log."""
    logger.info(
        f"AUDIT {event.action} {event.table_name}/{event.record_id} by {event.actor_id}"
        + (f": {sanitize_context(event.changes)}" if event.changes else "")
    )


class LedgerService:
    """Reads and mutates one period's contribution ledger.

    Validation and permission checks run before any write reaches the store.
    Successful writes are followed by a re-read, so callers always get the
    store's view of the period, never a locally patched copy.
    """

    def __init__(
        self,
        store: LedgerStoreAdapter,
        audit_sink: Optional[AuditSink] = None,
        output_config: Optional[OutputConfig] = None,
        clock: Callable[[], date] = date.today,
    ):
        """Initialize the service.

        Args:
            store: Store adapter.
            audit_sink: Receives an AuditEvent after every successful mutation.
            output_config: Export settings.
            clock: Returns today's date; replaced in tests.
        """
        self.store = store
        self.audit_sink = audit_sink or log_audit_event
        self.output_config = output_config or OutputConfig()
        self.clock = clock
        self._failed_edit: Optional[PendingEdit] = None

    # Periods

    def list_periods(self) -> list[ContributionPeriod]:
        """All periods, newest year first."""
        return self.store.list_periods()

    def latest_period_id(self) -> Optional[str]:
        """Id of the newest period, the default selection."""
        periods = self.store.list_periods()
        return periods[0].id if periods else None

    def create_period(self, context: LedgerContext, year: int) -> ContributionPeriod:
        """Open a new fiscal-year period.

        Raises:
            ValidationError: If the year is not a plausible four-digit year.
            PreconditionError: If the role may not initialize ledgers.
        """
        if not isinstance(year, int) or isinstance(year, bool) or not 1000 <= year <= 9999:
            raise ValidationError(f"Invalid year: {year!r}", field="year")
        require_capability(context.role, Capability.INITIALIZE_LEDGER)

        period = self.store.create_period(year, context.actor_id)
        self._emit(context, "INSERT", "contribution_periods", period.id, {"year": year})
        logger.info(f"Created period {period.label} ({period.id})")
        return period

    def get_period(self, context: LedgerContext) -> ContributionPeriod:
        """The context's selected period.

        Raises:
            PreconditionError: If no period is selected.
        """
        if context.period_id is None:
            raise PreconditionError("No active contribution period selected")
        return self.store.get_period(context.period_id)

    def derive_months(self, period_id: str) -> list[str]:
        """Enabled months of a stored period."""
        return derive_months(self.store.get_period(period_id), self.clock())

    # Reading

    def load_ledger(self, context: LedgerContext, query: Optional[str] = None) -> LedgerView:
        """Fetch a fresh snapshot of the selected period and aggregate it.

        Args:
            context: Acting session.
            query: Optional case-insensitive member name filter.

        Returns:
            LedgerView. With no period selected, the view is empty.
        """
        members = self.store.list_members()
        shown = filter_members(members, query)

        if context.period_id is None:
            totals = compute_dashboard_totals(members, [])
            return LedgerView(
                period=None,
                months=[],
                members=shown,
                contributions=[],
                summary=get_aggregation(shown, [], [], ratio=totals.liquidity_ratio),
                totals=totals,
                editable=False,
            )

        period = self.store.get_period(context.period_id)
        months = derive_months(period, self.clock())
        contributions = self.store.fetch_by_period(period.id)
        # The ratio covers every member, whatever the name filter shows
        totals = compute_dashboard_totals(members, contributions, period.id)

        return LedgerView(
            period=period,
            months=months,
            members=shown,
            contributions=contributions,
            summary=get_aggregation(shown, contributions, months, period.id, ratio=totals.liquidity_ratio),
            totals=totals,
            editable=can_edit(context.role, True) and bool(months),
        )

    # Mutations

    def initialize_period(self, context: LedgerContext, start_month: str) -> list[str]:
        """Set the first ledger month of the selected period.

        Args:
            context: Acting session.
            start_month: First month, ``YYYY-MM``.

        Returns:
            The period's enabled months after initialization.

        Raises:
            ValidationError: If ``start_month`` is malformed or later than
                the current month.
            PreconditionError: Without a selected period or permission, or
                if the period already has a start month.
        """
        start_month = validate_month(start_month)
        this_month = current_month(self.clock())
        if parse_month(start_month) > parse_month(this_month):
            raise ValidationError(
                f"Start month {start_month} is after the current month {this_month}",
                field="start_month",
            )
        if context.period_id is None:
            raise PreconditionError("No active contribution period selected")
        require_capability(context.role, Capability.INITIALIZE_LEDGER)

        period = self.store.get_period(context.period_id)
        if period.is_initialized:
            raise PreconditionError(
                f"{period.label} already starts at {period.start_month}; the start month is set once"
            )

        self.store.set_period_start_month(period.id, start_month)
        self._emit(context, "INITIALIZE", "contribution_periods", period.id, {"start_month": start_month})
        logger.info(f"Initialized {period.label} from {start_month}")
        return self.derive_months(period.id)

    def add_month(self, context: LedgerContext) -> list[str]:
        """Enable the month after the last enabled one.

        The new horizon is stored with the period, so it survives a reload
        even when it lies in the future.

        Returns:
            The extended month sequence.

        Raises:
            PreconditionError: Without edit permission or if the ledger is
                not initialized.
        """
        require_edit(context.role, context.has_active_period)

        period = self.store.get_period(context.period_id)  # type: ignore[arg-type]
        months = append_month(derive_months(period, self.clock()))

        self.store.set_period_horizon(period.id, months[-1])
        self._emit(context, "EXTEND", "contribution_periods", period.id, {"horizon_month": months[-1]})
        logger.info(f"Extended {period.label} to {months[-1]}")
        return months

    def update_contribution(
        self,
        context: LedgerContext,
        member_id: str,
        month: str,
        amount: object,
    ) -> list[Contribution]:
        """Write one ledger cell and return the period's fresh contributions.

        Args:
            context: Acting session.
            member_id: Member row.
            month: Month column.
            amount: New amount (number or numeric string, not negative).

        Returns:
            All contributions of the period as re-read from the store.

        Raises:
            ValidationError: For a malformed amount or month, or a month
                outside the period's enabled months.
            PreconditionError: Without a period or edit permission.
            StoreError: If the write or the re-read fails. Only a failed
                write is kept for ``retry_failed_edit``; once the write has
                landed, a failed re-read leaves nothing to retry.
        """
        value = parse_amount(amount)
        month = validate_month(month)
        require_edit(context.role, context.has_active_period)

        period_id: str = context.period_id  # type: ignore[assignment]
        months = self.derive_months(period_id)
        if month not in months:
            raise ValidationError(
                f"{month} is not an enabled month of this period", field="month"
            )

        try:
            self.store.upsert(member_id, period_id, month, value, context.actor_id)
        except StoreError as e:
            self._failed_edit = PendingEdit(replace(context), member_id, month, value, str(e))
            logger.warning(f"Contribution edit for {member_id} in {month} failed: {e}")
            raise

        self._failed_edit = None
        self._emit(
            context, "UPDATE", "contributions", f"{member_id}:{period_id}:{month}",
            {"member_id": member_id, "month": month, "amount": str(value)},
        )
        return self.store.fetch_by_period(period_id)

    @property
    def failed_edit(self) -> Optional[PendingEdit]:
        """The last edit that failed in the store, if any."""
        return self._failed_edit

    def retry_failed_edit(self) -> list[Contribution]:
        """Re-issue the last failed edit with its original context.

        Raises:
            PreconditionError: If there is no failed edit to retry.
        """
        pending = self._failed_edit
        if pending is None:
            raise PreconditionError("No failed edit to retry")
        logger.info(f"Retrying edit for {pending.member_id} in {pending.month}")
        return self.update_contribution(pending.context, pending.member_id, pending.month, pending.amount)

    def record_payout(
        self,
        context: LedgerContext,
        member_id: str,
        amount: object,
        received: Optional[bool] = None,
    ) -> Member:
        """Record the payout a member has received.

        Args:
            context: Acting session.
            member_id: Member paid out.
            amount: Amount disbursed (not negative).
            received: Payout flag; defaults to ``amount > 0``.

        Returns:
            The updated member.

        Raises:
            ValidationError: For a malformed amount or unknown member.
            PreconditionError: If the role may not record payouts.
        """
        value = parse_amount(amount)
        require_capability(context.role, Capability.RECORD_PAYOUTS)

        member = find_member(self.store.list_members(), member_id)
        flag = value > ZERO if received is None else received
        updated = self.store.update_member(
            replace(member, received_payout=flag, payout_amount=value)
        )
        self._emit(
            context, "UPDATE", "members", member_id,
            {"received_payout": flag, "payout_amount": str(value)},
        )
        return updated

    # Export

    def export(self, context: LedgerContext, query: Optional[str] = None) -> ExportBundle:
        """Build the workbook and document for the context's month range.

        Raises:
            PreconditionError: Without a period or enabled months.
            ValidationError: If the export range is invalid.
        """
        view = self.load_ledger(context, query)
        if view.period is None:
            raise PreconditionError("No active contribution period selected")
        return export_range(
            view.members,
            view.contributions,
            view.months,
            context.export_from,
            context.export_to,
            period_id=view.period.id,
            output_config=self.output_config,
            subtitle=view.period.label,
        )

    def _emit(
        self,
        context: LedgerContext,
        action: str,
        table_name: str,
        record_id: str,
        changes: Optional[dict[str, object]] = None,
    ) -> None:
        """Hand an audit fact to the sink; a failing sink never undoes a write."""
        event = AuditEvent(
            actor_id=context.actor_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            changes=changes,
        )
        try:
            self.audit_sink(event)
        except Exception:
            logger.exception(f"Audit sink failed for {action} {table_name}/{record_id}")


def find_member(members: Sequence[Member], member_id: str) -> Member:
    """Look a member up by id.

    Raises:
        ValidationError: If no member has that id.
    """
    for member in members:
        if member.id == member_id:
            return member
    raise ValidationError(f"Unknown member: {member_id}", field="member_id")
