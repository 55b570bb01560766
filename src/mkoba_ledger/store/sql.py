"""SQLAlchemy backend.

Tables mirror the group's hosted database: ``contribution_periods``,
``members`` and ``contributions`` with a unique constraint on
(member_id, period_id, month).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod
from mkoba_ledger.models.role import Role
from mkoba_ledger.store.base import LedgerBackend, RecordNotFound
from mkoba_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# Dialects with INSERT .. ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PeriodRow(Base):
    """Fiscal-year ledger container."""

    __tablename__ = "contribution_periods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    year: Mapped[int] = mapped_column(nullable=False, index=True)
    start_month: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    horizon_month: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PeriodRow(id={self.id}, year={self.year}, start_month={self.start_month})>"


class MemberRow(Base):
    """Group member with payout tracking."""

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    position: Mapped[int] = mapped_column(nullable=False, default=0, comment="Registration order")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.MEMBER.value)
    active: Mapped[bool] = mapped_column(nullable=False, default=True)
    received_payout: Mapped[bool] = mapped_column(nullable=False, default=False)
    payout_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<MemberRow(id={self.id}, name={self.name}, role={self.role})>"


class ContributionRow(Base):
    """One member's amount for one month of one period."""

    __tablename__ = "contributions"
    __table_args__ = (
        UniqueConstraint("member_id", "period_id", "month", name="uq_contribution_member_period_month"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    period_id: Mapped[str] = mapped_column(ForeignKey("contribution_periods.id"), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ContributionRow(member_id={self.member_id}, period_id={self.period_id}, "
            f"month={self.month}, amount={self.amount})>"
        )


def create_ledger_engine(database_url: str) -> Engine:
    """Create an engine usable from the adapter's worker thread.

    SQLite connections are opened with ``check_same_thread=False``; in-memory
    SQLite shares one connection so every session sees the same database.

    Args:
        database_url: SQLAlchemy database URL (e.g., "sqlite:///./mkoba_ledger.db").

    Returns:
        Configured Engine.
    """
    url = make_url(database_url)
    kwargs: dict[str, object] = {}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


def _to_period(row: PeriodRow) -> ContributionPeriod:
    return ContributionPeriod(
        id=row.id,
        year=row.year,
        start_month=row.start_month,
        horizon_month=row.horizon_month,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _to_member(row: MemberRow) -> Member:
    return Member(
        id=row.id,
        name=row.name,
        phone=row.phone,
        role=Role.from_str(row.role),
        active=row.active,
        received_payout=row.received_payout,
        payout_amount=Decimal(row.payout_amount),
        created_at=row.created_at,
    )


def _to_contribution(row: ContributionRow) -> Contribution:
    return Contribution(
        id=row.id,
        member_id=row.member_id,
        period_id=row.period_id,
        month=row.month,
        amount=Decimal(row.amount),
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )


class SQLBackend(LedgerBackend):
    """Relational backend over any SQLAlchemy-supported database."""

    def __init__(self, database_url: str, create_tables: bool = True):
        """Initialize the backend.

        Args:
            database_url: SQLAlchemy database URL.
            create_tables: Create missing tables on startup.
        """
        self.engine = create_ledger_engine(database_url)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self.engine)
        logger.debug(f"SQL backend ready on dialect {self.engine.dialect.name}")

    def get_period(self, period_id: str) -> ContributionPeriod:
        with self._session_factory() as session:
            row = session.get(PeriodRow, period_id)
            if row is None:
                raise RecordNotFound("period", period_id)
            return _to_period(row)

    def list_periods(self) -> list[ContributionPeriod]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(PeriodRow).order_by(PeriodRow.year.desc(), PeriodRow.created_at.desc())
            ).all()
            return [_to_period(row) for row in rows]

    def create_period(self, year: int, created_by: Optional[str] = None) -> ContributionPeriod:
        with self._session_factory() as session:
            row = PeriodRow(id=_new_id(), year=year, created_by=created_by, created_at=_utcnow())
            session.add(row)
            session.commit()
            return _to_period(row)

    def set_period_start_month(self, period_id: str, month: str) -> None:
        self._update_period(period_id, start_month=month)

    def set_period_horizon(self, period_id: str, month: str) -> None:
        self._update_period(period_id, horizon_month=month)

    def _update_period(self, period_id: str, **values: object) -> None:
        with self._session_factory() as session:
            row = session.get(PeriodRow, period_id)
            if row is None:
                raise RecordNotFound("period", period_id)
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()

    def list_contributions(self, period_id: str) -> list[Contribution]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(ContributionRow).where(ContributionRow.period_id == period_id)
            ).all()
            return [_to_contribution(row) for row in rows]

    def upsert_contribution(
        self,
        member_id: str,
        period_id: str,
        month: str,
        amount: Decimal,
        editor_id: Optional[str],
    ) -> None:
        values = {
            "member_id": member_id,
            "period_id": period_id,
            "month": month,
            "amount": amount,
            "updated_by": editor_id,
            "updated_at": _utcnow(),
        }
        with self._session_factory() as session:
            # SQLite does not enforce foreign keys unless asked to
            if session.get(MemberRow, member_id) is None:
                raise RecordNotFound("member", member_id)
            if session.get(PeriodRow, period_id) is None:
                raise RecordNotFound("period", period_id)

            insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
            if insert is not None:
                stmt = insert(ContributionRow).values(id=_new_id(), **values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["member_id", "period_id", "month"],
                    set_={
                        "amount": stmt.excluded.amount,
                        "updated_by": stmt.excluded.updated_by,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                session.execute(stmt)
            else:
                row = session.scalars(
                    select(ContributionRow).where(
                        ContributionRow.member_id == member_id,
                        ContributionRow.period_id == period_id,
                        ContributionRow.month == month,
                    )
                ).one_or_none()
                if row is None:
                    session.add(ContributionRow(id=_new_id(), **values))
                else:
                    row.amount = amount
                    row.updated_by = editor_id
                    row.updated_at = values["updated_at"]  # type: ignore[assignment]
            session.commit()

    def list_members(self) -> list[Member]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(MemberRow).order_by(MemberRow.position, MemberRow.created_at)
            ).all()
            return [_to_member(row) for row in rows]

    def add_member(self, member: Member) -> Member:
        with self._session_factory() as session:
            last_position = session.scalar(select(func.max(MemberRow.position))) or 0
            row = MemberRow(
                id=member.id,
                position=last_position + 1,
                name=member.name,
                phone=member.phone,
                role=member.role.value,
                active=member.active,
                received_payout=member.received_payout,
                payout_amount=member.payout_amount,
                created_at=member.created_at,
            )
            session.add(row)
            session.commit()
            return _to_member(row)

    def update_member(self, member: Member) -> Member:
        with self._session_factory() as session:
            row = session.get(MemberRow, member.id)
            if row is None:
                raise RecordNotFound("member", member.id)
            row.name = member.name
            row.phone = member.phone
            row.role = member.role.value
            row.active = member.active
            row.received_payout = member.received_payout
            row.payout_amount = member.payout_amount
            session.commit()
            return _to_member(row)

    def delete_member(self, member_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(MemberRow, member_id)
            if row is None:
                raise RecordNotFound("member", member_id)
            session.delete(row)
            session.commit()

    def member_has_contributions(self, member_id: str) -> bool:
        with self._session_factory() as session:
            found = session.scalar(
                select(ContributionRow.id).where(ContributionRow.member_id == member_id).limit(1)
            )
            return found is not None

    def close(self) -> None:
        self.engine.dispose()
