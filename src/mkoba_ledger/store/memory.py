"""In-process backend keeping everything in dictionaries."""

import copy
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from mkoba_ledger.models.contribution import Contribution, ContributionKey
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod
from mkoba_ledger.store.base import LedgerBackend, RecordNotFound


class InMemoryBackend(LedgerBackend):
    """Dictionary-backed store.

    Contributions are keyed by ``ContributionKey``, so the uniqueness
    constraint holds by construction. Records are copied on the way in and
    out; callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._periods: dict[str, ContributionPeriod] = {}
        self._members: dict[str, Member] = {}
        self._contributions: dict[ContributionKey, Contribution] = {}
        self._lock = threading.Lock()

    def get_period(self, period_id: str) -> ContributionPeriod:
        with self._lock:
            if period_id not in self._periods:
                raise RecordNotFound("period", period_id)
            return copy.copy(self._periods[period_id])

    def list_periods(self) -> list[ContributionPeriod]:
        with self._lock:
            periods = [copy.copy(p) for p in self._periods.values()]
        return sorted(periods, key=lambda p: (p.year, p.created_at), reverse=True)

    def create_period(self, year: int, created_by: Optional[str] = None) -> ContributionPeriod:
        period = ContributionPeriod(year=year, created_by=created_by)
        with self._lock:
            self._periods[period.id] = period
        return copy.copy(period)

    def set_period_start_month(self, period_id: str, month: str) -> None:
        with self._lock:
            if period_id not in self._periods:
                raise RecordNotFound("period", period_id)
            self._periods[period_id].start_month = month

    def set_period_horizon(self, period_id: str, month: str) -> None:
        with self._lock:
            if period_id not in self._periods:
                raise RecordNotFound("period", period_id)
            self._periods[period_id].horizon_month = month

    def list_contributions(self, period_id: str) -> list[Contribution]:
        with self._lock:
            return [
                copy.copy(c) for key, c in self._contributions.items()
                if key.period_id == period_id
            ]

    def upsert_contribution(
        self,
        member_id: str,
        period_id: str,
        month: str,
        amount: Decimal,
        editor_id: Optional[str],
    ) -> None:
        key = ContributionKey(member_id, period_id, month)
        with self._lock:
            if member_id not in self._members:
                raise RecordNotFound("member", member_id)
            if period_id not in self._periods:
                raise RecordNotFound("period", period_id)

            existing = self._contributions.get(key)
            if existing is not None:
                existing.amount = amount
                existing.updated_by = editor_id
                existing.updated_at = datetime.now(timezone.utc)
            else:
                self._contributions[key] = Contribution(
                    member_id=member_id,
                    period_id=period_id,
                    month=month,
                    amount=amount,
                    updated_by=editor_id,
                )

    def list_members(self) -> list[Member]:
        # Registration order is dict insertion order
        with self._lock:
            return [copy.copy(m) for m in self._members.values()]

    def add_member(self, member: Member) -> Member:
        with self._lock:
            if member.id in self._members:
                raise ValueError(f"Duplicate member id: {member.id}")
            self._members[member.id] = copy.copy(member)
        return copy.copy(member)

    def update_member(self, member: Member) -> Member:
        with self._lock:
            if member.id not in self._members:
                raise RecordNotFound("member", member.id)
            self._members[member.id] = copy.copy(member)
        return copy.copy(member)

    def delete_member(self, member_id: str) -> None:
        with self._lock:
            if member_id not in self._members:
                raise RecordNotFound("member", member_id)
            del self._members[member_id]

    def member_has_contributions(self, member_id: str) -> bool:
        with self._lock:
            return any(key.member_id == member_id for key in self._contributions)
