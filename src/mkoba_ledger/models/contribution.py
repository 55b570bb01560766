"""Contribution data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import NamedTuple, Optional


class ContributionKey(NamedTuple):
    """Natural key of a contribution: one record per member, period and month."""

    member_id: str
    period_id: str
    month: str


@dataclass
class Contribution:
    """One member's contribution for one month of a period.

    Attributes:
        member_id: Contributing member.
        period_id: Period the month belongs to.
        month: Ledger month (``YYYY-MM``).
        amount: Amount paid, never negative.
        updated_by: Official who last wrote the record.
        updated_at: Time of the last write.
        id: Surrogate identifier.
    """

    member_id: str
    period_id: str
    month: str
    amount: Decimal
    updated_by: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def key(self) -> ContributionKey:
        """The (member, period, month) natural key."""
        return ContributionKey(self.member_id, self.period_id, self.month)
