"""Abstract persistence backend for periods, members and contributions."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod


class RecordNotFound(LookupError):
    """Raised by a backend when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        """Initialize RecordNotFound.

        Args:
            kind: Record kind ("period", "member").
            record_id: The identifier that was looked up.
        """
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class LedgerBackend(ABC):
    """Storage contract the ledger needs from a persistence mechanism.

    Subclasses must keep at most one contribution per (member, period, month)
    and implement ``upsert_contribution`` as insert-or-overwrite on that key.
    Last write wins; there is no version check.

    Backends raise their native exceptions (or ``RecordNotFound``);
    ``LedgerStoreAdapter`` turns every failure into ``StoreError``.
    """

    @property
    def name(self) -> str:
        """Backend name for logging."""
        return self.__class__.__name__

    # Periods

    @abstractmethod
    def get_period(self, period_id: str) -> ContributionPeriod:
        """Get a period by id. Raises RecordNotFound."""
        pass

    @abstractmethod
    def list_periods(self) -> list[ContributionPeriod]:
        """List periods, newest fiscal year first."""
        pass

    @abstractmethod
    def create_period(self, year: int, created_by: Optional[str] = None) -> ContributionPeriod:
        """Create an uninitialized period for a fiscal year."""
        pass

    @abstractmethod
    def set_period_start_month(self, period_id: str, month: str) -> None:
        """Set the period's start month."""
        pass

    @abstractmethod
    def set_period_horizon(self, period_id: str, month: str) -> None:
        """Persist the last month a manual extension reached."""
        pass

    # Contributions

    @abstractmethod
    def list_contributions(self, period_id: str) -> list[Contribution]:
        """All contributions of a period, in no particular order."""
        pass

    @abstractmethod
    def upsert_contribution(
        self,
        member_id: str,
        period_id: str,
        month: str,
        amount: Decimal,
        editor_id: Optional[str],
    ) -> None:
        """Insert or overwrite the contribution keyed by (member, period, month)."""
        pass

    # Members

    @abstractmethod
    def list_members(self) -> list[Member]:
        """All members in registration order."""
        pass

    @abstractmethod
    def add_member(self, member: Member) -> Member:
        """Persist a new member and return it as stored."""
        pass

    @abstractmethod
    def update_member(self, member: Member) -> Member:
        """Overwrite an existing member. Raises RecordNotFound."""
        pass

    @abstractmethod
    def delete_member(self, member_id: str) -> None:
        """Hard-delete a member. Raises RecordNotFound."""
        pass

    @abstractmethod
    def member_has_contributions(self, member_id: str) -> bool:
        """Whether any contribution references the member."""
        pass

    def close(self) -> None:
        """Release resources held by the backend."""
        pass
