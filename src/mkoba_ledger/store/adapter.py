"""Ledger store adapter: bounded, error-normalizing access to a backend."""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from mkoba_ledger.errors import StoreError
from mkoba_ledger.models.contribution import Contribution
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod
from mkoba_ledger.store.base import LedgerBackend, RecordNotFound
from mkoba_ledger.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0

# Failures that a later attempt may not hit again
TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, ConnectionError, OSError)


def is_retryable(error: BaseException) -> bool:
    """Whether a failed backend call may succeed if issued again.

    Constraint violations are permanent. Transport failures and lock
    contention are transient.
    """
    if isinstance(error, IntegrityError):
        return False
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    return isinstance(error, TRANSIENT_ERRORS)


class LedgerStoreAdapter:
    """Front door to persistence for the ledger engine.

    Every call runs on a single worker thread and is bounded by
    ``timeout_seconds``. Backend exceptions, missing records and timeouts all
    surface as ``StoreError``. Nothing is retried here.

    A timeout only stops the wait. A call that is already running cannot be
    cancelled, so later calls queue behind it on the single worker. A
    timed-out write may therefore still be applied after ``StoreError`` was
    raised; re-read the period before re-issuing it.

    Concurrent writers to the same (member, period, month) are resolved by
    the backend's upsert: the most recent write wins silently.
    """

    def __init__(self, backend: LedgerBackend, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        """Initialize the adapter.

        Args:
            backend: Persistence backend.
            timeout_seconds: Upper bound on each call.
        """
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-store")

    def _call(self, operation: str, func: Callable[..., T], *args: object, **context: object) -> T:
        """Run a backend call under the timeout and translate its failures."""
        with LogContext(
            logger, f"{self.backend.name}.{operation}", warn_after=self.timeout_seconds / 2, **context
        ):
            future = self._executor.submit(func, *args)
            try:
                return future.result(timeout=self.timeout_seconds)
            except FutureTimeoutError as e:
                future.cancel()
                raise StoreError(
                    f"{operation} timed out after {self.timeout_seconds:g}s",
                    operation=operation,
                    retryable=True,
                ) from e
            except StoreError:
                raise
            except RecordNotFound as e:
                raise StoreError(str(e), operation=operation) from e
            except Exception as e:
                raise StoreError(
                    f"{operation} failed: {e}",
                    operation=operation,
                    retryable=is_retryable(e),
                ) from e

    # Contribution ledger contract

    def upsert(
        self,
        member_id: str,
        period_id: str,
        month: str,
        amount: Decimal,
        editor_id: Optional[str],
    ) -> None:
        """Write or overwrite the contribution keyed by (member, period, month).

        Repeating the call with the same key leaves a single record holding
        the latest amount.
        """
        self._call(
            "upsert_contribution",
            self.backend.upsert_contribution,
            member_id, period_id, month, amount, editor_id,
            member_id=member_id, period_id=period_id, month=month,
        )

    def fetch_by_period(self, period_id: str) -> list[Contribution]:
        """All contributions of a period. Order is not guaranteed."""
        return self._call(
            "list_contributions", self.backend.list_contributions, period_id, period_id=period_id
        )

    # Periods

    def get_period(self, period_id: str) -> ContributionPeriod:
        return self._call("get_period", self.backend.get_period, period_id, period_id=period_id)

    def list_periods(self) -> list[ContributionPeriod]:
        return self._call("list_periods", self.backend.list_periods)

    def create_period(self, year: int, created_by: Optional[str] = None) -> ContributionPeriod:
        return self._call("create_period", self.backend.create_period, year, created_by, year=year)

    def set_period_start_month(self, period_id: str, month: str) -> None:
        self._call(
            "set_period_start_month", self.backend.set_period_start_month, period_id, month,
            period_id=period_id, month=month,
        )

    def set_period_horizon(self, period_id: str, month: str) -> None:
        self._call(
            "set_period_horizon", self.backend.set_period_horizon, period_id, month,
            period_id=period_id, month=month,
        )

    # Members

    def list_members(self) -> list[Member]:
        return self._call("list_members", self.backend.list_members)

    def add_member(self, member: Member) -> Member:
        return self._call("add_member", self.backend.add_member, member, member_id=member.id)

    def update_member(self, member: Member) -> Member:
        return self._call("update_member", self.backend.update_member, member, member_id=member.id)

    def delete_member(self, member_id: str) -> None:
        self._call("delete_member", self.backend.delete_member, member_id, member_id=member_id)

    def member_has_contributions(self, member_id: str) -> bool:
        return self._call(
            "member_has_contributions", self.backend.member_has_contributions, member_id,
            member_id=member_id,
        )

    def close(self) -> None:
        """Stop the worker thread and release the backend."""
        self._executor.shutdown(wait=False)
        self.backend.close()


def open_store(database_url: Optional[str] = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> LedgerStoreAdapter:
    """Open a store adapter.

    Args:
        database_url: SQLAlchemy URL; None selects the in-memory backend.
        timeout_seconds: Upper bound on each call.

    Returns:
        Ready-to-use adapter.
    """
    if database_url is None:
        from mkoba_ledger.store.memory import InMemoryBackend

        return LedgerStoreAdapter(InMemoryBackend(), timeout_seconds)

    from mkoba_ledger.store.sql import SQLBackend

    try:
        backend = SQLBackend(database_url)
    except Exception as e:
        raise StoreError(f"Cannot open database: {e}", operation="open") from e
    return LedgerStoreAdapter(backend, timeout_seconds)
