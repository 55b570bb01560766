"""Exception hierarchy for the contribution ledger."""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""

    pass


class ValidationError(LedgerError):
    """Raised when input is malformed or incomplete.

    Detected locally, before any store call is made.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        """Initialize ValidationError.

        Args:
            message: Error message.
            field: Name of the offending field, if known.
        """
        self.field = field
        super().__init__(message)


class PreconditionError(LedgerError):
    """Raised when an operation is not allowed in the current state.

    Examples: editing with no period selected, editing with a role that
    lacks edit rights, initializing a period twice.
    """

    pass


class StoreError(LedgerError):
    """Raised when a persistence call fails, times out or violates a constraint.

    Store errors are terminal for the action that caused them. They are never
    retried automatically; callers report them and may re-issue explicitly.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        retryable: bool = False,
    ):
        """Initialize StoreError.

        Args:
            message: Error message.
            operation: Name of the store operation that failed.
            retryable: Whether re-issuing the same call may succeed (timeouts, transport).
        """
        self.operation = operation
        self.retryable = retryable
        super().__init__(message)


class AggregationError(LedgerError):
    """Raised when ledger totals disagree with each other."""

    pass
