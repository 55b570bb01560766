"""Month parsing and month-sequence generation.

A month is the string ``YYYY-MM`` (month number 1-12). Months order by
(year, month); because of the fixed zero-padded format that is also their
plain string order, but comparisons here always go through ``parse_month``.
"""

import re
from datetime import date
from typing import Optional, Sequence

from mkoba_ledger.errors import PreconditionError, ValidationError

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(raw_month: str) -> tuple[int, int]:
    """Parse a ``YYYY-MM`` string into a (year, month) tuple.

    Args:
        raw_month: The month string to parse.

    Returns:
        Tuple of (year, month number).

    Raises:
        ValidationError: If the string is not a valid month.
    """
    if not raw_month:
        raise ValidationError("Empty month string", field="month")

    match = MONTH_PATTERN.match(str(raw_month).strip())
    if not match:
        raise ValidationError(f"Cannot parse month: '{raw_month}' (expected YYYY-MM)", field="month")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Month number out of range in '{raw_month}'", field="month")

    return (year, month)


def format_month(year: int, month: int) -> str:
    """Format a (year, month) pair as ``YYYY-MM``.

    Args:
        year: Four-digit year.
        month: Month number 1-12.

    Returns:
        Month string.
    """
    return f"{year}-{month:02d}"


def validate_month(raw_month: str) -> str:
    """Validate and normalize a month string.

    Args:
        raw_month: The month string.

    Returns:
        The normalized ``YYYY-MM`` string.
    """
    return format_month(*parse_month(raw_month))


def current_month(today: Optional[date] = None) -> str:
    """Get the calendar month containing ``today``.

    Args:
        today: Reference date (defaults to the system date).

    Returns:
        Month string for the reference date.
    """
    if today is None:
        today = date.today()
    return format_month(today.year, today.month)


def next_month(month: str) -> str:
    """Return the month immediately after ``month``.

    December rolls over to January of the following year.

    Args:
        month: Month string.

    Returns:
        The following month.
    """
    year, month_num = parse_month(month)
    month_num += 1
    if month_num == 13:
        month_num = 1
        year += 1
    return format_month(year, month_num)


def months_between(start: str, end: str) -> list[str]:
    """Generate every month from ``start`` through ``end`` inclusive.

    Args:
        start: First month.
        end: Last month.

    Returns:
        Ascending list of months; empty if ``start`` is after ``end``.
    """
    end_key = parse_month(end)
    current_year, current_month_num = parse_month(start)

    months = []
    while (current_year, current_month_num) <= end_key:
        months.append(format_month(current_year, current_month_num))
        current_month_num += 1
        if current_month_num == 13:
            current_month_num = 1
            current_year += 1

    return months


def months_from_start(start: str, today: Optional[date] = None) -> list[str]:
    """Generate the month sequence from ``start`` through the current month.

    Args:
        start: The period's start month.
        today: Reference date (defaults to the system date).

    Returns:
        Ascending, gap-free list of months. A single element when ``start``
        is the current month, empty when ``start`` lies in the future.
    """
    return months_between(start, current_month(today))


def append_month(sequence: Sequence[str]) -> list[str]:
    """Extend a month sequence by one month.

    Unlike ``months_from_start`` this ignores the wall clock, so it can
    pre-provision future months.

    Args:
        sequence: Existing ascending month sequence.

    Returns:
        A new list with the following month appended.

    Raises:
        PreconditionError: If the sequence is empty (ledger not initialized).
    """
    if not sequence:
        raise PreconditionError("Ledger is not initialized: no months to extend")
    return [*sequence, next_month(sequence[-1])]
