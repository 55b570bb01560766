"""Sanitization of user-entered text before it reaches an exported file."""

from typing import Optional

# Leading characters that make spreadsheet applications evaluate a cell
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r", "\n", "|")


def sanitize_cell(value: Optional[str]) -> Optional[str]:
    """Neutralize a text cell that would otherwise be read as a formula.

    Member names are typed in by officials, so a name such as ``=HYPERLINK(..)``
    is prefixed with a single quote before being written to a workbook.

    Args:
        value: Text to sanitize, or None.

    Returns:
        Sanitized text, or None if input was None.
    """
    if not value:
        return value

    if value.startswith(_FORMULA_PREFIXES):
        return "'" + value

    return value
