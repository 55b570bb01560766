"""Decimal utilities for contribution amounts.

All monetary values are held as Decimal so that row, column and grand
totals agree exactly.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from mkoba_ledger.errors import ValidationError

ZERO = Decimal("0")

# Stored amounts are NUMERIC(14, 2)
MAX_DECIMAL_PLACES = 2

# Currency markers seen in hand-typed amounts ("TSh 5,000", "KSh5000", "$20")
CURRENCY_PATTERN = re.compile(r"^(TSH|TZS|KSH|KES|USH|UGX|\$)\s*", re.IGNORECASE)


def parse_amount(raw_amount: object) -> Decimal:
    """Parse a contribution amount into a non-negative Decimal.

    Accepts Decimal, int, float and strings such as ``5000``, ``5,000.50``
    or ``TSh 5,000``. Floats go through ``str`` to avoid binary noise.

    Args:
        raw_amount: The value to parse.

    Returns:
        The amount as Decimal.

    Raises:
        ValidationError: If the value is empty, not numeric, not finite,
            negative or finer than MAX_DECIMAL_PLACES.
    """
    if raw_amount is None or isinstance(raw_amount, bool):
        raise ValidationError("Amount is required", field="amount")

    if isinstance(raw_amount, Decimal):
        amount = raw_amount
    elif isinstance(raw_amount, (int, float)):
        amount = Decimal(str(raw_amount))
    else:
        amount_str = str(raw_amount).strip()
        if not amount_str:
            raise ValidationError("Amount is required", field="amount")
        amount_str = CURRENCY_PATTERN.sub("", amount_str)
        amount_str = amount_str.replace(",", "").replace(" ", "")
        try:
            amount = Decimal(amount_str)
        except InvalidOperation as e:
            raise ValidationError(f"Cannot parse amount '{raw_amount}'", field="amount") from e

    if not amount.is_finite():
        raise ValidationError(f"Amount must be a finite number, got '{raw_amount}'", field="amount")
    if amount < 0:
        raise ValidationError(f"Amount must not be negative, got {amount}", field="amount")
    if amount.normalize().as_tuple().exponent < -MAX_DECIMAL_PLACES:
        raise ValidationError(
            f"Amount {amount} has more than {MAX_DECIMAL_PLACES} decimal places", field="amount"
        )

    return amount


def format_amount(amount: Decimal, decimal_places: int = 0) -> str:
    """Format an amount with thousands separators.

    Args:
        amount: The amount to format.
        decimal_places: Number of decimal places (default 0, whole shillings).

    Returns:
        Formatted string like ``12,500`` or ``12,500.00``.
    """
    quantize_str = "1" if decimal_places == 0 else "0." + "0" * decimal_places
    rounded = amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)
    return f"{rounded:,.{decimal_places}f}"


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Sum Decimal amounts, starting from Decimal zero.

    Args:
        amounts: Amounts to add.

    Returns:
        Sum as Decimal (zero for an empty iterable).
    """
    total = ZERO
    for amount in amounts:
        total += amount
    return total
