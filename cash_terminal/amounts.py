"""
Monetary Amount Module

Single-currency amount handling with two decimal places of precision.
NEVER uses float for monetary values: every amount entering the ledger is
normalized here to a quantized Decimal.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, int, str, float]

# Sign, digits and separators only; exponents and stray letters are rejected
_AMOUNT_PATTERN = re.compile(r'[+-]?[\d.,]+')
_GROUPED_PATTERN = re.compile(r'[+-]?\d{1,3}(,\d{3})+')


def to_amount(value: AmountLike, exact: bool = False) -> Decimal:
    """
    Normalize a value to a Decimal amount with two decimal places

    Floats are converted through their string form so that 10.1 becomes
    Decimal('10.10') rather than its binary approximation.

    Args:
        value: Amount to normalize
        exact: Reject values that would change when rounded to cents

    Raises:
        ValueError: If value cannot be interpreted as an amount
    """
    if isinstance(value, bool):
        raise ValueError("Amount cannot be a boolean")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        amount = decimal_from_string(value)
    else:
        raise ValueError(f"Unsupported amount type: {type(value).__name__}")

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")

    try:
        quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount {value!r} is too large")

    if exact and quantized != amount:
        raise ValueError(f"Amount {value!r} has more than two decimal places")

    return quantized


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number ("$1,250.50", "20", "7,5")

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbol and whitespace
    clean_value = re.sub(r'[\s$]', '', value)

    if not _AMOUNT_PATTERN.fullmatch(clean_value):
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - comma is the thousands separator
        clean_value = clean_value.replace(',', '')
    elif clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif clean_value.count(',') > 1:
        if not _GROUPED_PATTERN.fullmatch(clean_value):
            raise ValueError(f"Cannot convert '{value}' to Decimal")
        clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def is_multiple_of(amount: Decimal, step: int) -> bool:
    """Check that amount is a whole multiple of step"""
    return amount % Decimal(step) == 0


def format_amount(amount: Decimal) -> str:
    """Format for display, e.g. $1,250.00"""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
