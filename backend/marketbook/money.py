"""
Fixed-point money helpers.

Amounts are stored as integer minor units (kobo/cents) and parsed through
Decimal so binary floating point never touches a stored value.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

# Maximum amount: 9,999,999,999.99 in major units
MAX_AMOUNT_CENTS = 999_999_999_999

_CENT = Decimal("0.01")


class AmountError(ValueError):
    """Raised when an amount cannot be parsed into minor units."""


def parse_amount(value, field: str = "amount") -> int:
    """
    Parse a JSON number or numeric string into integer minor units.

    Rejects booleans, negatives, NaN/infinity and more than two decimal places.
    """
    if value is None or isinstance(value, bool):
        raise AmountError(f"{field} must be a number")

    if isinstance(value, float):
        # repr() of a float is the shortest round-tripping form ("99.99")
        raw = repr(value)
    else:
        raw = str(value).strip()
    if not raw:
        raise AmountError(f"{field} must be a number")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise AmountError(f"{field} must be a number")

    if not amount.is_finite():
        raise AmountError(f"{field} must be a finite number")
    if amount < 0:
        raise AmountError(f"{field} must be >= 0")
    # Range check first: quantize() overflows the context precision on huge exponents
    if amount > cents_to_decimal(MAX_AMOUNT_CENTS):
        raise AmountError(f"{field} cannot exceed {format_amount(MAX_AMOUNT_CENTS)}")
    if amount != amount.quantize(_CENT):
        raise AmountError(f"{field} cannot have more than 2 decimal places")

    return int(amount.quantize(_CENT) * 100)


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


def amount_str(cents: int) -> str:
    """Plain decimal string used in JSON payloads: 1234.5 -> "1234.50"."""
    return str(cents_to_decimal(cents))


def format_amount(cents: int) -> str:
    """Display form with thousands separators: 123450 -> "1,234.50"."""
    return f"{cents_to_decimal(cents):,.2f}"


def format_currency(cents: int, symbol: str = "₦") -> str:
    return f"{symbol}{format_amount(cents)}"


def status_label(status: str | None) -> str:
    """'paid' -> 'Paid'."""
    if not status:
        return ""
    return status[:1].upper() + status[1:]
