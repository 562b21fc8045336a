from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal("0")

# Largest difference between total debits and total credits that still counts as balanced
BALANCE_EPSILON = Decimal("0.01")

DEFAULT_MINOR_UNITS = 2

# ISO 4217 currencies whose minor unit is not 2 decimals
MINOR_UNITS = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "IDR": 0,
    "CLP": 0,
    "ISK": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}


def minor_units(currency: str) -> int:
    return MINOR_UNITS.get((currency or "").upper(), DEFAULT_MINOR_UNITS)


def quantum(currency: str) -> Decimal:
    return Decimal(1).scaleb(-minor_units(currency))


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and floats (via their repr) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")


def round_money(amount: Any, currency: str = "") -> Decimal:
    """Round half-up to the minor unit of `currency` (2 decimals when unknown)."""
    return to_decimal(amount).quantize(quantum(currency), rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def is_balanced(total_debit: Decimal, total_credit: Decimal, tolerance: Decimal = BALANCE_EPSILON) -> bool:
    return abs(total_debit - total_credit) <= tolerance
