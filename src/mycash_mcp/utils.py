"""Utility functions for normalising raw values into domain types."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .models import ZERO, TransactionStatus, TransactionType


def to_decimal(value: Any) -> Decimal:
    """Convert a raw monetary value to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. None, empty strings and
    unparseable input become zero.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return ZERO


def to_optional_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value)


def parse_date(value: Any) -> date | None:
    """Parse an ISO date or datetime string. Dates pass through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def normalize_type(value: Any) -> TransactionType:
    """Map 'income' / 'INCOME' / TransactionType to TransactionType.

    Anything that is not income is treated as an expense, matching how
    entries are created when no type is given.
    """
    if isinstance(value, TransactionType):
        return value
    if value is not None and str(value).upper() == TransactionType.INCOME.value:
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def normalize_status(value: Any) -> TransactionStatus:
    """Upper-case a status.

    A missing status means COMPLETED. An unrecognised one is treated as
    PENDING so it never moves account balances.
    """
    if isinstance(value, TransactionStatus):
        return value
    if not value:
        return TransactionStatus.COMPLETED
    try:
        return TransactionStatus(str(value).upper())
    except ValueError:
        return TransactionStatus.PENDING


def type_matches(tx_type: Any, wanted: TransactionType | str) -> bool:
    """Case-insensitive comparison of a transaction type against a wanted one."""
    wanted_value = wanted.value if isinstance(wanted, TransactionType) else str(wanted)
    actual = tx_type.value if isinstance(tx_type, TransactionType) else str(tx_type)
    return actual.upper() == wanted_value.upper()


def money(value: Decimal) -> float:
    """Render a Decimal for JSON output, rounded to cents."""
    return float(round(value, 2))
