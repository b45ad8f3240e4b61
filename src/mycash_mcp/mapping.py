"""Conversion between backend rows and domain entities.

Backend rows are flat dicts with snake_case column names, as returned by
SQLite or by the REST data API. This module is the only place that knows the
column layout; the rest of the engine works with ``models`` only.
"""

from dataclasses import fields as dataclass_fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from .bills import make_schedule
from .models import (
    Account,
    AccountType,
    Bill,
    BillSchedule,
    Category,
    FamilyMember,
    Frequency,
    Goal,
    Installment,
    Recurring,
    RecurringTransaction,
    Transaction,
)
from .utils import (
    normalize_status,
    normalize_type,
    parse_date,
    to_decimal,
    to_optional_decimal,
)


# Entity kinds mapped to backend table names
ENTITY_TABLES = {
    "members": "family_members",
    "categories": "categories",
    "accounts": "accounts",
    "transactions": "transactions",
    "recurring": "recurring_transactions",
    "bills": "bills",
    "goals": "goals",
}


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _account_type(value: Any) -> AccountType:
    try:
        return AccountType(str(value).upper())
    except ValueError:
        return AccountType.CHECKING


# -----------------------------------------------------------------------------
# Row -> entity
# -----------------------------------------------------------------------------

def member_from_row(row: dict[str, Any]) -> FamilyMember:
    return FamilyMember(
        id=str(row["id"]),
        name=row.get("name") or "",
        role=row.get("role") or "",
        avatar_url=row.get("avatar_url"),
        monthly_income=to_decimal(row.get("monthly_income")),
        color=row.get("color") or "#3247FF",
        is_active=bool(row.get("is_active", True)),
    )


def category_from_row(row: dict[str, Any]) -> Category:
    return Category(
        id=str(row["id"]),
        name=row.get("name") or "",
        type=normalize_type(row.get("type")),
        icon=row.get("icon") or "📌",
        color=row.get("color") or "#3247FF",
        is_active=bool(row.get("is_active", True)),
    )


def account_from_row(row: dict[str, Any]) -> Account:
    return Account(
        id=str(row["id"]),
        name=row.get("name") or "",
        type=_account_type(row.get("type") or "CHECKING"),
        holder_id=row.get("holder_id"),
        balance=to_decimal(row.get("balance")),
        credit_limit=to_optional_decimal(row.get("credit_limit")),
        current_bill=to_decimal(row.get("current_bill")),
        closing_day=_optional_int(row.get("closing_day")),
        due_day=_optional_int(row.get("due_day")),
        bank=row.get("bank") or "",
        last_digits=row.get("last_digits"),
        theme=row.get("theme") or "black",
        color=row.get("color") or "#3247FF",
        is_active=bool(row.get("is_active", True)),
    )


def transaction_from_row(row: dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(row["id"]),
        type=normalize_type(row.get("type")),
        amount=to_decimal(row.get("amount")),
        description=row.get("description") or "",
        date=parse_date(row.get("date")) or date.today(),
        category_id=row.get("category_id"),
        account_id=row.get("account_id"),
        member_id=row.get("member_id"),
        installment_number=_optional_int(row.get("installment_number")),
        total_installments=_optional_int(row.get("total_installments")) or 1,
        is_recurring=bool(row.get("is_recurring", False)),
        status=normalize_status(row.get("status")),
        notes=row.get("notes"),
    )


def recurring_from_row(row: dict[str, Any]) -> RecurringTransaction:
    try:
        frequency = Frequency(str(row.get("frequency") or "MONTHLY").upper())
    except ValueError:
        frequency = Frequency.MONTHLY
    return RecurringTransaction(
        id=str(row["id"]),
        type=normalize_type(row.get("type")),
        amount=to_decimal(row.get("amount")),
        description=row.get("description") or "",
        frequency=frequency,
        start_date=parse_date(row.get("start_date")) or date.today(),
        category_id=row.get("category_id"),
        account_id=row.get("account_id"),
        member_id=row.get("member_id"),
        day_of_month=_optional_int(row.get("day_of_month")),
        day_of_week=_optional_int(row.get("day_of_week")),
        end_date=parse_date(row.get("end_date")),
        is_active=bool(row.get("is_active", True)),
        notes=row.get("notes"),
    )


def schedule_from_row(row: dict[str, Any]) -> BillSchedule:
    return make_schedule(
        is_recurring=bool(row.get("is_recurring")),
        installments=_optional_int(row.get("installments")),
        current=_optional_int(row.get("current_installment")) or 1,
    )


def bill_from_row(row: dict[str, Any]) -> Bill:
    due_date = parse_date(row.get("due_date")) or date.today()
    return Bill(
        id=str(row["id"]),
        description=row.get("description") or "",
        value=to_decimal(row.get("value")),
        due_date=due_date,
        due_day=_optional_int(row.get("due_day")) or due_date.day,
        account_id=row.get("account_id"),
        schedule=schedule_from_row(row),
        paid=bool(row.get("is_paid", False)),
    )


def goal_from_row(row: dict[str, Any]) -> Goal:
    return Goal(
        id=str(row["id"]),
        title=row.get("title") or row.get("name") or "",
        target_amount=to_decimal(row.get("target_amount")),
        current_amount=to_decimal(row.get("current_amount")),
        description=row.get("description") or "",
        deadline=parse_date(row.get("deadline")),
        category=row.get("category") or "",
        member_id=row.get("member_id"),
        is_completed=bool(row.get("is_completed", False)),
        is_active=bool(row.get("is_active", True)),
    )


FROM_ROW: dict[str, Callable[[dict[str, Any]], Any]] = {
    "members": member_from_row,
    "categories": category_from_row,
    "accounts": account_from_row,
    "transactions": transaction_from_row,
    "recurring": recurring_from_row,
    "bills": bill_from_row,
    "goals": goal_from_row,
}


# -----------------------------------------------------------------------------
# Entity fields -> row
# -----------------------------------------------------------------------------

def encode_value(value: Any) -> Any:
    """Encode one value for storage: Decimals as strings, dates as ISO."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def schedule_to_row(schedule: BillSchedule) -> dict[str, Any]:
    if isinstance(schedule, Recurring):
        return {"is_recurring": True, "installments": None, "current_installment": None}
    if isinstance(schedule, Installment):
        return {
            "is_recurring": False,
            "installments": schedule.total,
            "current_installment": schedule.current,
        }
    return {"is_recurring": False, "installments": None, "current_installment": None}


def fields_to_row(kind: str, values: dict[str, Any]) -> dict[str, Any]:
    """Encode a (partial) dict of entity fields as a backend row.

    Bills store their schedule as three columns and their paid flag as
    ``is_paid``; every other field name is already the column name.
    """
    row: dict[str, Any] = {}
    for key, value in values.items():
        if kind == "bills" and key == "schedule":
            row.update(schedule_to_row(value))
        elif kind == "bills" and key == "paid":
            row["is_paid"] = bool(value)
        else:
            row[key] = encode_value(value)
    return row


def entity_to_row(kind: str, entity: Any) -> dict[str, Any]:
    """Encode a whole entity as a backend row."""
    values = {f.name: getattr(entity, f.name) for f in dataclass_fields(entity)}
    return fields_to_row(kind, values)
