"""Bill lifecycle: pending bills and the paid-bill rollover."""

import calendar
import dataclasses
import uuid
from collections.abc import Iterable
from datetime import date

from .models import (
    Bill,
    BillSchedule,
    Frequency,
    Installment,
    OneOff,
    Recurring,
    RecurringTransaction,
    TransactionType,
)


def resolve_day(year: int, month: int, day: int) -> int:
    """Clamp ``day`` to the length of the given month."""
    return min(day, calendar.monthrange(year, month)[1])


def next_month_on(d: date, anchor_day: int) -> date:
    """Same anchor day in the month after ``d``, clamped to month end.

    Jan 31 with anchor 31 gives Feb 28 (29 in leap years); Feb 28 with
    anchor 31 gives Mar 31.
    """
    y, m = d.year, d.month + 1
    if m > 12:
        y, m = y + 1, 1
    return date(y, m, resolve_day(y, m, anchor_day))


def _new_id() -> str:
    return str(uuid.uuid4())


def advance(bill: Bill) -> Bill | None:
    """Successor of a bill once it is paid.

    Recurring bills come back one month later. Installment bills come back one
    month later with the next installment, until the final one. One-off bills
    and final installments have no successor.
    """
    schedule = bill.schedule
    if isinstance(schedule, Recurring):
        next_schedule = schedule
    elif isinstance(schedule, Installment) and not schedule.is_final:
        next_schedule = Installment(current=schedule.current + 1, total=schedule.total)
    else:
        return None

    return dataclasses.replace(
        bill,
        id=_new_id(),
        due_date=next_month_on(bill.due_date, bill.due_day),
        schedule=next_schedule,
        paid=False,
    )


def pending_bills(bills: Iterable[Bill]) -> list[Bill]:
    """Unpaid bills, soonest due first."""
    return sorted((b for b in bills if not b.paid), key=lambda b: b.due_date)


def first_due_on_or_after(day_of_month: int, from_date: date) -> date:
    """First date with ``day_of_month`` (clamped) that is not before ``from_date``."""
    effective = resolve_day(from_date.year, from_date.month, day_of_month)
    if effective >= from_date.day:
        return from_date.replace(day=effective)
    return next_month_on(from_date, day_of_month)


def bills_from_recurring(
    templates: Iterable[RecurringTransaction],
    existing: Iterable[Bill],
    reference: date,
) -> list[Bill]:
    """Derive pending bills for monthly expense templates.

    One recurring bill is created per active MONTHLY EXPENSE template that is
    running on ``reference`` and has no pending bill with the same description.
    The due date is the template's day of month on or after ``reference``.
    """
    pending_descriptions = {b.description for b in existing if not b.paid}
    bills = []
    for template in templates:
        if not template.is_active:
            continue
        if template.type != TransactionType.EXPENSE or template.frequency != Frequency.MONTHLY:
            continue
        if template.start_date > reference:
            continue
        if template.end_date and template.end_date < reference:
            continue
        if template.description in pending_descriptions:
            continue

        anchor = template.day_of_month or template.start_date.day
        bills.append(
            Bill(
                id=_new_id(),
                description=template.description,
                value=template.amount,
                due_date=first_due_on_or_after(anchor, reference),
                due_day=anchor,
                account_id=template.account_id,
                schedule=Recurring(),
            )
        )
        pending_descriptions.add(template.description)
    return bills


def make_schedule(
    is_recurring: bool = False,
    installments: int | None = None,
    current: int = 1,
) -> BillSchedule:
    """Build a bill schedule from the flags used by entry forms."""
    if is_recurring:
        return Recurring()
    if installments and installments > 1:
        return Installment(current=current, total=installments)
    return OneOff()
