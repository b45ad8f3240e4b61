"""Tests for the bill lifecycle."""

import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from mycash_mcp.bills import (
    advance,
    bills_from_recurring,
    make_schedule,
    next_month_on,
    pending_bills,
)
from mycash_mcp.models import (
    Bill,
    Frequency,
    Installment,
    OneOff,
    Recurring,
    RecurringTransaction,
    TransactionType,
)


def make_bill(due_date, schedule=None, due_day=None, bill_id="b1", paid=False) -> Bill:
    return Bill(
        id=bill_id,
        description="Rent",
        value=Decimal("1500"),
        due_date=due_date,
        due_day=due_day or due_date.day,
        account_id="a-check",
        schedule=schedule or OneOff(),
        paid=paid,
    )


class TestNextMonth:
    """Test month arithmetic with a day-of-month anchor."""

    @pytest.mark.parametrize(
        "current, anchor, expected",
        [
            (date(2024, 1, 15), 15, date(2024, 2, 15)),
            (date(2024, 1, 31), 31, date(2024, 2, 29)),
            (date(2023, 1, 31), 31, date(2023, 2, 28)),
            (date(2024, 2, 29), 31, date(2024, 3, 31)),
            (date(2024, 3, 31), 31, date(2024, 4, 30)),
            (date(2024, 12, 10), 10, date(2025, 1, 10)),
        ],
    )
    def test_next_month_on(self, current, anchor, expected):
        assert next_month_on(current, anchor) == expected


class TestAdvance:
    """Test the successor of a paid bill."""

    def test_recurring_comes_back_next_month(self):
        bill = make_bill(date(2024, 1, 10), Recurring())

        successor = advance(bill)

        assert successor is not None
        assert successor.id != bill.id
        assert successor.due_date == date(2024, 2, 10)
        assert successor.schedule == Recurring()
        assert successor.paid is False
        assert successor.description == bill.description
        assert successor.value == bill.value
        assert successor.account_id == bill.account_id

    def test_recurring_end_of_month_keeps_anchor(self):
        bill = make_bill(date(2024, 1, 31), Recurring())

        february = advance(bill)
        march = advance(february)

        assert february.due_date == date(2024, 2, 29)
        assert march.due_date == date(2024, 3, 31)

    def test_installment_moves_to_next(self):
        bill = make_bill(date(2024, 1, 20), Installment(current=2, total=3))

        successor = advance(bill)

        assert successor.schedule == Installment(current=3, total=3)
        assert successor.due_date == date(2024, 2, 20)

    def test_final_installment_has_no_successor(self):
        assert advance(make_bill(date(2024, 1, 20), Installment(current=3, total=3))) is None

    def test_one_off_has_no_successor(self):
        assert advance(make_bill(date(2024, 1, 20))) is None


class TestPendingBills:
    """Test the pending bill list."""

    def test_unpaid_sorted_by_due_date(self):
        bills = [
            make_bill(date(2024, 1, 31), bill_id="late"),
            make_bill(date(2024, 1, 5), bill_id="paid", paid=True),
            make_bill(date(2024, 1, 10), bill_id="early"),
        ]
        assert [b.id for b in pending_bills(bills)] == ["early", "late"]

    def test_empty(self):
        assert pending_bills([]) == []


class TestMakeSchedule:
    """Test building schedules from form flags."""

    def test_flags(self):
        assert make_schedule(is_recurring=True) == Recurring()
        assert make_schedule(installments=4) == Installment(current=1, total=4)
        assert make_schedule(installments=4, current=2) == Installment(current=2, total=4)
        assert make_schedule(installments=1) == OneOff()
        assert make_schedule() == OneOff()


class TestBillsFromRecurring:
    """Test deriving bills from monthly expense templates."""

    def template(self, **overrides) -> RecurringTransaction:
        values = {
            "id": "r-gym",
            "type": TransactionType.EXPENSE,
            "amount": Decimal("90"),
            "description": "Gym",
            "frequency": Frequency.MONTHLY,
            "start_date": date(2023, 6, 1),
            "day_of_month": 10,
        }
        values.update(overrides)
        return RecurringTransaction(**values)

    def test_due_this_month_when_day_not_passed(self):
        bills = bills_from_recurring([self.template()], [], date(2024, 1, 5))

        assert len(bills) == 1
        assert bills[0].due_date == date(2024, 1, 10)
        assert bills[0].due_day == 10
        assert bills[0].schedule == Recurring()
        assert bills[0].value == Decimal("90")

    def test_due_next_month_when_day_passed(self):
        bills = bills_from_recurring([self.template()], [], date(2024, 1, 15))
        assert bills[0].due_date == date(2024, 2, 10)

    def test_skips_when_pending_bill_exists(self):
        existing = [dataclasses.replace(make_bill(date(2024, 1, 10)), description="Gym")]
        assert bills_from_recurring([self.template()], existing, date(2024, 1, 5)) == []

    def test_skips_income_weekly_inactive_and_ended(self):
        templates = [
            self.template(type=TransactionType.INCOME),
            self.template(frequency=Frequency.WEEKLY),
            self.template(is_active=False),
            self.template(end_date=date(2023, 12, 31)),
            self.template(start_date=date(2024, 2, 1)),
        ]
        assert bills_from_recurring(templates, [], date(2024, 1, 5)) == []
