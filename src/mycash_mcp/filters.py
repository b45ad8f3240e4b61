"""Session filter state shared by every aggregation."""

import calendar
import dataclasses
from dataclasses import dataclass
from datetime import date
from enum import Enum

from .models import DateRange


class TransactionFilter(str, Enum):
    ALL = "all"
    INCOME = "income"
    EXPENSE = "expense"


def month_range(year: int, month: int) -> DateRange:
    """First through last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(date(year, month, 1), date(year, month, last_day))


def current_month_range(today: date | None = None) -> DateRange:
    """Month range containing ``today`` (default: the real today)."""
    today = today or date.today()
    return month_range(today.year, today.month)


@dataclass(frozen=True)
class FiltersState:
    """Immutable filter record.

    ``selected_member`` None means all members. ``search_text`` matches
    descriptions and category names case-insensitively. The date range is
    kept exactly as given; callers supply start <= end.
    """

    date_range: DateRange
    selected_member: str | None = None
    transaction_type: TransactionFilter = TransactionFilter.ALL
    search_text: str = ""

    @classmethod
    def default(cls, today: date | None = None) -> "FiltersState":
        """Current calendar month, all members, all types, no search."""
        return cls(date_range=current_month_range(today))

    def merge(self, **changes) -> "FiltersState":
        """Return a copy with only the given fields replaced."""
        if "transaction_type" in changes:
            changes["transaction_type"] = TransactionFilter(
                str(getattr(changes["transaction_type"], "value", changes["transaction_type"])).lower()
            )
        if "date_range" in changes and not isinstance(changes["date_range"], DateRange):
            start, end = changes["date_range"]
            changes["date_range"] = DateRange(start, end)
        if "search_text" in changes and changes["search_text"] is None:
            changes["search_text"] = ""
        if changes.get("selected_member") == "":
            changes["selected_member"] = None
        return dataclasses.replace(self, **changes)
