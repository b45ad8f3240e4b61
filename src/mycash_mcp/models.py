"""Domain entities for the mycash finance engine.

These are plain data classes with one canonical field set. Backend rows are
converted to and from them in ``mapping.py`` only.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


ZERO = Decimal("0")

FAMILY_LABEL = "Family"
UNKNOWN_LABEL = "Unknown"


class TransactionType(str, Enum):
    """Income or expense. Also used as the category namespace."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AccountType(str, Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    INVESTMENT = "INVESTMENT"
    CREDIT_CARD = "CREDIT_CARD"


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class FamilyMember:
    id: str
    name: str
    role: str = ""
    avatar_url: str | None = None
    monthly_income: Decimal = ZERO
    color: str = "#3247FF"
    is_active: bool = True


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: TransactionType
    icon: str = "📌"
    color: str = "#3247FF"
    is_active: bool = True


@dataclass(frozen=True)
class Account:
    """Bank account or credit card, told apart by ``type``."""

    id: str
    name: str
    type: AccountType
    holder_id: str | None = None
    balance: Decimal = ZERO
    credit_limit: Decimal | None = None
    current_bill: Decimal = ZERO
    closing_day: int | None = None  # 1-31
    due_day: int | None = None      # 1-31
    bank: str = ""
    last_digits: str | None = None
    theme: str = "black"
    color: str = "#3247FF"
    is_active: bool = True

    @property
    def is_credit_card(self) -> bool:
        return self.type == AccountType.CREDIT_CARD


@dataclass(frozen=True)
class Transaction:
    id: str
    type: TransactionType
    amount: Decimal
    description: str
    date: date
    category_id: str | None = None
    account_id: str | None = None
    member_id: str | None = None    # None = whole family
    installment_number: int | None = None
    total_installments: int = 1     # 1 = lump sum
    is_recurring: bool = False
    status: TransactionStatus = TransactionStatus.COMPLETED
    notes: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED


@dataclass(frozen=True)
class RecurringTransaction:
    """Template for a transaction that repeats on a schedule."""

    id: str
    type: TransactionType
    amount: Decimal
    description: str
    frequency: Frequency
    start_date: date
    category_id: str | None = None
    account_id: str | None = None
    member_id: str | None = None
    day_of_month: int | None = None
    day_of_week: int | None = None  # 0=Mon..6=Sun
    end_date: date | None = None
    is_active: bool = True
    notes: str | None = None


# -----------------------------------------------------------------------------
# Bill schedules: a bill is exactly one of these
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class OneOff:
    """Paid once, then gone."""


@dataclass(frozen=True)
class Recurring:
    """Repeats every month until deleted."""


@dataclass(frozen=True)
class Installment:
    """Installment ``current`` of ``total``."""

    current: int
    total: int

    @property
    def is_final(self) -> bool:
        return self.current >= self.total


BillSchedule = OneOff | Recurring | Installment


@dataclass(frozen=True)
class Bill:
    """A forward-looking payable, not a ledger entry.

    ``due_day`` is the day-of-month anchor used when the bill rolls over; it
    survives short months so a bill due on the 31st comes back on the 31st.
    """

    id: str
    description: str
    value: Decimal
    due_date: date
    due_day: int
    account_id: str | None = None
    schedule: BillSchedule = field(default_factory=OneOff)
    paid: bool = False

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.schedule, Recurring)


@dataclass(frozen=True)
class Goal:
    id: str
    title: str
    target_amount: Decimal
    current_amount: Decimal = ZERO
    description: str = ""
    deadline: date | None = None
    category: str = ""
    member_id: str | None = None
    is_completed: bool = False
    is_active: bool = True


# -----------------------------------------------------------------------------
# Derived records
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    """Inclusive on both ends."""

    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class ExpenseByCategory:
    category_id: str
    category_name: str
    category_icon: str
    category_color: str
    total: Decimal = ZERO
    count: int = 0
    percentage: Decimal = ZERO


@dataclass
class ExpenseByMember:
    member_id: str | None
    member_name: str
    member_avatar: str | None
    total: Decimal = ZERO
    count: int = 0
    percentage: Decimal = ZERO
