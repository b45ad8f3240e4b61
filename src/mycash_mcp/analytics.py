"""Derived metrics over the finance entities.

Every function here is pure: it takes entity collections and a filter state
and returns numbers or summary records. Nothing is cached; callers recompute
whenever the entities or the filters change.
"""

from collections.abc import Iterable
from decimal import Decimal

from .filters import FiltersState
from .models import (
    FAMILY_LABEL,
    UNKNOWN_LABEL,
    ZERO,
    Account,
    Category,
    ExpenseByCategory,
    ExpenseByMember,
    FamilyMember,
    Goal,
    Transaction,
    TransactionType,
)
from .utils import type_matches


HUNDRED = Decimal("100")


def percentage_of(amount: Decimal, base: Decimal) -> Decimal:
    """amount / base * 100, or zero when base is zero."""
    if not base:
        return ZERO
    return amount / base * HUNDRED


# -----------------------------------------------------------------------------
# Balances
# -----------------------------------------------------------------------------

def total_balance(accounts: Iterable[Account]) -> Decimal:
    """Bank balances minus credit-card bills. Filters do not apply."""
    bank = ZERO
    card_bills = ZERO
    for account in accounts:
        if account.is_credit_card:
            card_bills += account.current_bill
        else:
            bank += account.balance
    return bank - card_bills


# -----------------------------------------------------------------------------
# Period totals
# -----------------------------------------------------------------------------

def in_period(tx: Transaction, tx_type: TransactionType, filters: FiltersState) -> bool:
    """True if ``tx`` counts toward ``tx_type`` totals under ``filters``.

    The transaction must be of that type, COMPLETED, dated inside the range,
    and belong to the selected member when one is selected.
    """
    if not type_matches(tx.type, tx_type):
        return False
    if not tx.is_completed:
        return False
    if tx.date not in filters.date_range:
        return False
    if filters.selected_member is not None and tx.member_id != filters.selected_member:
        return False
    return True


def _sum_for_period(
    transactions: Iterable[Transaction],
    tx_type: TransactionType,
    filters: FiltersState,
) -> Decimal:
    return sum(
        (tx.amount for tx in transactions if in_period(tx, tx_type, filters)),
        ZERO,
    )


def income_for_period(transactions: Iterable[Transaction], filters: FiltersState) -> Decimal:
    return _sum_for_period(transactions, TransactionType.INCOME, filters)


def expenses_for_period(transactions: Iterable[Transaction], filters: FiltersState) -> Decimal:
    return _sum_for_period(transactions, TransactionType.EXPENSE, filters)


def savings_rate(income: Decimal, expenses: Decimal) -> Decimal:
    """Share of income not spent, in percent. Zero when there is no income."""
    return percentage_of(income - expenses, income)


def category_percentage(amount: Decimal, income: Decimal) -> Decimal:
    """Percentage of income represented by ``amount``; zero without income."""
    return percentage_of(amount, income)


# -----------------------------------------------------------------------------
# Breakdowns
# -----------------------------------------------------------------------------

def expenses_by_category(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    filters: FiltersState,
) -> list[ExpenseByCategory]:
    """Group period expenses by category.

    Only transactions whose category id resolves to a known EXPENSE category
    are counted. The percentage of each group is relative to the period's
    income, not to total expenses, so it can exceed 100.

    Returns:
        Groups sorted by total, largest first.
    """
    transactions = list(transactions)
    by_id = {
        c.id: c for c in categories if c.type == TransactionType.EXPENSE
    }
    groups: dict[str, ExpenseByCategory] = {}

    for tx in transactions:
        if not tx.category_id or not in_period(tx, TransactionType.EXPENSE, filters):
            continue
        category = by_id.get(tx.category_id)
        if category is None:
            continue
        group = groups.get(category.id)
        if group is None:
            group = ExpenseByCategory(
                category_id=category.id,
                category_name=category.name,
                category_icon=category.icon,
                category_color=category.color,
            )
            groups[category.id] = group
        group.total += tx.amount
        group.count += 1

    income = income_for_period(transactions, filters)
    result = list(groups.values())
    for group in result:
        group.percentage = category_percentage(group.total, income)

    result.sort(key=lambda g: g.total, reverse=True)
    return result


def member_name(member_id: str | None, members: Iterable[FamilyMember]) -> str:
    """Display name for a member reference.

    No member means the whole family; an id that no longer resolves (for
    example a soft-deleted member) shows as unknown.
    """
    if member_id is None:
        return FAMILY_LABEL
    for member in members:
        if member.id == member_id:
            return member.name
    return UNKNOWN_LABEL


def category_name(category_id: str | None, categories: Iterable[Category]) -> str:
    if category_id is None:
        return UNKNOWN_LABEL
    for category in categories:
        if category.id == category_id:
            return category.name
    return UNKNOWN_LABEL


def expenses_by_member(
    transactions: Iterable[Transaction],
    members: Iterable[FamilyMember],
    filters: FiltersState,
) -> list[ExpenseByMember]:
    """Group period expenses by family member.

    Percentages are relative to total expenses of the period. Whole-family
    expenses form their own group.
    """
    members = list(members)
    avatars = {m.id: m.avatar_url for m in members}
    groups: dict[str | None, ExpenseByMember] = {}
    total = ZERO

    for tx in transactions:
        if not in_period(tx, TransactionType.EXPENSE, filters):
            continue
        group = groups.get(tx.member_id)
        if group is None:
            group = ExpenseByMember(
                member_id=tx.member_id,
                member_name=member_name(tx.member_id, members),
                member_avatar=avatars.get(tx.member_id) if tx.member_id else None,
            )
            groups[tx.member_id] = group
        group.total += tx.amount
        group.count += 1
        total += tx.amount

    result = list(groups.values())
    for group in result:
        group.percentage = percentage_of(group.total, total)

    result.sort(key=lambda g: g.total, reverse=True)
    return result


# -----------------------------------------------------------------------------
# Goals
# -----------------------------------------------------------------------------

def goal_progress(goal: Goal) -> Decimal:
    """Progress toward the target in percent, clamped to [0, 100]."""
    progress = percentage_of(goal.current_amount, goal.target_amount)
    return max(ZERO, min(HUNDRED, progress))
