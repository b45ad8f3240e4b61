"""In-memory finance store backed by a persistence backend.

The store owns the entity collections and the session filters. Mutations go
to the backend first and are applied in memory only when the backend call
succeeds. Derived metrics are recomputed from current state on every call.
"""

import asyncio
import dataclasses
import logging
from datetime import date
from decimal import Decimal
from typing import Any

from . import analytics
from .backend import Backend, BackendError
from .bills import advance, bills_from_recurring, pending_bills
from .filters import FiltersState, TransactionFilter
from .ledger import filter_transactions
from .mapping import FROM_ROW, entity_to_row, fields_to_row
from .models import (
    UNKNOWN_LABEL,
    Account,
    AccountType,
    Bill,
    Category,
    DateRange,
    ExpenseByCategory,
    ExpenseByMember,
    FamilyMember,
    Goal,
    RecurringTransaction,
    Transaction,
    TransactionType,
)


logger = logging.getLogger(__name__)

# Entity kinds mapped to the store attribute holding them
COLLECTIONS = {
    "members": "family_members",
    "categories": "categories",
    "accounts": "accounts",
    "transactions": "transactions",
    "recurring": "recurring_transactions",
    "bills": "bills",
    "goals": "goals",
}

# Transaction fields that move money between accounts
RECONCILED_FIELDS = frozenset({"amount", "type", "status", "account_id"})


class NotFoundError(Exception):
    """Mutation target id does not exist in the store."""

    pass


class FinanceStore:
    """Entity collections, session filters and the operations over them."""

    def __init__(self, backend: Backend, today: date | None = None):
        """Initialize an empty store.

        Args:
            backend: Persistence backend used by load and every mutation.
            today: Reference day for the default filter range (tests).
        """
        self.backend = backend
        self.family_members: list[FamilyMember] = []
        self.categories: list[Category] = []
        self.accounts: list[Account] = []
        self.transactions: list[Transaction] = []
        self.recurring_transactions: list[RecurringTransaction] = []
        self.bills: list[Bill] = []
        self.goals: list[Goal] = []
        self.filters = FiltersState.default(today)
        self.error: str | None = None
        self._account_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> bool:
        """Replace every collection with the backend's active rows.

        Returns:
            True on success. On failure the previous collections are kept and
            ``error`` holds the message.
        """
        kinds = list(COLLECTIONS)
        try:
            results = await asyncio.gather(*(self.backend.list(kind) for kind in kinds))
        except BackendError as e:
            logger.error("Error loading data: %s", e)
            self.error = str(e)
            return False

        for kind, rows in zip(kinds, results):
            from_row = FROM_ROW[kind]
            setattr(self, COLLECTIONS[kind], [from_row(row) for row in rows])
            logger.debug("Loaded %d %s", len(rows), kind)
        self.error = None
        return True

    # -------------------------------------------------------------------------
    # Generic CRUD
    # -------------------------------------------------------------------------

    def _collection(self, kind: str) -> list:
        if kind not in COLLECTIONS:
            raise ValueError(f"Unknown entity kind: {kind}")
        return getattr(self, COLLECTIONS[kind])

    def _find(self, kind: str, entity_id: str) -> Any:
        for entity in self._collection(kind):
            if entity.id == entity_id:
                return entity
        raise NotFoundError(f"No {kind} with id {entity_id!r}")

    def _build(self, kind: str, values: dict[str, Any]) -> Any:
        """Coerce raw field values into an entity by going through its row form."""
        row = {"id": "", **fields_to_row(kind, values)}
        return FROM_ROW[kind](row)

    async def _insert(self, kind: str, entity: Any) -> Any | None:
        row = entity_to_row(kind, entity)
        if not row.get("id"):
            row.pop("id", None)
        try:
            stored = await self.backend.insert(kind, row)
        except BackendError as e:
            logger.error("Error adding %s: %s", kind, e)
            return None

        created = FROM_ROW[kind](stored)
        self._collection(kind).append(created)
        logger.info("Added %s %s", kind, created.id)
        return created

    async def _add(self, kind: str, values: dict[str, Any]) -> Any | None:
        values = {k: v for k, v in values.items() if k != "id"}
        return await self._insert(kind, self._build(kind, values))

    async def _update(self, kind: str, entity_id: str, changes: dict[str, Any]) -> bool:
        entity = self._find(kind, entity_id)
        known = {f.name for f in dataclasses.fields(entity)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown {kind} fields: {', '.join(sorted(unknown))}")

        merged = {**entity_to_row(kind, entity), **fields_to_row(kind, changes)}
        updated = FROM_ROW[kind](merged)
        changed_columns = fields_to_row(kind, changes)
        row = {k: v for k, v in entity_to_row(kind, updated).items() if k in changed_columns}
        try:
            await self.backend.update(kind, entity_id, row)
        except BackendError as e:
            logger.error("Error updating %s %s: %s", kind, entity_id, e)
            return False

        collection = self._collection(kind)
        for index, current in enumerate(collection):
            if current.id == entity_id:
                collection[index] = updated
                break
        logger.info("Updated %s %s", kind, entity_id)
        return True

    async def _soft_delete(self, kind: str, entity_id: str) -> bool:
        entity = self._find(kind, entity_id)
        try:
            await self.backend.soft_delete(kind, entity_id)
        except BackendError as e:
            logger.error("Error deleting %s %s: %s", kind, entity_id, e)
            return False

        self._collection(kind).remove(entity)
        logger.info("Deleted %s %s", kind, entity_id)
        return True

    # -------------------------------------------------------------------------
    # Family members
    # -------------------------------------------------------------------------

    async def add_family_member(self, fields: dict[str, Any]) -> FamilyMember | None:
        return await self._add("members", fields)

    async def update_family_member(self, member_id: str, changes: dict[str, Any]) -> bool:
        return await self._update("members", member_id, changes)

    async def delete_family_member(self, member_id: str) -> bool:
        """Soft-delete a member. Their transactions stay as they are."""
        return await self._soft_delete("members", member_id)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(self, fields: dict[str, Any]) -> Category | None:
        return await self._add("categories", fields)

    async def update_category(self, category_id: str, changes: dict[str, Any]) -> bool:
        return await self._update("categories", category_id, changes)

    async def delete_category(self, category_id: str) -> bool:
        return await self._soft_delete("categories", category_id)

    # -------------------------------------------------------------------------
    # Accounts and cards
    # -------------------------------------------------------------------------

    async def add_account(self, fields: dict[str, Any]) -> Account | None:
        return await self._add("accounts", fields)

    async def add_bank_account(self, fields: dict[str, Any]) -> Account | None:
        return await self._add("accounts", {**fields, "type": AccountType.CHECKING})

    async def add_credit_card(self, fields: dict[str, Any]) -> Account | None:
        return await self._add("accounts", {**fields, "type": AccountType.CREDIT_CARD})

    async def update_account(self, account_id: str, changes: dict[str, Any]) -> bool:
        async with self._account_lock:
            return await self._update("accounts", account_id, changes)

    async def delete_account(self, account_id: str) -> bool:
        return await self._soft_delete("accounts", account_id)

    @property
    def credit_cards(self) -> list[Account]:
        return [a for a in self.accounts if a.is_credit_card]

    @property
    def bank_accounts(self) -> list[Account]:
        return [a for a in self.accounts if not a.is_credit_card]

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _account_effect(self, tx: Transaction, sign: int) -> tuple[Account, dict[str, Decimal]] | None:
        """Account changes a completed transaction causes (sign=-1 undoes them).

        Bank accounts gain income and lose expenses. Credit cards accumulate
        expenses on the current bill; income on a card pays the bill down.
        """
        if not tx.is_completed or not tx.account_id:
            return None
        account = next((a for a in self.accounts if a.id == tx.account_id), None)
        if account is None:
            return None

        amount = tx.amount * sign
        if account.is_credit_card:
            delta = amount if tx.type == TransactionType.EXPENSE else -amount
            return account, {"current_bill": account.current_bill + delta}
        delta = amount if tx.type == TransactionType.INCOME else -amount
        return account, {"balance": account.balance + delta}

    async def _apply_account_effect(self, tx: Transaction, sign: int) -> None:
        # Read and write of the account must not interleave with another effect
        async with self._account_lock:
            effect = self._account_effect(tx, sign)
            if effect is None:
                return
            account, changes = effect
            if not await self._update("accounts", account.id, changes):
                logger.warning(
                    "Transaction %s recorded but account %s was not adjusted", tx.id, account.id
                )

    async def add_transaction(self, fields: dict[str, Any]) -> Transaction | None:
        """Record a transaction and adjust its account when it is completed."""
        values = dict(fields)
        values.setdefault("date", date.today())
        tx = await self._add("transactions", values)
        if tx is not None:
            await self._apply_account_effect(tx, 1)
        return tx

    async def update_transaction(self, transaction_id: str, changes: dict[str, Any]) -> bool:
        """Update transaction fields.

        When the amount, type, status or account changes, the old account
        effect is undone and the new one applied.
        """
        old = self._find("transactions", transaction_id)
        if not await self._update("transactions", transaction_id, changes):
            return False
        if RECONCILED_FIELDS & set(changes):
            new = self._find("transactions", transaction_id)
            await self._apply_account_effect(old, -1)
            await self._apply_account_effect(new, 1)
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        """Soft-delete a transaction and undo its account effect."""
        tx = self._find("transactions", transaction_id)
        if not await self._soft_delete("transactions", transaction_id):
            return False
        await self._apply_account_effect(tx, -1)
        return True

    def get_filtered_transactions(self) -> list[Transaction]:
        return filter_transactions(self.transactions, self.categories, self.filters)

    def get_transactions_by_account(self, account_id: str) -> list[Transaction]:
        return [t for t in self.transactions if t.account_id == account_id]

    # -------------------------------------------------------------------------
    # Recurring transactions
    # -------------------------------------------------------------------------

    async def add_recurring_transaction(self, fields: dict[str, Any]) -> RecurringTransaction | None:
        values = dict(fields)
        values.setdefault("start_date", date.today())
        return await self._add("recurring", values)

    async def update_recurring_transaction(self, recurring_id: str, changes: dict[str, Any]) -> bool:
        return await self._update("recurring", recurring_id, changes)

    async def delete_recurring_transaction(self, recurring_id: str) -> bool:
        return await self._soft_delete("recurring", recurring_id)

    # -------------------------------------------------------------------------
    # Bills
    # -------------------------------------------------------------------------

    async def add_bill(self, fields: dict[str, Any]) -> Bill | None:
        """Add a bill.

        Accepts either a ``schedule`` or the form flags ``is_recurring``,
        ``installments`` and ``current_installment``.
        """
        values = dict(fields)
        values.setdefault("due_date", date.today())
        return await self._add("bills", values)

    async def update_bill(self, bill_id: str, changes: dict[str, Any]) -> bool:
        return await self._update("bills", bill_id, changes)

    async def delete_bill(self, bill_id: str) -> bool:
        return await self._soft_delete("bills", bill_id)

    def get_pending_bills(self) -> list[Bill]:
        return pending_bills(self.bills)

    async def mark_bill_paid(self, bill_id: str) -> bool:
        """Pay a bill and roll it over to its successor, if it has one.

        The successor is stored before the original is retired. If either
        step fails the original stays pending, any successor already stored
        is removed again, and False is returned.

        Raises:
            NotFoundError: If no bill has this id.
        """
        bill = self._find("bills", bill_id)
        created = None
        successor = advance(bill)
        if successor is not None:
            created = await self._insert("bills", successor)
            if created is None:
                logger.error("Bill %s not paid: its next occurrence was not stored", bill_id)
                return False

        try:
            await self.backend.update("bills", bill_id, {"is_paid": True, "is_active": False})
        except BackendError as e:
            logger.error("Error paying bill %s: %s", bill_id, e)
            if created is not None and not await self._soft_delete("bills", created.id):
                logger.error("Next occurrence %s of bill %s left behind", created.id, bill_id)
            return False

        self.bills.remove(bill)
        logger.info("Paid bill %s", bill_id)
        return True

    async def schedule_recurring_bills(self, reference: date | None = None) -> list[Bill]:
        """Create pending bills for monthly expense templates that lack one."""
        reference = reference or date.today()
        added = []
        for bill in bills_from_recurring(self.recurring_transactions, self.bills, reference):
            created = await self._insert("bills", bill)
            if created is not None:
                added.append(created)
        return added

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def add_goal(self, fields: dict[str, Any]) -> Goal | None:
        return await self._add("goals", fields)

    async def update_goal(self, goal_id: str, changes: dict[str, Any]) -> bool:
        return await self._update("goals", goal_id, changes)

    async def delete_goal(self, goal_id: str) -> bool:
        return await self._soft_delete("goals", goal_id)

    def goal_progress(self, goal_id: str) -> Decimal:
        return analytics.goal_progress(self._find("goals", goal_id))

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def set_filters(self, **changes: Any) -> None:
        self.filters = self.filters.merge(**changes)

    def set_selected_member(self, member_id: str | None) -> None:
        self.filters = self.filters.merge(selected_member=member_id)

    def set_date_range(self, date_range: DateRange | tuple[date, date]) -> None:
        self.filters = self.filters.merge(date_range=date_range)

    def set_transaction_type(self, transaction_type: TransactionFilter | str) -> None:
        self.filters = self.filters.merge(transaction_type=transaction_type)

    def set_search_text(self, text: str) -> None:
        self.filters = self.filters.merge(search_text=text)

    # -------------------------------------------------------------------------
    # Derived metrics
    # -------------------------------------------------------------------------

    def calculate_total_balance(self) -> Decimal:
        return analytics.total_balance(self.accounts)

    def calculate_income_for_period(self) -> Decimal:
        return analytics.income_for_period(self.transactions, self.filters)

    def calculate_expenses_for_period(self) -> Decimal:
        return analytics.expenses_for_period(self.transactions, self.filters)

    def calculate_expenses_by_category(self) -> list[ExpenseByCategory]:
        return analytics.expenses_by_category(self.transactions, self.categories, self.filters)

    def calculate_expenses_by_member(self) -> list[ExpenseByMember]:
        return analytics.expenses_by_member(self.transactions, self.family_members, self.filters)

    def calculate_category_percentage(self, amount: Decimal) -> Decimal:
        return analytics.category_percentage(amount, self.calculate_income_for_period())

    def calculate_savings_rate(self) -> Decimal:
        return analytics.savings_rate(
            self.calculate_income_for_period(),
            self.calculate_expenses_for_period(),
        )

    def member_name(self, member_id: str | None) -> str:
        return analytics.member_name(member_id, self.family_members)

    def category_name(self, category_id: str | None) -> str:
        return analytics.category_name(category_id, self.categories)

    def account_name(self, account_id: str | None) -> str:
        for account in self.accounts:
            if account.id == account_id:
                return account.name
        return UNKNOWN_LABEL
