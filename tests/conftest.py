"""Test fixtures for mycash MCP server tests."""

import asyncio
from datetime import date

import pytest

from mycash_mcp.backend import SqliteBackend
from mycash_mcp.database import Database
from mycash_mcp.filters import FiltersState, month_range
from mycash_mcp.store import FinanceStore


# All fixture data lives in January 2024; the store's "today" is inside it.
TODAY = date(2024, 1, 15)


@pytest.fixture
def db() -> Database:
    """Create in-memory database with schema."""
    database = Database(":memory:")
    database.init_schema()
    return database


@pytest.fixture
def populated_db(db: Database) -> Database:
    """Create in-memory database populated with one family's January 2024.

    Totals for January: income 1000, completed expenses 300 (Food 200,
    Transport 100), one pending expense and one December expense outside
    the range. Balance: 5000 + 2000 in the bank, 800 on the card.
    """
    members = [
        {"id": "m-dad", "name": "João", "role": "Pai", "monthly_income": "6000",
         "avatar_url": "https://example.com/joao.png"},
        {"id": "m-mom", "name": "Maria", "role": "Mãe", "monthly_income": "7000"},
    ]
    for row in members:
        db.insert_row("family_members", row)

    categories = [
        {"id": "c-salary", "name": "Salário", "type": "INCOME", "icon": "💰"},
        {"id": "c-food", "name": "Food", "type": "EXPENSE", "icon": "🍔", "color": "#FF0000"},
        {"id": "c-transport", "name": "Transport", "type": "EXPENSE", "icon": "🚗"},
    ]
    for row in categories:
        db.insert_row("categories", row)

    accounts = [
        {"id": "a-check", "name": "Conta Corrente", "type": "CHECKING", "bank": "Itaú",
         "holder_id": "m-dad", "balance": "5000"},
        {"id": "a-save", "name": "Poupança", "type": "SAVINGS", "bank": "Itaú",
         "holder_id": "m-mom", "balance": "2000"},
        {"id": "a-card", "name": "Nubank", "type": "CREDIT_CARD", "bank": "Nubank",
         "holder_id": "m-dad", "credit_limit": "5000", "current_bill": "800",
         "closing_day": 3, "due_day": 10, "last_digits": "1234"},
    ]
    for row in accounts:
        db.insert_row("accounts", row)

    transactions = [
        {"id": "t1", "type": "INCOME", "amount": "1000", "description": "Salary",
         "date": "2024-01-05", "category_id": "c-salary", "account_id": "a-check",
         "member_id": "m-dad", "status": "COMPLETED"},
        {"id": "t2", "type": "EXPENSE", "amount": "200", "description": "Supermarket",
         "date": "2024-01-10", "category_id": "c-food", "account_id": "a-check",
         "member_id": "m-mom", "status": "COMPLETED"},
        {"id": "t3", "type": "EXPENSE", "amount": "100", "description": "Uber",
         "date": "2024-01-12", "category_id": "c-transport", "account_id": "a-card",
         "member_id": "m-dad", "status": "COMPLETED"},
        {"id": "t4", "type": "EXPENSE", "amount": "50", "description": "Bakery",
         "date": "2024-01-20", "category_id": "c-food", "account_id": "a-check",
         "member_id": None, "status": "PENDING"},
        {"id": "t5", "type": "EXPENSE", "amount": "400", "description": "Christmas dinner",
         "date": "2023-12-28", "category_id": "c-food", "account_id": "a-check",
         "member_id": "m-mom", "status": "COMPLETED"},
    ]
    for row in transactions:
        db.insert_row("transactions", row)

    db.insert_row("recurring_transactions", {
        "id": "r-gym", "type": "EXPENSE", "amount": "90", "description": "Gym",
        "frequency": "MONTHLY", "day_of_month": 10, "start_date": "2023-06-01",
        "account_id": "a-card",
    })

    bills = [
        {"id": "b-rent", "description": "Rent", "value": "1500", "due_date": "2024-01-31",
         "due_day": 31, "account_id": "a-check", "is_recurring": 1},
        {"id": "b-tv", "description": "TV", "value": "300", "due_date": "2024-01-20",
         "due_day": 20, "account_id": "a-card", "installments": 3, "current_installment": 2},
        {"id": "b-doctor", "description": "Doctor", "value": "250", "due_date": "2024-01-25",
         "due_day": 25},
        {"id": "b-old", "description": "Old bill", "value": "10", "due_date": "2024-01-01",
         "due_day": 1, "is_paid": 1},
    ]
    for row in bills:
        db.insert_row("bills", row)

    db.insert_row("goals", {
        "id": "g-trip", "title": "Trip to Bahia", "target_amount": "10000",
        "current_amount": "2500", "deadline": "2024-12-01", "member_id": "m-mom",
    })
    return db


@pytest.fixture
def backend(populated_db: Database) -> SqliteBackend:
    """SQLite backend over the populated database."""
    return SqliteBackend(populated_db, user_id="user-1")


@pytest.fixture
def store(backend: SqliteBackend) -> FinanceStore:
    """Store loaded from the populated database, filtered to January 2024."""
    finance_store = FinanceStore(backend, today=TODAY)
    loop = asyncio.new_event_loop()
    try:
        assert loop.run_until_complete(finance_store.load())
    finally:
        loop.close()
    return finance_store


@pytest.fixture
def january() -> FiltersState:
    """Default filters for January 2024."""
    return FiltersState(date_range=month_range(2024, 1))
