"""MCP Server for mycash family finance data."""

import dataclasses
import json
import logging
import sys
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from .analytics import goal_progress
from .backend import RestBackend, SqliteBackend
from .config import Settings, load_settings
from .database import Database
from .ledger import LedgerView
from .models import Bill, Installment, Recurring, Transaction
from .store import FinanceStore, NotFoundError
from .utils import money, parse_date


logger = logging.getLogger(__name__)

# Initialize MCP server
server = Server("mycash-mcp")

# Global state
_store: FinanceStore | None = None
_ledger: LedgerView | None = None
_loaded = False


def create_store(settings: Settings) -> FinanceStore:
    """Build a store over the backend named in ``settings``."""
    if settings.backend == "rest":
        backend = RestBackend(settings.rest_url, settings.api_key or "", user_id=settings.user_id)
    else:
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        db = Database(settings.db_path)
        db.init_schema()
        backend = SqliteBackend(db, user_id=settings.user_id)
    return FinanceStore(backend)


def get_store() -> FinanceStore:
    """Get or create the store instance."""
    global _store, _ledger
    if _store is None:
        settings = load_settings()
        _store = create_store(settings)
        _ledger = LedgerView(settings.page_size)
    return _store


def get_ledger() -> LedgerView:
    global _ledger
    if _ledger is None:
        _ledger = LedgerView()
    return _ledger


def init_for_testing(store: FinanceStore, page_size: int = 5) -> None:
    """Initialize server with a test store.

    Args:
        store: Store to serve; it counts as loaded.
        page_size: Ledger page size.
    """
    global _store, _ledger, _loaded
    _store = store
    _ledger = LedgerView(page_size)
    _loaded = True


async def ensure_loaded() -> FinanceStore:
    """Return the store, loading it from the backend on first use."""
    global _loaded
    store = get_store()
    if not _loaded:
        _loaded = await store.load()
        if not _loaded:
            logger.warning("Serving without data, load failed: %s", store.error)
    return store


# ============================================================================
# JSON rendering
# ============================================================================

def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return money(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump(result: Any) -> list[TextContent]:
    text = json.dumps(result, ensure_ascii=False, indent=2, default=_json_default)
    return [TextContent(type="text", text=text)]


def bill_to_dict(bill: Bill, store: FinanceStore) -> dict[str, Any]:
    schedule = bill.schedule
    if isinstance(schedule, Recurring):
        kind, installment = "recurring", None
    elif isinstance(schedule, Installment):
        kind, installment = "installment", f"{schedule.current}/{schedule.total}"
    else:
        kind, installment = "one_off", None
    return {
        "id": bill.id,
        "description": bill.description,
        "value": bill.value,
        "due_date": bill.due_date,
        "account": store.account_name(bill.account_id) if bill.account_id else None,
        "schedule": kind,
        "installment": installment,
    }


def transaction_to_dict(tx: Transaction, store: FinanceStore) -> dict[str, Any]:
    return {
        "id": tx.id,
        "date": tx.date,
        "type": tx.type,
        "amount": tx.amount,
        "description": tx.description,
        "category": store.category_name(tx.category_id),
        "account": store.account_name(tx.account_id) if tx.account_id else None,
        "member": store.member_name(tx.member_id),
        "installment": (
            f"{tx.installment_number or 1}/{tx.total_installments}"
            if tx.total_installments > 1 else None
        ),
        "status": tx.status,
    }


def filters_to_dict(store: FinanceStore) -> dict[str, Any]:
    filters = store.filters
    return {
        "start_date": filters.date_range.start,
        "end_date": filters.date_range.end,
        "selected_member": filters.selected_member,
        "member_name": store.member_name(filters.selected_member),
        "transaction_type": filters.transaction_type,
        "search_text": filters.search_text,
    }


def get_dashboard(store: FinanceStore) -> dict[str, Any]:
    """Headline numbers for the current filters."""
    return {
        "filters": filters_to_dict(store),
        "total_balance": store.calculate_total_balance(),
        "income": store.calculate_income_for_period(),
        "expenses": store.calculate_expenses_for_period(),
        "savings_rate": store.calculate_savings_rate(),
        "expenses_by_category": [
            dataclasses.asdict(item) for item in store.calculate_expenses_by_category()
        ],
        "expenses_by_member": [
            dataclasses.asdict(item) for item in store.calculate_expenses_by_member()
        ],
    }


def get_ledger_page(
    store: FinanceStore,
    tx_type: str | None = None,
    search: str | None = None,
    page: int | None = None,
) -> dict[str, Any]:
    """Statement page for the current filters and the given local filters."""
    ledger = get_ledger()
    if tx_type is not None:
        ledger.set_type_filter(tx_type)
    if search is not None:
        ledger.set_search(search)
    if page is not None:
        ledger.go_to(page)
    result = ledger.render(store.transactions, store.categories, store.filters)
    return {
        "page": result.page,
        "total_pages": result.total_pages,
        "total_items": result.total_items,
        "showing": [result.start_index + 1 if result.total_items else 0, result.end_index],
        "pages": result.page_numbers,
        "transactions": [transaction_to_dict(tx, store) for tx in result.items],
    }


# ============================================================================
# Tools
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="load_data",
            description="Reload all members, categories, accounts, transactions, bills and goals from storage.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="get_dashboard",
            description="Get total balance, income, expenses, savings rate and expense breakdowns for the current filters.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="set_filters",
            description="Change the session filters. Only the fields given are changed.",
            inputSchema={
                "type": "object",
                "properties": {
                    "member_id": {
                        "type": ["string", "null"],
                        "description": "Family member id, or null for the whole family",
                    },
                    "start_date": {"type": "string", "description": "Range start, YYYY-MM-DD"},
                    "end_date": {"type": "string", "description": "Range end, YYYY-MM-DD"},
                    "transaction_type": {
                        "type": "string",
                        "enum": ["all", "income", "expense"],
                    },
                    "search_text": {"type": "string"},
                },
            },
        ),
        Tool(
            name="get_ledger",
            description="Get one page of the transaction statement, newest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["all", "income", "expense"]},
                    "search": {
                        "type": "string",
                        "description": "Search in description or category name",
                    },
                    "page": {"type": "integer", "description": "Page number, from 1"},
                },
            },
        ),
        Tool(
            name="get_pending_bills",
            description="List unpaid bills, soonest due first.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="add_bill",
            description="Add a bill: one-off, recurring monthly, or in installments.",
            inputSchema={
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "value": {"type": "number"},
                    "due_date": {"type": "string", "description": "YYYY-MM-DD"},
                    "account_id": {"type": "string"},
                    "is_recurring": {"type": "boolean", "default": False},
                    "installments": {"type": "integer", "description": "Total installments"},
                    "current_installment": {"type": "integer", "default": 1},
                },
                "required": ["description", "value", "due_date"],
            },
        ),
        Tool(
            name="mark_bill_paid",
            description="Mark a bill as paid. Recurring and installment bills roll over to next month.",
            inputSchema={
                "type": "object",
                "properties": {"bill_id": {"type": "string"}},
                "required": ["bill_id"],
            },
        ),
        Tool(
            name="add_transaction",
            description="Record an income or expense. Completed entries adjust their account.",
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["income", "expense"]},
                    "amount": {"type": "number"},
                    "description": {"type": "string"},
                    "date": {"type": "string", "description": "YYYY-MM-DD, default today"},
                    "category_id": {"type": "string"},
                    "account_id": {"type": "string"},
                    "member_id": {"type": "string"},
                    "total_installments": {"type": "integer", "default": 1},
                    "is_recurring": {"type": "boolean", "default": False},
                    "status": {"type": "string", "enum": ["pending", "completed"]},
                },
                "required": ["type", "amount", "description"],
            },
        ),
        Tool(
            name="add_family_member",
            description="Add a family member.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "role": {"type": "string"},
                    "monthly_income": {"type": "number"},
                    "avatar_url": {"type": "string"},
                    "color": {"type": "string"},
                },
                "required": ["name"],
            },
        ),
        Tool(
            name="delete_family_member",
            description="Deactivate a family member. Their transactions are kept.",
            inputSchema={
                "type": "object",
                "properties": {"member_id": {"type": "string"}},
                "required": ["member_id"],
            },
        ),
        Tool(
            name="get_goals",
            description="List goals with their progress.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    global _loaded

    if name == "load_data":
        store = get_store()
        _loaded = await store.load()
        result = {
            "status": "loaded" if _loaded else "error",
            "error": store.error,
            "counts": {
                "members": len(store.family_members),
                "categories": len(store.categories),
                "accounts": len(store.accounts),
                "transactions": len(store.transactions),
                "bills": len(store.bills),
                "goals": len(store.goals),
            },
        }
        return _dump(result)

    store = await ensure_loaded()

    if name == "get_dashboard":
        return _dump(get_dashboard(store))

    elif name == "set_filters":
        changes: dict[str, Any] = {}
        if "member_id" in arguments:
            changes["selected_member"] = arguments["member_id"]
        if "start_date" in arguments or "end_date" in arguments:
            start = parse_date(arguments.get("start_date")) or store.filters.date_range.start
            end = parse_date(arguments.get("end_date")) or store.filters.date_range.end
            changes["date_range"] = (start, end)
        if "transaction_type" in arguments:
            changes["transaction_type"] = arguments["transaction_type"]
        if "search_text" in arguments:
            changes["search_text"] = arguments["search_text"]
        store.set_filters(**changes)
        return _dump(filters_to_dict(store))

    elif name == "get_ledger":
        result = get_ledger_page(
            store,
            tx_type=arguments.get("type"),
            search=arguments.get("search"),
            page=arguments.get("page"),
        )
        return _dump(result)

    elif name == "get_pending_bills":
        pending = store.get_pending_bills()
        return _dump({
            "bills": [bill_to_dict(b, store) for b in pending],
            "total": sum((b.value for b in pending), Decimal("0")),
        })

    elif name == "add_bill":
        bill = await store.add_bill({
            "description": arguments.get("description", ""),
            "value": arguments.get("value", 0),
            "due_date": parse_date(arguments.get("due_date")) or date.today(),
            "account_id": arguments.get("account_id"),
            "is_recurring": arguments.get("is_recurring", False),
            "installments": arguments.get("installments"),
            "current_installment": arguments.get("current_installment", 1),
        })
        if bill is None:
            return _dump({"status": "error", "error": "bill was not stored"})
        return _dump({"status": "added", "bill": bill_to_dict(bill, store)})

    elif name == "mark_bill_paid":
        bill_id = arguments.get("bill_id")
        try:
            ok = await store.mark_bill_paid(bill_id)
        except NotFoundError:
            return _dump({"status": "not_found", "bill_id": bill_id})
        return _dump({
            "status": "paid" if ok else "error",
            "pending_bills": [bill_to_dict(b, store) for b in store.get_pending_bills()],
        })

    elif name == "add_transaction":
        fields = {
            key: arguments[key]
            for key in (
                "type", "amount", "description", "category_id", "account_id",
                "member_id", "total_installments", "is_recurring", "status",
            )
            if key in arguments
        }
        fields["date"] = parse_date(arguments.get("date")) or date.today()
        tx = await store.add_transaction(fields)
        if tx is None:
            return _dump({"status": "error", "error": "transaction was not stored"})
        return _dump({"status": "added", "transaction": transaction_to_dict(tx, store)})

    elif name == "add_family_member":
        member = await store.add_family_member({
            key: arguments[key]
            for key in ("name", "role", "monthly_income", "avatar_url", "color")
            if key in arguments
        })
        if member is None:
            return _dump({"status": "error", "error": "member was not stored"})
        return _dump({"status": "added", "member": dataclasses.asdict(member)})

    elif name == "delete_family_member":
        member_id = arguments.get("member_id")
        try:
            ok = await store.delete_family_member(member_id)
        except NotFoundError:
            return _dump({"status": "not_found", "member_id": member_id})
        return _dump({"status": "deleted" if ok else "error", "member_id": member_id})

    elif name == "get_goals":
        goals = [
            {
                **dataclasses.asdict(goal),
                "member": store.member_name(goal.member_id),
                "progress": goal_progress(goal),
            }
            for goal in store.goals
        ]
        return _dump({"goals": goals})

    else:
        raise ValueError(f"Unknown tool: {name}")


# ============================================================================
# Resources
# ============================================================================

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="mycash://members",
            name="Family members",
            description="Active family members",
            mimeType="application/json",
        ),
        Resource(
            uri="mycash://categories",
            name="Categories",
            description="Income and expense categories",
            mimeType="application/json",
        ),
        Resource(
            uri="mycash://accounts",
            name="Accounts",
            description="Bank accounts and credit cards",
            mimeType="application/json",
        ),
        Resource(
            uri="mycash://filters",
            name="Filters",
            description="Current session filters",
            mimeType="application/json",
        ),
    ]


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read resource content."""
    store = await ensure_loaded()
    uri = str(uri)

    if uri == "mycash://members":
        result = {"members": [dataclasses.asdict(m) for m in store.family_members]}
    elif uri == "mycash://categories":
        result = {"categories": [dataclasses.asdict(c) for c in store.categories]}
    elif uri == "mycash://accounts":
        result = {
            "bank_accounts": [dataclasses.asdict(a) for a in store.bank_accounts],
            "credit_cards": [dataclasses.asdict(a) for a in store.credit_cards],
            "total_balance": store.calculate_total_balance(),
        }
    elif uri == "mycash://filters":
        result = filters_to_dict(store)
    else:
        raise ValueError(f"Unknown resource: {uri}")

    return json.dumps(result, ensure_ascii=False, indent=2, default=_json_default)


# ============================================================================
# Main
# ============================================================================

def main() -> None:
    """Run the MCP server."""
    import asyncio

    from mcp.server.stdio import stdio_server

    settings = load_settings()
    logging.basicConfig(stream=sys.stderr, level=settings.log_level)

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
