"""SQLite database schema and CRUD operations for mycash entities."""

import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


SCHEMA = """
CREATE TABLE IF NOT EXISTS family_members (
    id              TEXT PRIMARY KEY,  -- UUID
    user_id         TEXT,
    name            TEXT,
    role            TEXT,     -- free text: 'Pai', 'Mãe', 'Filho'
    avatar_url      TEXT,
    monthly_income  TEXT,     -- decimal as text
    color           TEXT,
    is_active       INTEGER DEFAULT 1,
    created_at      TEXT,
    updated_at      TEXT
);

CREATE TABLE IF NOT EXISTS categories (
    id          TEXT PRIMARY KEY,
    user_id     TEXT,
    name        TEXT,
    icon        TEXT,
    type        TEXT,     -- 'INCOME' | 'EXPENSE'
    color       TEXT,
    is_active   INTEGER DEFAULT 1,
    created_at  TEXT,
    updated_at  TEXT
);

CREATE TABLE IF NOT EXISTS accounts (
    id            TEXT PRIMARY KEY,
    user_id       TEXT,
    type          TEXT,     -- 'CHECKING','SAVINGS','INVESTMENT','CREDIT_CARD'
    name          TEXT,
    bank          TEXT,
    last_digits   TEXT,
    holder_id     TEXT,     -- family_members.id
    balance       TEXT,
    credit_limit  TEXT,
    current_bill  TEXT,
    due_day       INTEGER,  -- 1-31
    closing_day   INTEGER,  -- 1-31
    theme         TEXT,
    color         TEXT,
    is_active     INTEGER DEFAULT 1,
    created_at    TEXT,
    updated_at    TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT,
    type                TEXT,     -- 'INCOME' | 'EXPENSE'
    amount              TEXT,
    description         TEXT,
    date                TEXT,     -- 'YYYY-MM-DD'
    category_id         TEXT,
    account_id          TEXT,
    member_id           TEXT,     -- NULL = whole family
    installment_number  INTEGER,
    total_installments  INTEGER DEFAULT 1,
    is_recurring        INTEGER DEFAULT 0,
    status              TEXT,     -- 'PENDING' | 'COMPLETED'
    notes               TEXT,
    is_active           INTEGER DEFAULT 1,
    created_at          TEXT,
    updated_at          TEXT
);

CREATE TABLE IF NOT EXISTS recurring_transactions (
    id            TEXT PRIMARY KEY,
    user_id       TEXT,
    type          TEXT,
    amount        TEXT,
    description   TEXT,
    category_id   TEXT,
    account_id    TEXT,
    member_id     TEXT,
    frequency     TEXT,     -- 'DAILY','WEEKLY','MONTHLY','YEARLY'
    day_of_month  INTEGER,
    day_of_week   INTEGER,
    start_date    TEXT,
    end_date      TEXT,
    notes         TEXT,
    is_active     INTEGER DEFAULT 1,
    created_at    TEXT,
    updated_at    TEXT
);

CREATE TABLE IF NOT EXISTS bills (
    id                   TEXT PRIMARY KEY,
    user_id              TEXT,
    description          TEXT,
    value                TEXT,
    due_date             TEXT,
    due_day              INTEGER,  -- anchor day for monthly rollover
    account_id           TEXT,
    is_recurring         INTEGER DEFAULT 0,
    installments         INTEGER,
    current_installment  INTEGER,
    is_paid              INTEGER DEFAULT 0,
    is_active            INTEGER DEFAULT 1,
    created_at           TEXT,
    updated_at           TEXT
);

CREATE TABLE IF NOT EXISTS goals (
    id              TEXT PRIMARY KEY,
    user_id         TEXT,
    title           TEXT,
    description     TEXT,
    target_amount   TEXT,
    current_amount  TEXT,
    deadline        TEXT,
    category        TEXT,
    member_id       TEXT,
    is_completed    INTEGER DEFAULT 0,
    is_active       INTEGER DEFAULT 1,
    created_at      TEXT,
    updated_at      TEXT
);

CREATE TABLE IF NOT EXISTS app_meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""

INDEXES = """
CREATE INDEX IF NOT EXISTS idx_members_active ON family_members(is_active);
CREATE INDEX IF NOT EXISTS idx_accounts_type ON accounts(type);
CREATE INDEX IF NOT EXISTS idx_tx_date ON transactions(date);
CREATE INDEX IF NOT EXISTS idx_tx_account ON transactions(account_id);
CREATE INDEX IF NOT EXISTS idx_tx_member ON transactions(member_id);
CREATE INDEX IF NOT EXISTS idx_bills_due_date ON bills(due_date);
"""

SCHEMA_VERSION = "1"

TABLES = (
    "family_members",
    "categories",
    "accounts",
    "transactions",
    "recurring_transactions",
    "bills",
    "goals",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """SQLite database wrapper for mycash data."""

    def __init__(self, db_path: str | Path | None = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite file, or None/":memory:" for in-memory DB.
        """
        if db_path is None:
            db_path = ":memory:"
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._columns: dict[str, set[str]] = {}

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def init_schema(self) -> None:
        """Create all tables and indexes."""
        conn = self.connect()
        conn.executescript(SCHEMA)
        conn.executescript(INDEXES)
        conn.commit()
        self.set_meta("schema_version", SCHEMA_VERSION)

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        """Get metadata value by key."""
        conn = self.connect()
        row = conn.execute(
            "SELECT value FROM app_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Set metadata value."""
        conn = self.connect()
        conn.execute(
            "INSERT OR REPLACE INTO app_meta (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    # -------------------------------------------------------------------------
    # Generic row operations
    # -------------------------------------------------------------------------

    def _table_columns(self, table: str) -> set[str]:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        if table not in self._columns:
            conn = self.connect()
            rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
            self._columns[table] = {row["name"] for row in rows}
        return self._columns[table]

    def _clean(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        """Drop keys that are not columns of ``table``."""
        columns = self._table_columns(table)
        return {k: v for k, v in values.items() if k in columns}

    def fetch_active(self, table: str) -> list[dict[str, Any]]:
        """Return all rows with is_active = 1, oldest first."""
        self._table_columns(table)
        conn = self.connect()
        rows = conn.execute(
            f"SELECT * FROM {table} WHERE is_active = 1 ORDER BY created_at, rowid"  # noqa: S608
        ).fetchall()
        return [dict(row) for row in rows]

    def fetch_by_id(self, table: str, row_id: str) -> dict[str, Any] | None:
        """Return one row by id regardless of its active flag."""
        self._table_columns(table)
        conn = self.connect()
        row = conn.execute(
            f"SELECT * FROM {table} WHERE id = ?", (row_id,)  # noqa: S608
        ).fetchone()
        return dict(row) if row else None

    def insert_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored.

        A uuid4 id and created/updated timestamps are filled in when absent.
        """
        row = self._clean(table, values)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("is_active", 1)
        now = _now()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        columns = ", ".join(row)
        placeholders = ", ".join("?" * len(row))
        conn = self.connect()
        conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",  # noqa: S608
            list(row.values()),
        )
        conn.commit()
        return self.fetch_by_id(table, row["id"])

    def update_row(self, table: str, row_id: str, values: dict[str, Any]) -> int:
        """Update columns of one row. Returns the number of rows changed."""
        row = self._clean(table, values)
        row.pop("id", None)
        if not row:
            return 0
        row["updated_at"] = _now()

        assignments = ", ".join(f"{column} = ?" for column in row)
        conn = self.connect()
        cursor = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",  # noqa: S608
            [*row.values(), row_id],
        )
        conn.commit()
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------------

    def count_table(self, table: str, active_only: bool = False) -> int:
        """Count rows in a table."""
        self._table_columns(table)
        conn = self.connect()
        query = f"SELECT COUNT(*) as cnt FROM {table}"  # noqa: S608
        if active_only:
            query += " WHERE is_active = 1"
        row = conn.execute(query).fetchone()
        return row["cnt"]
