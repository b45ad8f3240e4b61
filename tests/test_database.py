"""Tests for database schema and CRUD operations."""

import pytest

from mycash_mcp.database import SCHEMA_VERSION, TABLES, Database


class TestDatabaseSchema:
    """Test database schema creation."""

    def test_init_schema_creates_tables(self, db: Database):
        """Test that init_schema creates all required tables."""
        conn = db.connect()

        tables = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        ).fetchall()
        table_names = {row["name"] for row in tables}

        assert set(TABLES) | {"app_meta"} <= table_names

    def test_init_schema_creates_indexes(self, db: Database):
        """Test that init_schema creates all required indexes."""
        conn = db.connect()

        indexes = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%'"
        ).fetchall()
        index_names = {row["name"] for row in indexes}

        assert {
            "idx_members_active",
            "idx_accounts_type",
            "idx_tx_date",
            "idx_tx_account",
            "idx_tx_member",
            "idx_bills_due_date",
        } <= index_names

    def test_init_schema_is_idempotent(self, db: Database):
        """Running init_schema twice keeps existing rows."""
        db.insert_row("family_members", {"name": "Ana"})
        db.init_schema()
        assert db.count_table("family_members") == 1


class TestMeta:
    """Test the key/value metadata table."""

    def test_schema_version_recorded(self, db: Database):
        assert db.get_meta("schema_version") == SCHEMA_VERSION

    def test_get_missing_key(self, db: Database):
        assert db.get_meta("last_load") is None

    def test_set_and_overwrite(self, db: Database):
        db.set_meta("last_load", "2024-01-01")
        db.set_meta("last_load", "2024-01-02")
        assert db.get_meta("last_load") == "2024-01-02"


class TestRowOperations:
    """Test generic insert/update/fetch helpers."""

    def test_insert_fills_id_and_timestamps(self, db: Database):
        row = db.insert_row("family_members", {"name": "Ana", "role": "Filha"})

        assert row["id"]
        assert row["name"] == "Ana"
        assert row["is_active"] == 1
        assert row["created_at"]
        assert row["updated_at"] == row["created_at"]

    def test_insert_keeps_given_id(self, db: Database):
        row = db.insert_row("categories", {"id": "c-1", "name": "Food", "type": "EXPENSE"})
        assert row["id"] == "c-1"

    def test_insert_drops_unknown_columns(self, db: Database):
        row = db.insert_row("goals", {"title": "Car", "not_a_column": "x"})
        assert "not_a_column" not in row
        assert row["title"] == "Car"

    def test_unknown_table(self, db: Database):
        with pytest.raises(ValueError, match="Unknown table"):
            db.insert_row("users", {"name": "x"})

    def test_fetch_active_skips_inactive(self, db: Database):
        db.insert_row("family_members", {"id": "m-1", "name": "Ana"})
        db.insert_row("family_members", {"id": "m-2", "name": "Bia", "is_active": 0})

        rows = db.fetch_active("family_members")
        assert [r["id"] for r in rows] == ["m-1"]

    def test_fetch_active_keeps_insert_order(self, db: Database):
        for name in ("Ana", "Bia", "Caio"):
            db.insert_row("family_members", {"name": name})

        rows = db.fetch_active("family_members")
        assert [r["name"] for r in rows] == ["Ana", "Bia", "Caio"]

    def test_update_row(self, db: Database):
        db.insert_row("accounts", {"id": "a-1", "name": "Conta", "balance": "100"})

        changed = db.update_row("accounts", "a-1", {"balance": "150", "id": "other"})

        assert changed == 1
        row = db.fetch_by_id("accounts", "a-1")
        assert row["balance"] == "150"

    def test_update_missing_row(self, db: Database):
        assert db.update_row("accounts", "nope", {"balance": "1"}) == 0

    def test_update_without_known_columns(self, db: Database):
        db.insert_row("accounts", {"id": "a-1", "name": "Conta"})
        assert db.update_row("accounts", "a-1", {"bogus": 1}) == 0

    def test_soft_delete_keeps_row(self, db: Database):
        db.insert_row("bills", {"id": "b-1", "description": "Rent"})
        db.update_row("bills", "b-1", {"is_active": 0})

        assert db.fetch_active("bills") == []
        assert db.fetch_by_id("bills", "b-1")["is_active"] == 0

    def test_count_table(self, populated_db: Database):
        assert populated_db.count_table("transactions") == 5
        populated_db.update_row("transactions", "t5", {"is_active": 0})
        assert populated_db.count_table("transactions") == 5
        assert populated_db.count_table("transactions", active_only=True) == 4
