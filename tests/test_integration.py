"""Integration tests against a real REST data API.

These tests require MYCASH_REST_URL (and usually MYCASH_API_KEY) to be set.
Run with: MYCASH_REST_URL=https://... MYCASH_API_KEY=xxx pytest tests/test_integration.py -v
"""

import os

import pytest

from mycash_mcp.backend import RestBackend
from mycash_mcp.store import FinanceStore


# Skip all tests in this module if MYCASH_REST_URL is not set
pytestmark = pytest.mark.skipif(
    os.environ.get("MYCASH_REST_URL") is None,
    reason="MYCASH_REST_URL environment variable not set",
)


@pytest.fixture
def rest_backend() -> RestBackend:
    """Create REST backend from the environment."""
    return RestBackend(
        os.environ["MYCASH_REST_URL"],
        os.environ.get("MYCASH_API_KEY", ""),
        user_id=os.environ.get("MYCASH_USER_ID"),
    )


class TestIntegrationLoad:
    """Integration tests for loading with a real API."""

    @pytest.mark.asyncio
    async def test_list_members(self, rest_backend: RestBackend):
        rows = await rest_backend.list("members")

        assert isinstance(rows, list)
        for row in rows:
            assert "id" in row

    @pytest.mark.asyncio
    async def test_store_load(self, rest_backend: RestBackend):
        store = FinanceStore(rest_backend)

        assert await store.load() is True
        assert store.error is None
        # Totals are computable for whatever the account holds
        assert store.calculate_savings_rate() is not None


class TestIntegrationWrite:
    """Round trip through insert and soft delete."""

    @pytest.mark.asyncio
    async def test_add_and_delete_goal(self, rest_backend: RestBackend):
        store = FinanceStore(rest_backend)
        await store.load()

        goal = await store.add_goal({"title": "integration test goal", "target_amount": 1})
        assert goal is not None

        assert await store.delete_goal(goal.id) is True
        await store.load()
        assert goal.id not in {g.id for g in store.goals}
