"""
Tests for transaction normalization and multi-week merging.
"""

import pytest

from sleeper_gateway.errors import ErrorCode, GatewayError
from sleeper_gateway.transactions import (
    default_week_window, fetch_transactions_by_weeks, get_current_week, map_status,
    map_type, normalize_transaction,
)

TRADE = {
    "transaction_id": "a1",
    "type": "trade",
    "status": "complete",
    "status_updated": 100,
    "leg": 8,
    "roster_ids": [1, 2],
    "adds": None,
    "drops": None,
    "draft_picks": [],
}

WAIVER = {
    "transaction_id": "b1",
    "type": "waiver",
    "status": "complete",
    "status_updated": 200,
    "leg": 9,
    "roster_ids": [3],
    "adds": {"123": 3},
    "drops": {"456": 3},
    "settings": {"waiver_bid": 17},
}


class TestMapping:

    @pytest.mark.parametrize("raw,expected", [
        ({"type": "trade"}, "trade"),
        ({"type": "waiver"}, "waiver"),
        ({"type": "free_agent", "adds": {"1": 1}}, "add"),
        ({"type": "free_agent", "adds": {"1": 1}, "drops": {"2": 1}}, "add"),
        ({"type": "free_agent", "drops": {"2": 1}}, "drop"),
        ({"type": "commissioner"}, None),
        ({}, None),
    ])
    def test_map_type(self, raw, expected):
        assert map_type(raw) == expected

    def test_map_status(self):
        assert map_status("complete") == "complete"
        assert map_status("failed") == "failed"
        assert map_status("pending") == "pending"
        assert map_status("weird") == "unknown"
        assert map_status(None) == "unknown"

    def test_unknown_type_is_dropped(self):
        assert normalize_transaction({"transaction_id": "x", "type": "commissioner"}) is None

    def test_missing_id_falls_back_to_type_and_timestamp(self):
        tx = normalize_transaction({"type": "trade", "created": 555})
        assert tx["transaction_id"] == "trade-555"
        assert tx["timestamp"] == 555

    def test_missing_id_and_timestamp(self):
        assert normalize_transaction({"type": "waiver"})["transaction_id"] == "waiver-0"

    def test_resolver_failure_degrades_to_bare_ids(self):
        def broken(player_id):
            raise RuntimeError("catalog gone")

        tx = normalize_transaction(WAIVER, broken)
        assert tx["players_added"] == [{"id": "123", "name": None, "position": None, "team": None}]


class TestWeekWindow:

    def test_two_weeks(self):
        assert default_week_window(9) == [9, 8]

    def test_week_one_is_not_duplicated(self):
        assert default_week_window(1) == [1]

    def test_clamps_below_one(self):
        assert default_week_window(0) == [1]

    @pytest.mark.asyncio
    async def test_current_week_from_state(self, sleeper):
        sleeper.add("/state/nfl", {"week": 9})
        assert await get_current_week("football") == 9

    @pytest.mark.asyncio
    async def test_current_week_preseason_clamps(self, sleeper):
        sleeper.add("/state/nba", {"week": 0})
        assert await get_current_week("basketball") == 1

    @pytest.mark.asyncio
    async def test_current_week_missing_field(self, sleeper):
        sleeper.add("/state/nfl", {})
        assert await get_current_week("football") == 1


class TestFetchByWeeks:

    @pytest.mark.asyncio
    async def test_merges_and_sorts_newest_first(self, sleeper):
        sleeper.add("/league/league/transactions/8", [TRADE])
        sleeper.add("/league/league/transactions/9", [WAIVER])

        rows = await fetch_transactions_by_weeks("league", [8, 9])

        assert [r["transaction_id"] for r in rows] == ["b1", "a1"]
        assert rows[0]["type"] == "waiver"
        assert rows[0]["faab_bid"] == 17
        assert rows[0]["team_ids"] == ["3"]
        assert rows[0]["players_added"] == [{"id": "123", "name": None, "position": None, "team": None}]
        assert rows[1]["draft_picks"] == []

    @pytest.mark.asyncio
    async def test_enriches_with_resolver(self, sleeper):
        sleeper.add("/league/league/transactions/9", [WAIVER])

        def resolve(player_id):
            if player_id == "123":
                return {"name": "Josh Allen", "position": "QB", "team": "BUF"}
            return None

        rows = await fetch_transactions_by_weeks("league", [9], resolve)

        assert rows[0]["players_added"] == [{"id": "123", "name": "Josh Allen", "position": "QB", "team": "BUF"}]
        assert rows[0]["players_dropped"] == [{"id": "456", "name": None, "position": None, "team": None}]

    @pytest.mark.asyncio
    async def test_duplicate_across_weeks_keeps_earlier_week(self, sleeper):
        sleeper.add("/league/L/transactions/9", [dict(WAIVER, leg=9)])
        sleeper.add("/league/L/transactions/8", [dict(WAIVER, leg=8, status="failed")])

        rows = await fetch_transactions_by_weeks("L", [9, 8])

        assert len(rows) == 1
        assert rows[0]["week"] == 9
        assert rows[0]["status"] == "complete"

    @pytest.mark.asyncio
    async def test_non_list_week_is_skipped(self, sleeper):
        sleeper.add("/league/L/transactions/2", None)
        sleeper.add("/league/L/transactions/1", [TRADE])

        rows = await fetch_transactions_by_weeks("L", [2, 1])

        assert [r["transaction_id"] for r in rows] == ["a1"]

    @pytest.mark.asyncio
    async def test_any_week_failure_aborts(self, sleeper):
        sleeper.add("/league/L/transactions/2", [TRADE])
        sleeper.add("/league/L/transactions/1", status=429)

        with pytest.raises(GatewayError) as exc_info:
            await fetch_transactions_by_weeks("L", [2, 1])
        assert exc_info.value.code == ErrorCode.SLEEPER_RATE_LIMIT
