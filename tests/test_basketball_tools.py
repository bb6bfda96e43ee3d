"""
Tests for the basketball tool handlers.

Basketball shares the league endpoints with football; these tests cover the
parts that differ (state/catalog paths, position vocabulary) plus a couple of
end-to-end handler runs.
"""

import json

import pytest

from sleeper_gateway.basketball_tools import BasketballTools
from sleeper_gateway.models import ToolParams


@pytest.fixture
def tools():
    return BasketballTools()


def params(**kwargs):
    kwargs.setdefault("sport", "basketball")
    kwargs.setdefault("league_id", "lg2")
    kwargs.setdefault("season_year", 2025)
    return ToolParams(**kwargs)


class TestBasketballRegistry:

    def test_sleeper_sport(self, tools):
        assert tools.sport == "basketball"
        assert tools.sleeper_sport == "nba"
        assert len(tools.tools) == 7

    def test_position_names(self, tools):
        assert tools.position_name("PG") == "Point Guard"
        assert tools.position_name("UTIL") == "Utility"
        assert tools.position_name("QB") == "QB"


class TestBasketballHandlers:

    @pytest.mark.asyncio
    async def test_league_info_position_names(self, sleeper, env, tools):
        sleeper.add("/league/lg2", {"league_id": "lg2", "sport": "nba", "roster_positions": ["PG", "UTIL", "BN"]})

        result = await tools.get_league_info(env, params())

        assert result["data"]["rosterPositionNames"] == ["Point Guard", "Utility", "Bench"]

    @pytest.mark.asyncio
    async def test_free_agents_use_basketball_catalog(self, sleeper, kv, env, tools):
        await kv.put("players:basketball:v1", json.dumps([
            {"player_id": "b1", "full_name": "Rostered Guard", "position": "PG", "team": "BOS", "active": True},
            {"player_id": "b2", "full_name": "Available Guard", "position": "PG", "team": "NYK", "active": True},
        ]))
        sleeper.add("/league/lg2/rosters", [{"players": ["b1"]}])

        result = await tools.get_free_agents(env, params(position="PG", count=10))

        assert result["data"]["league_id"] == "lg2"
        assert result["data"]["sport"] == "basketball"
        assert [p["id"] for p in result["data"]["players"]] == ["b2"]
        assert sleeper.count("/players/nba") == 0

    @pytest.mark.asyncio
    async def test_catalog_cold_miss_hits_nba_path(self, sleeper, env, tools):
        sleeper.add("/players/nba", {"b9": {"full_name": "Victor Wembanyama", "position": "C", "active": True}})

        result = await tools.search_players(env, params(query="wemb"))

        assert result["data"]["players"][0]["id"] == "b9"
        assert sleeper.count("/players/nba") == 1
        assert sleeper.count("/players/nfl") == 0

    @pytest.mark.asyncio
    async def test_transactions_window_uses_nba_state(self, sleeper, env, tools):
        sleeper.add("/state/nba", {"week": 1})
        sleeper.add("/league/lg2/transactions/1", [
            {"transaction_id": "f1", "type": "free_agent", "status": "complete", "created": 10,
             "drops": {"b1": 2}, "roster_ids": [2]},
        ])
        sleeper.add("/players/nba", {})

        result = await tools.get_transactions(env, params())

        data = result["data"]
        assert data["window"] == {"mode": "recent_two_weeks", "weeks": [1]}
        assert data["transactions"][0]["type"] == "drop"
