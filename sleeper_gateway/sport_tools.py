"""
Tool handlers shared by every Sleeper sport.

Sleeper's league, roster, user, matchup and transaction endpoints are keyed by
league id and do not depend on the sport; only the state endpoint, the player
catalog and the position vocabulary differ. ``SportTools`` implements the tool
contracts once, and each sport subclass supplies those differences.

Every handler has the signature ``async (env, params) -> envelope`` and never
raises: failures come back as ``{"success": False, "error", "code"}``.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import LIMITS
from .errors import (
    ErrorCode, GatewayError, create_error_response, create_success_response,
    error_message, handle_tool_errors,
)
from .free_agents import build_free_agents, build_player_search, clamp_count
from .models import GatewayEnv, ToolParams
from .players_cache import PlayerRecord, get_players_index
from .sleeper_api import canonical_sport_to_sleeper, fetch_sleeper_json
from .transactions import (
    PlayerResolver, TRANSACTION_TYPES, default_week_window,
    fetch_transactions_by_weeks, get_current_week,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[GatewayEnv, ToolParams], Awaitable[Dict[str, Any]]]

UNKNOWN_OWNER = "Unknown"

# Share of the remaining budget held back for work after a catalog lookup
CATALOG_HEADROOM_FRACTION = 0.2
CATALOG_HEADROOM_MAX_SECONDS = 1.0

# Monotonic time by which the running tool call has to answer
_deadline_at: ContextVar[Optional[float]] = ContextVar("tool_deadline_at", default=None)


@contextmanager
def tool_deadline(seconds: float):
    """Give the tool call running in this context ``seconds`` to answer."""
    token = _deadline_at.set(time.monotonic() + seconds)
    try:
        yield
    finally:
        _deadline_at.reset(token)


def catalog_budget() -> Optional[float]:
    """Seconds a catalog lookup may still take, or None outside a deadline."""
    deadline_at = _deadline_at.get()
    if deadline_at is None:
        return None
    remaining = deadline_at - time.monotonic()
    headroom = min(CATALOG_HEADROOM_MAX_SECONDS, remaining * CATALOG_HEADROOM_FRACTION)
    return max(remaining - headroom, 0.0)


def _require_league_id(params: ToolParams) -> str:
    if not params.league_id:
        raise GatewayError(ErrorCode.MISSING_PARAM, "league_id is required")
    return params.league_id


def _owner_names(users: Any) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for user in users or []:
        if isinstance(user, dict) and user.get("user_id"):
            names[user["user_id"]] = user.get("display_name") or UNKNOWN_OWNER
    return names


def _points(whole: Any, decimal: Any) -> float:
    """Sleeper splits points into an integer part and hundredths."""
    return (whole or 0) + (decimal or 0) / 100


def _roster_settings(roster: Dict[str, Any]) -> Dict[str, Any]:
    return roster.get("settings") or {}


class SportTools:
    """
    Tool registry for one sport.

    Subclasses set ``sport`` (canonical name) and ``position_names``.
    """

    sport: str = ""
    position_names: Dict[str, str] = {}

    def __init__(self):
        self.tools: Dict[str, ToolHandler] = {
            "get_league_info": self.get_league_info,
            "get_standings": self.get_standings,
            "get_roster": self.get_roster,
            "get_matchups": self.get_matchups,
            "get_free_agents": self.get_free_agents,
            "search_players": self.search_players,
            "get_transactions": self.get_transactions,
        }

    @property
    def sleeper_sport(self) -> str:
        return canonical_sport_to_sleeper(self.sport)

    def get_handler(self, tool: str) -> Optional[ToolHandler]:
        return self.tools.get(tool)

    def position_name(self, abbreviation: str) -> str:
        return self.position_names.get(abbreviation, abbreviation)

    async def _players_index(self, env: GatewayEnv) -> Dict[str, PlayerRecord]:
        """Catalog lookup bounded by what is left of the call's deadline."""
        budget = catalog_budget()
        try:
            return await get_players_index(env, self.sport, timeout=budget)
        except asyncio.TimeoutError:
            if budget is None:
                raise
            raise GatewayError(
                ErrorCode.SLEEPER_TIMEOUT, f"player catalog not ready within {budget:.2f}s"
            ) from None

    async def _fetch_all(self, env: GatewayEnv, *paths: str) -> Tuple[Any, ...]:
        """Fetch several resources concurrently; the first failure aborts the join."""
        results = await asyncio.gather(*[
            fetch_sleeper_json(path, auth_header=env.auth_header) for path in paths
        ])
        return tuple(results)

    @handle_tool_errors("get_league_info")
    async def get_league_info(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        (league,) = await self._fetch_all(env, f"/league/{league_id}")
        league = league or {}
        roster_positions = league.get("roster_positions") or []

        return create_success_response({
            "leagueId": league.get("league_id"),
            "name": league.get("name"),
            "sport": league.get("sport"),
            "season": league.get("season"),
            "status": league.get("status"),
            "totalRosters": league.get("total_rosters"),
            "rosterPositions": roster_positions,
            "rosterPositionNames": [self.position_name(p) for p in roster_positions],
            "scoringSettings": league.get("scoring_settings"),
            "previousLeagueId": league.get("previous_league_id"),
            "draftId": league.get("draft_id"),
        })

    @handle_tool_errors("get_standings")
    async def get_standings(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        rosters, users = await self._fetch_all(
            env, f"/league/{league_id}/rosters", f"/league/{league_id}/users"
        )
        owners = _owner_names(users)

        standings: List[Dict[str, Any]] = []
        for roster in rosters or []:
            settings = _roster_settings(roster)
            wins = settings.get("wins") or 0
            losses = settings.get("losses") or 0
            ties = settings.get("ties") or 0
            games = wins + losses + ties
            standings.append({
                "rosterId": roster.get("roster_id"),
                "ownerId": roster.get("owner_id"),
                "ownerName": owners.get(roster.get("owner_id"), UNKNOWN_OWNER),
                "wins": wins,
                "losses": losses,
                "ties": ties,
                "winPercentage": round(wins / games, 3) if games else 0,
                "pointsFor": round(_points(settings.get("fpts"), settings.get("fpts_decimal")), 2),
                "pointsAgainst": round(
                    _points(settings.get("fpts_against"), settings.get("fpts_against_decimal")), 2
                ),
            })

        # Ties on wins and points fall back to roster id so the order never
        # depends on how Sleeper happened to list the rosters
        standings.sort(key=lambda s: (-s["wins"], -s["pointsFor"], _roster_id_key(s["rosterId"])))
        for rank, entry in enumerate(standings, start=1):
            entry["rank"] = rank

        return create_success_response({"leagueId": league_id, "standings": standings})

    @handle_tool_errors("get_roster")
    async def get_roster(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        team_id = params.team_id
        rosters, users = await self._fetch_all(
            env, f"/league/{league_id}/rosters", f"/league/{league_id}/users"
        )
        rosters = rosters or []
        owners = _owner_names(users)

        if not team_id:
            return create_success_response({
                "leagueId": league_id,
                "rosters": [
                    {
                        "rosterId": r.get("roster_id"),
                        "ownerId": r.get("owner_id"),
                        "ownerName": owners.get(r.get("owner_id"), UNKNOWN_OWNER),
                        "playerCount": len(r.get("players") or []),
                        "starterCount": len(r.get("starters") or []),
                    }
                    for r in rosters
                ],
            })

        roster = next(
            (r for r in rosters if str(r.get("roster_id")) == team_id or r.get("owner_id") == team_id),
            None,
        )
        if roster is None:
            return create_error_response(
                f"Roster not found for team_id: {team_id}", ErrorCode.SLEEPER_NOT_FOUND
            )

        starters = list(roster.get("starters") or [])
        reserve = list(roster.get("reserve") or [])
        excluded = set(starters) | set(reserve)
        bench = [p for p in roster.get("players") or [] if p not in excluded]
        settings = _roster_settings(roster)

        return create_success_response({
            "leagueId": league_id,
            "rosterId": roster.get("roster_id"),
            "ownerId": roster.get("owner_id"),
            "ownerName": owners.get(roster.get("owner_id"), UNKNOWN_OWNER),
            "starters": starters,
            "bench": bench,
            "reserve": reserve,
            "record": {
                "wins": settings.get("wins", 0),
                "losses": settings.get("losses", 0),
                "ties": settings.get("ties", 0),
            },
        })

    async def _matchup_week(self, env: GatewayEnv, week: Optional[int]) -> int:
        if week:
            return week
        try:
            return await get_current_week(self.sport, auth_header=env.auth_header)
        except GatewayError as e:
            logger.info(f"State lookup failed, defaulting matchups to week 1: {e}")
            return 1

    @handle_tool_errors("get_matchups")
    async def get_matchups(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        week = await self._matchup_week(env, params.week)

        matchups, rosters, users = await self._fetch_all(
            env,
            f"/league/{league_id}/matchups/{week}",
            f"/league/{league_id}/rosters",
            f"/league/{league_id}/users",
        )
        owners = _owner_names(users)
        roster_owner = {
            r.get("roster_id"): owners.get(r.get("owner_id"), UNKNOWN_OWNER) for r in rosters or []
        }

        groups: Dict[Any, List[Dict[str, Any]]] = {}
        for entry in matchups or []:
            groups.setdefault(entry.get("matchup_id"), []).append(entry)

        def format_side(entry: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "rosterId": entry.get("roster_id"),
                "ownerName": roster_owner.get(entry.get("roster_id"), UNKNOWN_OWNER),
                "points": entry.get("points") or 0,
                "starters": entry.get("starters") or [],
            }

        paired = []
        for matchup_id, sides in groups.items():
            home = format_side(sides[0]) if len(sides) > 0 else None
            away = format_side(sides[1]) if len(sides) > 1 else None
            paired.append({
                "matchupId": matchup_id,
                "home": home,
                "away": away,
                "winner": _winner(home, away),
            })

        return create_success_response({"leagueId": league_id, "week": week, "matchups": paired})

    @handle_tool_errors("get_free_agents")
    async def get_free_agents(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        (rosters,) = await self._fetch_all(env, f"/league/{league_id}/rosters")

        rostered = set()
        for roster in rosters or []:
            for player_id in roster.get("players") or []:
                rostered.add(str(player_id))

        data: Dict[str, Any] = {
            "platform": "sleeper",
            "sport": params.sport,
            "league_id": league_id,
            "season_year": params.season_year,
        }
        try:
            players_index = await self._players_index(env)
            free_agents = build_free_agents(players_index, rostered, params.position, params.count)
        except Exception as e:
            # Rosters were fetched fine; a missing catalog degrades, it does not fail
            logger.warning(f"Player catalog unavailable for {self.sport} free agents: {error_message(e)}")
            free_agents = []
            data["warning"] = (
                f"{ErrorCode.PLAYER_ENRICHMENT_UNAVAILABLE}: free-agent player index unavailable; "
                "returning empty list"
            )

        data["count"] = len(free_agents)
        data["players"] = free_agents
        return create_success_response(data)

    @handle_tool_errors("search_players")
    async def search_players(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        query = (params.query or "").strip()
        if not query:
            return create_error_response("query is required for search_players", ErrorCode.MISSING_PARAM)

        data: Dict[str, Any] = {
            "platform": "sleeper",
            "sport": params.sport,
            "query": query,
        }
        try:
            players_index = await self._players_index(env)
            players = build_player_search(players_index, query, params.position, params.count)
        except Exception as e:
            logger.warning(f"Player catalog unavailable for {self.sport} search: {error_message(e)}")
            players = []
            data["warning"] = (
                f"{ErrorCode.PLAYER_ENRICHMENT_UNAVAILABLE}: player index unavailable; "
                "returning empty list"
            )

        data["count"] = len(players)
        data["players"] = players
        return create_success_response(data)

    async def _player_resolver(self, env: GatewayEnv) -> Optional[PlayerResolver]:
        try:
            players_index = await self._players_index(env)
        except Exception as e:
            logger.warning(f"Transactions served without player enrichment: {error_message(e)}")
            return None

        def resolve(player_id: str) -> Optional[Dict[str, Optional[str]]]:
            player = players_index.get(player_id)
            if player is None:
                return None
            return {"name": player.full_name, "position": player.position, "team": player.team}

        return resolve

    @handle_tool_errors("get_transactions")
    async def get_transactions(self, env: GatewayEnv, params: ToolParams) -> Dict[str, Any]:
        league_id = _require_league_id(params)
        tx_type = params.type.strip().lower() if params.type else None
        if tx_type and tx_type not in TRANSACTION_TYPES:
            return create_error_response(
                f"type must be one of: {', '.join(TRANSACTION_TYPES)}", ErrorCode.MISSING_PARAM
            )

        if params.week:
            weeks = [max(1, params.week)]
            mode = "explicit_week"
        else:
            current_week = await get_current_week(self.sport, auth_header=env.auth_header)
            weeks = default_week_window(current_week)
            mode = "recent_two_weeks"

        limit = clamp_count(
            params.count,
            LIMITS["transactions_min"],
            LIMITS["transactions_max"],
            LIMITS["transactions_default"],
        )
        resolver = await self._player_resolver(env)
        rows = await fetch_transactions_by_weeks(league_id, weeks, resolver, auth_header=env.auth_header)
        filtered = [tx for tx in rows if not tx_type or tx["type"] == tx_type][:limit]

        return create_success_response({
            "platform": "sleeper",
            "sport": params.sport,
            "league_id": league_id,
            "season_year": params.season_year,
            "window": {"mode": mode, "weeks": weeks},
            "count": len(filtered),
            "transactions": filtered,
        })


def _roster_id_key(roster_id: Any) -> Tuple[int, Any]:
    # numeric ids sort numerically, anything else after them as text
    if isinstance(roster_id, int):
        return (0, roster_id)
    return (1, str(roster_id))


def _winner(home: Optional[Dict[str, Any]], away: Optional[Dict[str, Any]]) -> Optional[str]:
    """Decide a winner only once somebody has scored."""
    if not home or not away:
        return None
    if home["points"] <= 0 and away["points"] <= 0:
        return None
    if home["points"] > away["points"]:
        return "home"
    if away["points"] > home["points"]:
        return "away"
    return "tie"
