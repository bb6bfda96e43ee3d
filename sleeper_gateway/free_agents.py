"""
Free-agent listing and player search over the cached player catalog.

Both builders are pure: the same inputs always give the same list in the same
order, so an agent re-running a tool call sees identical results. Sleeper does
not publish ownership percentages, so results carry an explicit
"unavailable" marker instead of a number.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import LIMITS
from .players_cache import PlayerRecord

OWNERSHIP_UNAVAILABLE = "unavailable"


def clamp_count(value: Any, low: int, high: int, default: int) -> int:
    """
    Clamp a requested result count into ``[low, high]``.

    Non-numeric or missing values fall back to ``default``; fractional values
    are truncated toward zero.
    """
    if value is None or isinstance(value, bool):
        number = default
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = default
        if not math.isfinite(number):
            number = default
    return max(low, min(high, int(number)))


def _sort_key(player: PlayerRecord):
    # case-insensitive by name first, exact name and id keep it deterministic
    return (player.full_name.casefold(), player.full_name, player.player_id)


def _normalize_position(position: Optional[str]) -> Optional[str]:
    if position is None:
        return None
    return position.strip().upper() or None


def _matches_position(player: PlayerRecord, position: Optional[str]) -> bool:
    if not position:
        return True
    return (player.position or "").upper() == position


def _project(player: PlayerRecord) -> Dict[str, Any]:
    return {
        "id": player.player_id,
        "name": player.full_name,
        "position": player.position,
        "team": player.team,
        "market_percent_owned": None,
        "ownership_scope": OWNERSHIP_UNAVAILABLE,
    }


def build_free_agents(
    players: Mapping[str, PlayerRecord],
    rostered_player_ids: Iterable[str],
    position: Optional[str] = None,
    count: Any = None,
) -> List[Dict[str, Any]]:
    """
    List active players that are on no roster in the league.

    Args:
        players: player catalog keyed by id
        rostered_player_ids: every player id currently on a league roster
        position: optional position filter (case-insensitive exact match)
        count: requested size, clamped to the free-agent bounds

    Returns:
        Projections sorted by (name, id)
    """
    rostered = {str(pid) for pid in rostered_player_ids}
    wanted = _normalize_position(position)
    limit = clamp_count(
        count, LIMITS["free_agents_min"], LIMITS["free_agents_max"], LIMITS["free_agents_default"]
    )

    available = [
        p for p in players.values()
        if p.active and p.player_id not in rostered and _matches_position(p, wanted)
    ]
    available.sort(key=_sort_key)
    return [_project(p) for p in available[:limit]]


def build_player_search(
    players: Mapping[str, PlayerRecord],
    query: str,
    position: Optional[str] = None,
    count: Any = None,
) -> List[Dict[str, Any]]:
    """
    Find players whose name contains ``query`` (case-insensitive).

    Inactive players are included. Results are sorted by (name, id) and
    clamped to the search bounds.
    """
    needle = (query or "").strip().lower()
    wanted = _normalize_position(position)
    limit = clamp_count(count, LIMITS["search_min"], LIMITS["search_max"], LIMITS["search_default"])

    matches = [
        p for p in players.values()
        if needle in p.full_name.lower() and _matches_position(p, wanted)
    ]
    matches.sort(key=_sort_key)
    return [_project(p) for p in matches[:limit]]
