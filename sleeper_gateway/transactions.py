"""
Transaction history across one or more Sleeper weeks ("legs").

A transaction can show up in two adjacent weeks' logs around the week
boundary, so weeks are merged in the order requested and the first copy of
each transaction id wins.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from .sleeper_api import canonical_sport_to_sleeper, fetch_sleeper_json

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("add", "drop", "trade", "waiver")

# player_id -> {"name", "position", "team"} or None when unknown
PlayerResolver = Callable[[str], Optional[Dict[str, Optional[str]]]]


def map_type(raw: Dict[str, Any]) -> Optional[str]:
    """Map Sleeper's transaction type onto the allow-list, or None to drop it."""
    value = raw.get("type")
    if value == "trade":
        return "trade"
    if value == "waiver":
        return "waiver"
    if value == "free_agent":
        # A free-agent move that only releases players is a drop
        if not raw.get("adds") and raw.get("drops"):
            return "drop"
        return "add"
    return None


def map_status(value: Optional[str]) -> str:
    if value in ("complete", "completed"):
        return "complete"
    if value in ("failed", "pending"):
        return value
    return "unknown"


def _player_entry(player_id: str, resolve_player: Optional[PlayerResolver]) -> Dict[str, Optional[str]]:
    entry: Dict[str, Optional[str]] = {"id": player_id, "name": None, "position": None, "team": None}
    if resolve_player is None:
        return entry
    try:
        info = resolve_player(player_id)
    except Exception as e:
        logger.debug(f"Player resolver failed for {player_id}: {e}")
        return entry
    if info:
        entry["name"] = info.get("name")
        entry["position"] = info.get("position")
        entry["team"] = info.get("team")
    return entry


def normalize_transaction(
    raw: Any,
    resolve_player: Optional[PlayerResolver] = None,
) -> Optional[Dict[str, Any]]:
    """
    Normalize one raw Sleeper transaction.

    Returns:
        The normalized transaction, or None when the type is not recognised
    """
    if not isinstance(raw, dict):
        return None
    tx_type = map_type(raw)
    if tx_type is None:
        return None

    timestamp = raw.get("status_updated") or raw.get("created") or 0
    tx_id = raw.get("transaction_id")
    if tx_id is None or tx_id == "":
        tx_id = f"{raw.get('type') or 'unknown'}-{timestamp}"

    adds = raw.get("adds") or {}
    drops = raw.get("drops") or {}
    settings = raw.get("settings") or {}

    return {
        "transaction_id": str(tx_id),
        "type": tx_type,
        "status": map_status(raw.get("status")),
        "timestamp": int(timestamp),
        "week": raw.get("leg"),
        "team_ids": [str(rid) for rid in (raw.get("roster_ids") or [])],
        "players_added": [_player_entry(str(pid), resolve_player) for pid in adds],
        "players_dropped": [_player_entry(str(pid), resolve_player) for pid in drops],
        "faab_bid": settings.get("waiver_bid") if isinstance(settings, dict) else None,
        "draft_picks": raw.get("draft_picks"),
    }


async def get_current_week(sport: str, auth_header: Optional[str] = None) -> int:
    """Current scoring period from Sleeper's state endpoint, never below 1."""
    state = await fetch_sleeper_json(f"/state/{canonical_sport_to_sleeper(sport)}", auth_header=auth_header)
    week = state.get("week") if isinstance(state, dict) else None
    try:
        return max(1, int(week))
    except (TypeError, ValueError):
        return 1


def default_week_window(current_week: int) -> List[int]:
    """The "recent activity" window: this week and last week, deduplicated."""
    current = max(1, int(current_week))
    previous = max(1, current - 1)
    return [current] if previous == current else [current, previous]


async def fetch_transactions_by_weeks(
    league_id: str,
    weeks: Sequence[int],
    resolve_player: Optional[PlayerResolver] = None,
    auth_header: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch, normalize and merge the transaction logs of several weeks.

    Args:
        league_id: Sleeper league id
        weeks: weeks to scan; earlier entries win on duplicate ids
        resolve_player: optional lookup used to enrich added/dropped players
        auth_header: optional credential header forwarded upstream

    Returns:
        Unique transactions sorted newest first

    Raises:
        GatewayError: if any week's fetch fails; partial results are discarded
    """
    logs = await asyncio.gather(*[
        fetch_sleeper_json(f"/league/{league_id}/transactions/{week}", auth_header=auth_header)
        for week in weeks
    ])

    seen = set()
    merged: List[Dict[str, Any]] = []
    for week, raw_log in zip(weeks, logs):
        if not isinstance(raw_log, list):
            logger.debug(f"Ignoring non-list transaction log for week {week}")
            continue
        for raw in raw_log:
            tx = normalize_transaction(raw, resolve_player)
            if tx is None or tx["transaction_id"] in seen:
                continue
            seen.add(tx["transaction_id"])
            merged.append(tx)

    # sort is stable, so equal timestamps keep scan order
    merged.sort(key=lambda tx: tx["timestamp"], reverse=True)
    return merged
