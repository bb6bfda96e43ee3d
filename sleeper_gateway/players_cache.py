"""
Two-tier cache for the Sleeper player catalog.

The catalog (/players/nfl, /players/nba) is several megabytes and changes
slowly, so it is kept in a process-local map and in the durable KV binding for
24 hours. Lookup order is process-local, then durable, then upstream.

Sleeper has served the catalog both as an object keyed by player id and as a
list of records; ``normalize_players`` is the only place that knows about
either shape.
"""

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .config import CACHE_SETTINGS, LONG_TIMEOUT
from .models import GatewayEnv
from .sleeper_api import canonical_sport_to_sleeper, fetch_sleeper_json

logger = logging.getLogger(__name__)

PLAYERS_CACHE_TTL_SECONDS: int = CACHE_SETTINGS["players_ttl_seconds"]
CACHE_KEY_VERSION: str = CACHE_SETTINGS["key_version"]


@dataclass(frozen=True)
class PlayerRecord:
    player_id: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    team: Optional[str] = None
    active: bool = False


@dataclass(frozen=True)
class CacheEntry:
    value: str
    expires_at: float
    index: Dict[str, PlayerRecord]


# Process-local tier, keyed by cache key. Entries are replaced, never mutated.
_in_memory_cache: Dict[str, CacheEntry] = {}

# Upstream refreshes in flight, keyed by cache key
_inflight: Dict[str, "asyncio.Future[List[PlayerRecord]]"] = {}


def clear_in_memory_cache() -> None:
    """Drop the process-local tier (used by tests and on shutdown)."""
    _in_memory_cache.clear()


def cache_key_for_sport(sport: str) -> str:
    return f"players:{sport}:{CACHE_KEY_VERSION}"


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_player_record(raw: Dict[str, Any], fallback_id: Optional[str] = None) -> Optional[PlayerRecord]:
    """Build a PlayerRecord from one upstream record, or None without an id."""
    player_id = _non_empty_str(raw.get("player_id")) or _non_empty_str(fallback_id)
    if not player_id:
        return None

    first_name = _non_empty_str(raw.get("first_name"))
    last_name = _non_empty_str(raw.get("last_name"))
    derived = " ".join(part for part in (first_name, last_name) if part)
    full_name = _non_empty_str(raw.get("full_name")) or derived or player_id

    return PlayerRecord(
        player_id=player_id,
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        position=_non_empty_str(raw.get("position")),
        team=_non_empty_str(raw.get("team")),
        active=raw.get("active") is True,
    )


def normalize_players(payload: Any) -> Optional[List[PlayerRecord]]:
    """
    Normalize either catalog shape into a list of PlayerRecord.

    Args:
        payload: a JSON list of records, or a JSON object keyed by player id

    Returns:
        Records with a resolvable id (inactive ones included, flagged), or
        None when the payload is neither shape
    """
    players: List[PlayerRecord] = []

    if isinstance(payload, list):
        for item in payload:
            if not isinstance(item, dict):
                continue
            record = parse_player_record(item)
            if record:
                players.append(record)
        return players

    if isinstance(payload, dict):
        for player_id, item in payload.items():
            if not isinstance(item, dict):
                continue
            record = parse_player_record(item, fallback_id=str(player_id))
            if record:
                players.append(record)
        return players

    return None


def serialize_players(players: List[PlayerRecord]) -> str:
    return json.dumps([asdict(p) for p in players], separators=(",", ":"))


def to_player_index(players: List[PlayerRecord]) -> Dict[str, PlayerRecord]:
    return {p.player_id: p for p in players}


def _decode(serialized: str) -> Optional[List[PlayerRecord]]:
    """Parse a cached value; a malformed value reads as a miss."""
    try:
        return normalize_players(json.loads(serialized))
    except (TypeError, ValueError) as e:
        logger.warning(f"Discarding malformed cached player catalog: {e}")
        return None


def _remember(cache_key: str, serialized: str, players: List[PlayerRecord], now: float) -> Dict[str, PlayerRecord]:
    index = to_player_index(players)
    _in_memory_cache[cache_key] = CacheEntry(
        value=serialized,
        expires_at=now + PLAYERS_CACHE_TTL_SECONDS,
        index=index,
    )
    return index


async def _refresh_from_upstream(env: GatewayEnv, sport: str, cache_key: str) -> List[PlayerRecord]:
    path = f"/players/{canonical_sport_to_sleeper(sport)}"
    started = time.time()
    payload = await fetch_sleeper_json(path, timeout=LONG_TIMEOUT, auth_header=env.auth_header)

    players = normalize_players(payload) or []
    serialized = serialize_players(players)
    await env.players_cache.put(cache_key, serialized, expiration_ttl=PLAYERS_CACHE_TTL_SECONDS)
    _remember(cache_key, serialized, players, time.time())

    logger.info(
        f"Refreshed {sport} player catalog: {len(players)} players in "
        f"{(time.time() - started) * 1000:.0f}ms"
    )
    return players


async def _refresh_single_flight(env: GatewayEnv, sport: str, cache_key: str) -> List[PlayerRecord]:
    """Collapse concurrent cold misses in this process onto one upstream fetch."""
    pending = _inflight.get(cache_key)
    if pending is not None and not pending.done():
        return await asyncio.shield(pending)

    task = asyncio.ensure_future(_refresh_from_upstream(env, sport, cache_key))
    _inflight[cache_key] = task
    task.add_done_callback(lambda done: _forget_refresh(cache_key, done))
    return await asyncio.shield(task)


def _forget_refresh(cache_key: str, task: "asyncio.Future[List[PlayerRecord]]") -> None:
    """Drop a finished refresh; it outlives callers that gave up waiting on it."""
    if _inflight.get(cache_key) is task:
        del _inflight[cache_key]
    if not task.cancelled() and task.exception() is not None:
        logger.warning(f"Player catalog refresh for {cache_key} failed: {task.exception()}")


async def get_players_index(
    env: GatewayEnv, sport: str, timeout: Optional[float] = None
) -> Dict[str, PlayerRecord]:
    """
    Return the player catalog for a sport as ``{player_id: PlayerRecord}``.

    Args:
        env: gateway environment carrying the durable KV binding
        sport: canonical sport ("football" or "basketball")
        timeout: seconds to wait for the lookup; an upstream refresh that
            runs longer keeps going in the background and warms the cache

    Raises:
        GatewayError: when the catalog has to come from upstream and that fails
        asyncio.TimeoutError: when ``timeout`` elapses first
    """
    if timeout is not None:
        return await asyncio.wait_for(_lookup(env, sport), timeout=max(timeout, 0.0))
    return await _lookup(env, sport)


async def _lookup(env: GatewayEnv, sport: str) -> Dict[str, PlayerRecord]:
    cache_key = cache_key_for_sport(sport)
    now = time.time()

    entry = _in_memory_cache.get(cache_key)
    if entry is not None and entry.expires_at > now:
        return dict(entry.index)

    cached = await env.players_cache.get(cache_key)
    if cached:
        players = _decode(cached)
        if players is not None:
            return dict(_remember(cache_key, cached, players, now))

    players = await _refresh_single_flight(env, sport, cache_key)
    return to_player_index(players)
