"""
Request and environment models shared by the dispatcher and tool handlers.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .kv_store import KVStore


class ToolParams(BaseModel):
    """Parameters of a single tool call. Immutable for the life of the call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sport: str
    league_id: Optional[str] = None
    season_year: Optional[int] = None
    team_id: Optional[str] = None
    week: Optional[int] = None
    position: Optional[str] = None
    count: Optional[Any] = None
    query: Optional[str] = None
    type: Optional[str] = None

    @field_validator("league_id", "team_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        # Sleeper ids are numeric strings; callers sometimes send them as numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("sport", mode="before")
    @classmethod
    def _normalize_sport(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ToolRequest(BaseModel):
    """Body of POST /execute."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    tool: str
    params: ToolParams


@dataclass(frozen=True)
class GatewayEnv:
    """
    Collaborators supplied by the host runtime.

    Attributes:
        players_cache: durable key-value binding for the player catalog
        auth_header: optional credential header forwarded upstream
    """
    players_cache: KVStore
    auth_header: Optional[str] = None
