"""Sport registry for the Sleeper gateway.

Each supported sport maps to one ``SportTools`` instance, built once at
import time and shared by every request.
"""
from __future__ import annotations
from typing import Dict, Optional

from .basketball_tools import BasketballTools
from .football_tools import FootballTools
from .sport_tools import SportTools

_REGISTRY: Dict[str, SportTools] = {
    "football": FootballTools(),
    "basketball": BasketballTools(),
}


def get_sport_tools(sport: str) -> Optional[SportTools]:
    """Registry for a canonical sport name, or None if the sport is not supported."""
    return _REGISTRY.get(sport)
