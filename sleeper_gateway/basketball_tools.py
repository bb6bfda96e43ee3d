"""
Basketball (Sleeper "nba") tools.

Sleeper uses the same league endpoints for basketball as for football, so the
only sport-specific pieces are the state/catalog paths (derived from
``sport``) and the roster slot vocabulary below.
"""

from typing import Dict

from .sport_tools import SportTools

POSITION_MAP: Dict[str, str] = {
    "PG": "Point Guard",
    "SG": "Shooting Guard",
    "SF": "Small Forward",
    "PF": "Power Forward",
    "C": "Center",
    "G": "Guard",
    "F": "Forward",
    "UTIL": "Utility",
    "BN": "Bench",
    "IR": "Injured Reserve",
    "TAXI": "Taxi Squad",
}


class BasketballTools(SportTools):
    sport = "basketball"
    position_names = POSITION_MAP
