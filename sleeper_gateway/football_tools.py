"""
Football (Sleeper "nfl") tools.
"""

from typing import Dict

from .sport_tools import SportTools

# Sleeper NFL roster slot abbreviations
POSITION_MAP: Dict[str, str] = {
    "QB": "Quarterback",
    "RB": "Running Back",
    "WR": "Wide Receiver",
    "TE": "Tight End",
    "K": "Kicker",
    "DEF": "Defense/Special Teams",
    "DL": "Defensive Lineman",
    "LB": "Linebacker",
    "DB": "Defensive Back",
    "FLEX": "Flex (RB/WR/TE)",
    "SUPER_FLEX": "Superflex (QB/RB/WR/TE)",
    "REC_FLEX": "Receiving Flex (WR/TE)",
    "IDP_FLEX": "IDP Flex",
    "BN": "Bench",
    "IR": "Injured Reserve",
    "TAXI": "Taxi Squad",
}


class FootballTools(SportTools):
    sport = "football"
    position_names = POSITION_MAP
