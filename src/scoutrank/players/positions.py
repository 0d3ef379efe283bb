"""
Position label to position group mapping.

Providers describe positions in many ways: single letters from
API-Football ("G", "D", "M", "F"), English labels from FotMob
("Centre-Back", "Left Winger"), abbreviations ("CDM", "ST") and
occasionally other languages ("Portero", "Stürmer"). Ratings only care
about the four groups GK, DEF, MID and ATT.
"""

import re
from typing import Optional

from scoutrank.ratings.constants import POSITION_GROUPS, is_valid_position_group

POSITION_MAP = {
    # Goalkeepers
    "goalkeeper": "GK",
    "gk": "GK",
    "g": "GK",
    "keeper": "GK",
    "portero": "GK",
    "gardien": "GK",
    "torwart": "GK",

    # Defenders
    "defender": "DEF",
    "d": "DEF",
    "centre-back": "DEF",
    "center-back": "DEF",
    "centre back": "DEF",
    "center back": "DEF",
    "cb": "DEF",
    "centreback": "DEF",
    "centerback": "DEF",
    "left-back": "DEF",
    "right-back": "DEF",
    "left back": "DEF",
    "right back": "DEF",
    "lb": "DEF",
    "rb": "DEF",
    "leftback": "DEF",
    "rightback": "DEF",
    "fullback": "DEF",
    "full-back": "DEF",
    "wing-back": "DEF",
    "wingback": "DEF",
    "left wing-back": "DEF",
    "right wing-back": "DEF",
    "lwb": "DEF",
    "rwb": "DEF",
    "sweeper": "DEF",
    "libero": "DEF",
    "defensor": "DEF",
    "défenseur": "DEF",
    "verteidiger": "DEF",

    # Midfielders
    "midfielder": "MID",
    "midfield": "MID",
    "m": "MID",
    "mf": "MID",
    "central midfield": "MID",
    "central midfielder": "MID",
    "cm": "MID",
    "defensive midfield": "MID",
    "defensive midfielder": "MID",
    "dm": "MID",
    "dmf": "MID",
    "cdm": "MID",
    "holding midfielder": "MID",
    "attacking midfield": "MID",
    "attacking midfielder": "MID",
    "am": "MID",
    "amf": "MID",
    "cam": "MID",
    "left midfield": "MID",
    "right midfield": "MID",
    "lm": "MID",
    "rm": "MID",
    "left winger": "MID",
    "right winger": "MID",
    "lw": "MID",
    "rw": "MID",
    "winger": "MID",
    "wing": "MID",
    "mediocampista": "MID",
    "milieu": "MID",
    "mittelfeldspieler": "MID",

    # Attackers
    "attacker": "ATT",
    "attack": "ATT",
    "f": "ATT",
    "forward": "ATT",
    "striker": "ATT",
    "st": "ATT",
    "fw": "ATT",
    "cf": "ATT",
    "centre-forward": "ATT",
    "center-forward": "ATT",
    "centreforward": "ATT",
    "centerforward": "ATT",
    "second striker": "ATT",
    "ss": "ATT",
    "false 9": "ATT",
    "false9": "ATT",
    "left forward": "ATT",
    "right forward": "ATT",
    "lf": "ATT",
    "rf": "ATT",
    "delantero": "ATT",
    "attaquant": "ATT",
    "stürmer": "ATT",
    "angreifer": "ATT",
}

# Longest labels first so "left wing-back" wins over "wing"
_PHRASES = sorted(
    ((label, group) for label, group in POSITION_MAP.items() if len(label) >= 3),
    key=lambda item: len(item[0]),
    reverse=True,
)

# Last resort, checked in order
_FALLBACK_PATTERNS = (
    (("goal", "keeper"), "GK"),
    (("defend", "back"), "DEF"),
    (("mid", "wing"), "MID"),
    (("forward", "attack", "strik"), "ATT"),
)


def map_position_to_group(position: Optional[str]) -> Optional[str]:
    """
    Map a raw position label to GK/DEF/MID/ATT.

    Tries an exact lookup, then a whole-word phrase match against the
    longer labels (abbreviations of one or two letters never match
    inside other words), then substring patterns.

    Returns:
        The position group, or None if the label is not recognised

    Examples:
        >>> map_position_to_group("Centre-Back")
        'DEF'
        >>> map_position_to_group("F")
        'ATT'
        >>> map_position_to_group("Right Wing-Back (inverted)")
        'DEF'
    """
    if not position:
        return None

    normalized = " ".join(position.lower().split())
    if normalized.upper() in POSITION_GROUPS:
        return normalized.upper()

    group = POSITION_MAP.get(normalized)
    if group:
        return group

    for label, group in _PHRASES:
        if re.search(rf"(?<!\w){re.escape(label)}(?!\w)", normalized):
            return group

    for needles, group in _FALLBACK_PATTERNS:
        if any(needle in normalized for needle in needles):
            return group

    return None


def map_position_to_group_with_default(position: Optional[str], default: str = "MID") -> str:
    """Like map_position_to_group, but unknown labels fall back to ``default``."""
    return map_position_to_group(position) or default


__all__ = [
    "POSITION_MAP",
    "map_position_to_group",
    "map_position_to_group_with_default",
    "is_valid_position_group",
]
