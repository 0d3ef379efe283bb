"""
Player and team name normalization and comparison utilities.

Football player names come in many formats from different providers:
- API-Football: "S. Bergwijn"
- FotMob: "Steven Bergwijn"
- SofaScore: "Steven Bergwijn"
- With accents: "Thomas Müller" vs "Thomas Muller"
- With punctuation: "N'Golo Kanté" vs "NGolo Kante"

This module provides utilities to normalize names for storage and
compare names for fuzzy matching during identity resolution.
"""

import re
import unicodedata
from typing import Optional

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from scoutrank.config import settings

# Anything that is not a word character or whitespace
_PUNCTUATION_RE = re.compile(r"[^\w\s]")

# Club-name tokens that carry no identity ("FC Barcelona" vs "Barcelona")
TEAM_SUFFIX_TOKENS = frozenset({
    "fc", "cf", "sc", "ac", "afc", "ssc", "bv", "sv", "vfb", "vfl", "fsv", "tsv",
    "fk", "sk", "rcd", "cd", "ud", "rc", "as", "ss", "us",
    "united", "city", "club",
})

_UNSET = object()


def _strip_accents(text: str) -> str:
    # NFD decomposes characters (é -> e + combining acute), then drop the marks
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a player name for storage and comparison.

    Normalization steps:
    1. Convert to lowercase
    2. Remove accents (é -> e, ü -> u)
    3. Remove punctuation (anything but word characters and spaces)
    4. Collapse whitespace runs and trim

    The function is total and idempotent: empty or missing input yields
    an empty string, and normalizing twice changes nothing.

    Args:
        name: Raw player name from any provider

    Returns:
        Normalized name suitable for the players.name_normalized column

    Examples:
        >>> normalize_name("Thomas MÜLLER")
        'thomas muller'
        >>> normalize_name("N'Golo  Kanté")
        'ngolo kante'
    """
    if not name:
        return ""

    normalized = _strip_accents(name.lower())
    normalized = _PUNCTUATION_RE.sub("", normalized)
    return " ".join(normalized.split())


def normalize_team_name(name: Optional[str]) -> str:
    """
    Normalize a club name, dropping suffix tokens like "FC" or "United".

    Examples:
        >>> normalize_team_name("FC Barcelona")
        'barcelona'
        >>> normalize_team_name("1. FSV Mainz 05")
        '1 mainz 05'
    """
    normalized = normalize_name(name)
    tokens = [token for token in normalized.split() if token not in TEAM_SUFFIX_TOKENS]
    return " ".join(tokens)


def similarity(a: str, b: str, length_cutoff=_UNSET) -> float:
    """
    Normalized Levenshtein similarity between two strings.

    Returns 1.0 for identical strings, 0.0 if either is empty, otherwise
    ``1 - distance / max(len(a), len(b))``.

    When the length difference exceeds ``length_cutoff`` of the longer
    string the score short-circuits to 0.0 without computing the edit
    distance. This is a speed heuristic and not an exact bound: a pair
    it rejects could still have scored slightly above 0. Pass
    ``length_cutoff=None`` to disable it; the default comes from
    ``settings.similarity_length_cutoff``.

    The result is symmetric in its arguments.

    Args:
        a: First string (normally already normalized)
        b: Second string
        length_cutoff: Fraction of the longer length, or None

    Returns:
        Similarity score from 0.0 (no match) to 1.0 (identical)
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    if length_cutoff is _UNSET:
        length_cutoff = settings.similarity_length_cutoff

    longer = max(len(a), len(b))
    if length_cutoff is not None and abs(len(a) - len(b)) > longer * length_cutoff:
        return 0.0

    return 1.0 - Levenshtein.distance(a, b) / longer


def compare_names(name1: str, name2: str) -> float:
    """
    Compare two raw player names, tolerating word order.

    Takes the better of the plain ``similarity`` of the normalized names
    and RapidFuzz's token sort ratio, so "Bergwijn, Steven" and
    "Steven Bergwijn" score 1.0. The resolver scores with ``similarity``
    alone; this is for review tooling and ad hoc lookups.

    Examples:
        >>> compare_names("Thomas Müller", "MULLER Thomas")
        1.0
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)
    if not n1 or not n2:
        return 0.0

    # Token sort: "bergwijn steven" vs "steven bergwijn"
    token_sort = fuzz.token_sort_ratio(n1, n2) / 100.0
    return max(similarity(n1, n2), token_sort)
