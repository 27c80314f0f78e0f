# lfs_ingest/processors/headers.py
"""
Map free-text stats table headers (Latvian / English, with or without
diacritics) onto a fixed set of semantic fields, plus the small text and
number helpers the parsers share.

`detect_header_key` is pure: unknown text gives None, nothing raises.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from bs4 import BeautifulSoup

from lfs_ingest.utils.normalizer import strip_diacritics


class HeaderKey(str, Enum):
    NAME = "name"
    TEAM = "team"
    POSITION = "position"
    GAMES = "games"
    GOALS = "goals"
    ASSISTS = "assists"
    POINTS = "points"
    PEN_MIN = "pen_min"
    SAVES = "saves"
    SAVE_PCT = "save_pct"
    PRICE_RAW = "price_raw"
    PRICE_FINAL = "price_final"


HEADER_ALIASES: Dict[str, HeaderKey] = {
    "player": HeaderKey.NAME,
    "players": HeaderKey.NAME,
    "speletaji": HeaderKey.NAME,
    "name": HeaderKey.NAME,
    "speletajs": HeaderKey.NAME,
    "speletaja": HeaderKey.NAME,
    "vards": HeaderKey.NAME,
    "uzvards": HeaderKey.NAME,
    "komanda": HeaderKey.TEAM,
    "komandas": HeaderKey.TEAM,
    "team": HeaderKey.TEAM,
    "club": HeaderKey.TEAM,
    "position": HeaderKey.POSITION,
    "pozicija": HeaderKey.POSITION,
    "poz": HeaderKey.POSITION,
    "gp": HeaderKey.GAMES,
    "games": HeaderKey.GAMES,
    "speles": HeaderKey.GAMES,
    "spelu": HeaderKey.GAMES,
    "gms": HeaderKey.GAMES,
    "goals": HeaderKey.GOALS,
    "varti": HeaderKey.GOALS,
    "vartu": HeaderKey.GOALS,
    "a": HeaderKey.ASSISTS,
    "assists": HeaderKey.ASSISTS,
    "piespeles": HeaderKey.ASSISTS,
    "asistences": HeaderKey.ASSISTS,
    "points": HeaderKey.POINTS,
    "punkti": HeaderKey.POINTS,
    "pts": HeaderKey.POINTS,
    "pm": HeaderKey.PEN_MIN,
    "pim": HeaderKey.PEN_MIN,
    "sodi": HeaderKey.PEN_MIN,
    "sodu minutes": HeaderKey.PEN_MIN,
    "saves": HeaderKey.SAVES,
    "atvairijumi": HeaderKey.SAVES,
    "save": HeaderKey.SAVE_PCT,
    "save percent": HeaderKey.SAVE_PCT,
    "save pct": HeaderKey.SAVE_PCT,
    "save percentage": HeaderKey.SAVE_PCT,
    "procents": HeaderKey.SAVE_PCT,
    "procenti": HeaderKey.SAVE_PCT,
    "percent": HeaderKey.SAVE_PCT,
}

# order matters: first matcher wins
KEYWORD_MATCHERS = (
    (HeaderKey.NAME, ("vards", "vardu", "spel", "name")),
    (HeaderKey.TEAM, ("komand", "team", "klub")),
    (HeaderKey.GAMES, ("speles", "spelu", "sp", "games", "gp")),
    (HeaderKey.GOALS, ("varti", "goals")),
    (HeaderKey.ASSISTS, ("piespel", "assist", "asist")),
    (HeaderKey.POINTS, ("punkt", "points", "pts")),
    (HeaderKey.PEN_MIN, ("sodi", "sodu", "pim", "min")),
    (HeaderKey.SAVES, ("atvairij", "saves", "atvari")),
    (HeaderKey.SAVE_PCT, ("proc", "percent", "save", "%")),
    (HeaderKey.PRICE_RAW, ("raw", "sakotn")),
    (HeaderKey.PRICE_FINAL, ("final", "gala", "adjust")),
)

FINAL_PRICE_TOKENS = ("final", "finala", "finalais", "adjusted", "gala", "final price", "pec")
RAW_PRICE_TOKENS = ("raw", "pirms", "sakotneja")

# goalie tables use their own vocabulary; only some of it maps onto HeaderKey
GOALIE_PATTERNS = (
    ("name", re.compile(r"vartsargs|vards|speletajs|name")),
    ("team", re.compile(r"komanda|team")),
    ("games", re.compile(r"^(?:.*speles.*|g|sp)$")),
    ("saves", re.compile(r"atvairiti|saves")),
    ("save_pct", re.compile(r"atvairito%?|%|proc|procent")),
    ("pen_min", re.compile(r"sodiminutes|sodamin|sodaminutes|sodimin|soda ?min|sodi|min\b|pim")),
    ("shots", re.compile(r"metieni|shots")),
    ("goal_against", re.compile(r"^(?:.*(?:ielaisti|goalsagainst).*|ga)$")),
)
_GOALIE_TO_HEADER = {
    "name": HeaderKey.NAME,
    "team": HeaderKey.TEAM,
    "games": HeaderKey.GAMES,
    "saves": HeaderKey.SAVES,
    "save_pct": HeaderKey.SAVE_PCT,
    "pen_min": HeaderKey.PEN_MIN,
}

_NON_HEADER_CHARS = re.compile(r"[^a-z0-9%]+")
_WS = re.compile(r"\s+")


def normalize_header_text(value: Optional[str]) -> str:
    text = strip_diacritics((value or "").lower())
    return _NON_HEADER_CHARS.sub(" ", text).strip()


def _normalize_for_goalie(value: Optional[str]) -> str:
    return _WS.sub(" ", strip_diacritics((value or "").lower())).strip()


def _matches_keywords(normalized: str, keywords: Sequence[str]) -> bool:
    condensed = normalized.replace(" ", "")
    tokens = normalized.split(" ")
    for keyword in keywords:
        kw = keyword.lower()
        if kw in normalized or kw.replace(" ", "") in condensed:
            return True
        if any(token.startswith(kw) for token in tokens):
            return True
    return False


def resolve_header_key(text: Optional[str]) -> Optional[HeaderKey]:
    normalized = normalize_header_text(text)
    if not normalized:
        return None
    if normalized == "%":
        return HeaderKey.SAVE_PCT

    alias = HEADER_ALIASES.get(normalized)
    if alias:
        return alias

    if "price" in normalized or "cena" in normalized or "value" in normalized:
        if any(token in normalized for token in FINAL_PRICE_TOKENS):
            return HeaderKey.PRICE_FINAL
        if any(token in normalized for token in RAW_PRICE_TOKENS):
            return HeaderKey.PRICE_RAW
        return HeaderKey.PRICE_FINAL if "fantasy" in normalized else HeaderKey.PRICE_RAW

    for key, keywords in KEYWORD_MATCHERS:
        if _matches_keywords(normalized, keywords):
            return key
    return None


def match_goalie_header(text: Optional[str]) -> Optional[str]:
    normalized = _normalize_for_goalie(text)
    if not normalized:
        return None
    for key, pattern in GOALIE_PATTERNS:
        if pattern.search(normalized):
            return key
    return None


def detect_header_key(text: Optional[str]) -> Optional[HeaderKey]:
    """Alias table, then keyword heuristics, then goalie vocabulary."""
    key = resolve_header_key(text)
    if key is not None:
        return key
    return _GOALIE_TO_HEADER.get(match_goalie_header(text) or "")


# ------------------------------ text helpers ------------------------------

def clean_text(value: Any) -> str:
    return _WS.sub(" ", str(value if value is not None else "").replace(" ", " ")).strip()


def parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    normalized = re.sub(r"[^0-9,.\-]", "", str(value)).replace(",", ".", 1)
    if not normalized:
        return None
    try:
        return float(normalized)
    except ValueError:
        return None


def parse_percent(value: Optional[str]) -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    return number if 1 < number <= 100 else number * 100


def resolve_position(value: Optional[str]) -> Optional[str]:
    """V (goalie), A (defender), U (attacker) or None."""
    normalized = normalize_header_text(value)
    if normalized == "v" or normalized.startswith("goal") or normalized.startswith("varts"):
        return "V"
    if normalized in ("a", "d") or normalized.startswith("def") or normalized.startswith("aizs"):
        return "A"
    if (
        normalized == "u"
        or normalized.startswith("att")
        or normalized.startswith("for")
        or normalized.startswith("uzbruc")
    ):
        return "U"
    return None


# ------------------------------ HTML ------------------------------

def load_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def strip_html(value: Any) -> str:
    """Visible text of an HTML fragment (AJAX cells often carry markup)."""
    text = "" if value is None else str(value)
    if "<" not in text:
        return clean_text(text)
    return clean_text(load_html(text).get_text(" "))
