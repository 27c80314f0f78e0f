# lfs_ingest/utils/normalizer.py
"""
Name / team normalization shared by every ingestion job.

All comparisons between scraped free text and stored rows go through the
helpers in this module so that two call sites can never disagree on what a
"normalized" name is.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional, Tuple

from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)

_WS_RE = re.compile(r"\s+")
_JERSEY_RE = re.compile(r"(?:#|nr\.?\s*)\d+\s*", re.IGNORECASE)
_TRAILING_PARENS_RE = re.compile(r"\([^)]*\)\s*$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LETTER_RE = re.compile(r"[^\W\d_]", re.UNICODE)

JUNK_KEYWORDS = (
    "soda laika",
    "nepilnos sastavos",
    "speles beigas",
    "komandu sastavi",
    "kopsavilkums",
)


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_name(value: Optional[str]) -> str:
    """Strip diacritics, collapse whitespace, trim. Idempotent."""
    if not value:
        return ""
    text = strip_diacritics(value.replace(" ", " ").strip())
    return _WS_RE.sub(" ", text).strip()


def normalize_key(value: Optional[str]) -> str:
    """Lowercase comparison key: letters and digits separated by single spaces."""
    return _NON_ALNUM_RE.sub(" ", normalize_name(value).lower()).strip()


def team_code(name: Optional[str]) -> str:
    """Deterministic 3-letter uppercase code for a team name ('' for empty input)."""
    normalized = normalize_name(name)
    if not normalized:
        return ""
    cleaned = re.sub(r"[^a-z0-9]", "", normalized.lower()).upper()
    if not cleaned:
        return ""
    if len(cleaned) >= 3:
        return cleaned[:3]
    initials = "".join(
        re.sub(r"[^a-z0-9]", "", word.lower())[:1]
        for word in normalized.split(" ")
    ).upper()
    return initials[:3].ljust(3, "X")


def unique_team_code(name: str, taken: Iterable[str]) -> str:
    """team_code(name), suffixed with a digit when it collides with `taken`."""
    used = {str(c).upper() for c in taken if c}
    code = team_code(name) or "TMX"
    if code not in used:
        return code
    for i in range(2, 100):
        candidate = f"{code[:2]}{i}" if i < 10 else f"{code[:1]}{i}"
        if candidate not in used:
            return candidate
    return code


# ------------------------------ player names ------------------------------

def strip_jersey_number(value: Optional[str]) -> str:
    return _JERSEY_RE.sub("", normalize_whitespace(value)).strip()


def strip_trailing_parentheses(value: Optional[str]) -> str:
    if not value:
        return ""
    return _TRAILING_PARENS_RE.sub("", value).strip()


def normalize_whitespace(value: Optional[str]) -> str:
    return _WS_RE.sub(" ", (value or "").replace(" ", " ")).strip()


def player_key(name: Optional[str]) -> str:
    """Comparison key for a player: no trailing notes, no jersey, no diacritics, lowercase."""
    base = strip_jersey_number(strip_trailing_parentheses(name))
    return normalize_name(base).lower()


def has_letter(value: str) -> bool:
    return bool(_LETTER_RE.search(value or ""))


def is_junk_name(name: Optional[str]) -> bool:
    """Rows scraped from summary/footer lines rather than real players."""
    text = normalize_whitespace(name)
    if not text:
        return True
    if not has_letter(text):
        return True
    key = normalize_key(text)
    if not key:
        return True
    return any(keyword in key for keyword in JUNK_KEYWORDS)


def is_probable_player_name(name: Optional[str]) -> bool:
    text = normalize_whitespace(name)
    if not text or len(text) > 80:
        return False
    if text.startswith("(") or text.endswith("."):
        return False
    if " " not in text or not has_letter(text):
        return False
    return not is_junk_name(text)


# ------------------------------ team resolution ------------------------------

class TeamResolver:
    """Map scraped team labels to stored team ids.

    Exact normalized match on code, then name/short name. Otherwise a
    containment match in either direction, where the longest matching key
    wins; two different teams tying on the longest key is ambiguous and
    resolves to None.
    """

    def __init__(self, teams: Iterable[Dict[str, Any]], tracker: Optional[WarningTracker] = None):
        self.teams: List[Dict[str, Any]] = [t for t in teams if t.get("id") is not None]
        self.tracker = tracker or WarningTracker()
        self._by_code: Dict[str, Any] = {}
        self._by_name: Dict[str, Any] = {}
        self._keys: List[Tuple[str, Any]] = []
        for team in self.teams:
            code_key = normalize_key(team.get("code"))
            if code_key:
                self._by_code.setdefault(code_key, team["id"])
            for col in ("name", "short_name"):
                name_key = normalize_key(team.get(col))
                if name_key:
                    self._by_name.setdefault(name_key, team["id"])
                    self._keys.append((name_key, team["id"]))

    def by_id(self, team_id: Any) -> Optional[Dict[str, Any]]:
        for team in self.teams:
            if team["id"] == team_id:
                return team
        return None

    def resolve(self, label: Optional[str]) -> Optional[Any]:
        key = normalize_key(label)
        if not key:
            return None
        if key in self._by_code:
            return self._by_code[key]
        if key in self._by_name:
            return self._by_name[key]

        best_len = 0
        best: set = set()
        for name_key, team_id in self._keys:
            if len(name_key) < 3:
                continue
            if name_key in key or key in name_key:
                size = min(len(name_key), len(key))
                if size > best_len:
                    best_len, best = size, {team_id}
                elif size == best_len:
                    best.add(team_id)
        if len(best) == 1:
            return next(iter(best))
        if len(best) > 1:
            self.tracker.warn_once(
                logger, "AMBIGUOUS_TEAM", key, label=label, candidates=sorted(str(b) for b in best)
            )
        return None

    def suggestions(self, label: Optional[str], limit: int = 5) -> List[str]:
        key = normalize_key(label)
        words = set(key.split())
        scored = []
        for name_key, _ in self._keys:
            overlap = len(words & set(name_key.split()))
            if overlap:
                scored.append((-overlap, name_key))
        return [name for _, name in sorted(scored)[:limit]]
