# lfs_ingest/processors/protocol_processor.py
"""
Parse a floorball.lv match protocol page into goals, penalties, MVP picks
and goalie lines. Pure functions only; player/team resolution happens in
pipeline.match_events.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from lfs_ingest.processors.headers import clean_text, load_html
from lfs_ingest.utils.logger import get_logger
from lfs_ingest.utils.normalizer import normalize_key, normalize_whitespace, player_key, strip_jersey_number

logger = get_logger(__name__)

# event types written to match_events
GOAL = "goal"
MINOR_2 = "minor_2"
DOUBLE_MINOR = "double_minor"
MISCONDUCT_10 = "misconduct_10"
RED_CARD = "red_card"
MVP = "mvp"

OWN_GOAL_PHRASE = "bumbiņa savos vārtos"
GAME_PENALTY_PHRASES = ("spēles sods", "speles sods")
SERVED_BY_RE = re.compile(r"sodu izcieš[:\s]*(?:nr\.?\s*|#)?(\d{1,3})?\s*([^)]+)", re.IGNORECASE)
NON_PLAYER_PHRASES = (
    "aizturēta soda laikā",
    "vienādos nepilnos sastāvos",
)

_PERIOD_RE = re.compile(r"(\d)\.\s*period", re.IGNORECASE)
_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")
_MINUTES_SECONDS_RE = re.compile(r"(\d{1,3}):(\d{2})")
_PENALTY_TYPE_RE = re.compile(r"sods", re.IGNORECASE)
_GOAL_TYPE_RE = re.compile(r"^vārti", re.IGNORECASE)
_ASSIST_RE = re.compile(r"\(([^)]+)\)")

MVP_RE = re.compile(
    r"(\d{1,2}:\d{2})\s+Labākais\s+spēlētājs\s*(?:[^#\d]*(?:#|nr\.?)\s*)?(\d{1,3})?\s*([^\d]{2,80}?)(?=\s+\d{1,2}:\d{2}\s|$)",
    re.IGNORECASE,
)
GOALIE_START_RE = re.compile(r"vārtos\s*\(([^)]*)\)\s*vārtos\s*-\s*#?(\d{1,3})?\s*([^;]+)", re.IGNORECASE)
GOALIE_STAT_RE = re.compile(
    r"vārtsarga stat\.?\s*#?(\d{1,3})?\s*([^-]+?)-\s*vārti:\s*(\d+)\s*;\s*metieni:\s*(\d+)\s*;\s*minūtes:\s*([0-9]{1,3}:[0-9]{2})",
    re.IGNORECASE,
)


@dataclass
class ParsedGoal:
    time_text: Optional[str]
    scorer_raw: Optional[str]
    scorer_key: Optional[str]
    assist_raw: Optional[str]
    assist_key: Optional[str]
    team_side: Optional[str]
    period: Optional[int]
    score_text: Optional[str]
    type_text: Optional[str]
    details_text: str

    @property
    def is_own_goal(self) -> bool:
        return OWN_GOAL_PHRASE in (self.details_text or "").lower()


@dataclass
class PenaltyDetail:
    player_part: Optional[str]
    minutes: Optional[int]
    reason: Optional[str]
    served_by_number: Optional[str] = None
    served_by_name: Optional[str] = None


@dataclass
class ParsedPenalty:
    time_text: Optional[str]
    player_part: Optional[str]
    player_key: Optional[str]
    minutes: Optional[int]
    team_side: Optional[str]
    period: Optional[int]
    details_text: str
    reason: Optional[str] = None
    served_by_number: Optional[str] = None
    served_by_name: Optional[str] = None

    @property
    def looks_like_reason(self) -> bool:
        lowered = (self.player_part or "").lower()
        return "min" in lowered or ";" in lowered


@dataclass
class ParsedMvp:
    time_text: Optional[str]
    jersey_number: Optional[str]
    name: str
    raw: str


@dataclass
class GoalieStart:
    raw: str
    team_label: Optional[str]
    jersey_number: Optional[str]
    name: str


@dataclass
class GoalieLine:
    raw: str
    jersey_number: Optional[str]
    name: str
    goals_against: Optional[int]
    shots: Optional[int]
    minutes_seconds: Optional[int]

    @property
    def saves(self) -> int:
        return max(0, max(0, self.shots or 0) - max(0, self.goals_against or 0))


@dataclass
class ProtocolParse:
    goals: List[ParsedGoal] = field(default_factory=list)
    penalties: List[ParsedPenalty] = field(default_factory=list)
    mvps: List[ParsedMvp] = field(default_factory=list)
    goalie_starts: List[GoalieStart] = field(default_factory=list)
    goalie_lines: List[GoalieLine] = field(default_factory=list)
    rows_scanned: int = 0


# ------------------------------ small parsers ------------------------------

def parse_time_to_seconds(raw: Optional[str]) -> Optional[int]:
    match = _TIME_RE.search(raw or "")
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def parse_minutes_seconds(raw: Optional[str]) -> Optional[int]:
    match = _MINUTES_SECONDS_RE.search(raw or "")
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def infer_period_from_seconds(ts_seconds: Optional[int]) -> Optional[int]:
    if ts_seconds is None:
        return None
    if ts_seconds <= 20 * 60:
        return 1
    if ts_seconds <= 40 * 60:
        return 2
    if ts_seconds <= 60 * 60:
        return 3
    return 4


def parse_penalty_detail(detail_text: str) -> PenaltyDetail:
    trimmed = normalize_whitespace(detail_text)
    paren = trimmed.find("(")
    if paren == -1:
        player_part = trimmed or None
        inside = ""
    else:
        player_part = trimmed[:paren].strip() or None
        inside_match = _ASSIST_RE.search(trimmed[paren:])
        inside = inside_match.group(1) if inside_match else ""

    if re.search(r"24\s*min", inside, re.IGNORECASE):
        minutes = 24
    elif re.search(r"12\s*min", inside, re.IGNORECASE):
        minutes = 12
    elif re.search(r"2\s*\+\s*2", inside) or re.search(r"4\s*min", inside, re.IGNORECASE):
        minutes = 4
    elif re.search(r"2\s*min", inside, re.IGNORECASE):
        minutes = 2
    else:
        minutes = None

    reason = None
    if ";" in inside:
        tail = ";".join(inside.split(";")[1:]).strip()
        reason = tail or None

    served_number = served_name = None
    served = SERVED_BY_RE.search(trimmed)
    if served:
        served_number = served.group(1).strip() if served.group(1) else None
        served_name = normalize_whitespace(re.sub(r"^#\d+\s*", "", served.group(2) or "")) or None

    return PenaltyDetail(
        player_part=player_part,
        minutes=minutes,
        reason=reason,
        served_by_number=served_number,
        served_by_name=served_name,
    )


def classify_penalty(minutes: Optional[int], details_text: str) -> List[Tuple[str, int]]:
    """Event rows (type, value) for one penalty; empty list when unclassifiable."""
    lowered = (details_text or "").lower()
    if any(phrase in lowered for phrase in GAME_PENALTY_PHRASES) or (minutes is not None and minutes >= 20):
        return [(RED_CARD, minutes or 20)]
    if minutes == 12 and re.search(r"sodu izcieš", details_text or "", re.IGNORECASE):
        return [(MINOR_2, 2), (MISCONDUCT_10, 10)]
    if minutes == 2:
        return [(MINOR_2, 2)]
    if minutes == 4:
        return [(DOUBLE_MINOR, 4)]
    return []


def build_non_player_keys(teams: Iterable[Dict[str, Any]]) -> Set[str]:
    keys: Set[str] = set()
    for team in teams:
        for col in ("name", "code", "short_name"):
            key = normalize_key(team.get(col))
            if key:
                keys.add(key)
    for phrase in NON_PLAYER_PHRASES:
        keys.add(normalize_key(phrase))
    return keys


def is_non_player_assist_text(text: Optional[str], non_player_keys: Set[str]) -> bool:
    key = normalize_key(text)
    if not key:
        return True
    if (text or "").strip().startswith("("):
        return True
    return key in non_player_keys


# ------------------------------ page parsers ------------------------------

def _team_side(css_class: Any) -> Optional[str]:
    if isinstance(css_class, (list, tuple)):
        css_class = " ".join(css_class)
    lowered = (css_class or "").lower()
    if "maj" in lowered:
        return "home"
    if "vie" in lowered:
        return "away"
    return None


def parse_event_rows(soup) -> Tuple[List[ParsedGoal], List[ParsedPenalty], int]:
    goals: List[ParsedGoal] = []
    penalties: List[ParsedPenalty] = []
    rows_scanned = 0
    current_period = 1

    for row in soup.find_all("tr"):
        rows_scanned += 1
        row_text = clean_text(row.get_text(" "))
        period_match = _PERIOD_RE.search(row_text)
        if period_match and period_match.group(1) in ("1", "2", "3"):
            current_period = int(period_match.group(1))

        cells = row.find_all("td")
        if len(cells) != 4:
            continue

        time_text = clean_text(cells[0].get_text(" "))
        type_text = clean_text(cells[1].get_text(" "))
        score_text = clean_text(cells[2].get_text(" "))
        details_text = clean_text(cells[3].get_text(" "))
        side = _team_side(cells[0].get("class"))

        if _PENALTY_TYPE_RE.search(type_text):
            detail = parse_penalty_detail(details_text)
            penalties.append(ParsedPenalty(
                time_text=time_text or None,
                player_part=detail.player_part,
                player_key=player_key(detail.player_part) if detail.player_part else None,
                minutes=detail.minutes,
                team_side=side,
                period=current_period,
                details_text=details_text,
                reason=detail.reason,
                served_by_number=detail.served_by_number,
                served_by_name=detail.served_by_name,
            ))
            continue

        if not _GOAL_TYPE_RE.search(type_text):
            continue

        scorer_raw = details_text.split("(")[0].strip()
        assist_match = _ASSIST_RE.search(details_text)
        assist_raw = assist_match.group(1).strip() if assist_match else ""
        assist_first = re.split(r"[;,]", assist_raw)[0] if assist_raw else ""
        goals.append(ParsedGoal(
            time_text=time_text or None,
            scorer_raw=scorer_raw or None,
            scorer_key=player_key(scorer_raw) if scorer_raw else None,
            assist_raw=assist_raw or None,
            assist_key=player_key(assist_first) if assist_first.strip() else None,
            team_side=side,
            period=current_period,
            score_text=score_text or None,
            type_text=type_text or None,
            details_text=details_text,
        ))

    return goals, penalties, rows_scanned


def parse_mvps(text: str) -> List[ParsedMvp]:
    out = []
    for match in MVP_RE.finditer(text):
        name = normalize_whitespace(match.group(3))
        if not name:
            continue
        out.append(ParsedMvp(
            time_text=match.group(1),
            jersey_number=match.group(2),
            name=name,
            raw=match.group(0),
        ))
    return out


def parse_goalie_starts(text: str) -> List[GoalieStart]:
    out = []
    for match in GOALIE_START_RE.finditer(text):
        name = normalize_whitespace(match.group(3))
        if not name:
            continue
        out.append(GoalieStart(
            raw=match.group(0),
            team_label=normalize_whitespace(match.group(1)) or None,
            jersey_number=match.group(2),
            name=name,
        ))
    return out


def parse_goalie_lines(text: str) -> List[GoalieLine]:
    out = []
    for match in GOALIE_STAT_RE.finditer(text):
        name = normalize_whitespace(match.group(2))
        if not name:
            continue
        out.append(GoalieLine(
            raw=match.group(0),
            jersey_number=match.group(1),
            name=name,
            goals_against=int(match.group(3)),
            shots=int(match.group(4)),
            minutes_seconds=parse_minutes_seconds(match.group(5)),
        ))
    if not out and re.search(r"vārtsarga stat", text, re.IGNORECASE):
        raw_lines = re.findall(r"vārtsarga stat[^;]+", text, re.IGNORECASE)[:5]
        logger.warning(f"[events] RAW_GOALIE_STAT_LINE_PARSE_FAIL lines={raw_lines!r}")
    return out


def parse_protocol(html: str) -> ProtocolParse:
    soup = load_html(html)
    goals, penalties, rows_scanned = parse_event_rows(soup)
    text = clean_text(soup.get_text(" "))
    return ProtocolParse(
        goals=goals,
        penalties=penalties,
        mvps=parse_mvps(text),
        goalie_starts=parse_goalie_starts(text),
        goalie_lines=parse_goalie_lines(text),
        rows_scanned=rows_scanned,
    )


def clean_participant_name(name: Optional[str]) -> str:
    return normalize_whitespace(strip_jersey_number(name))
