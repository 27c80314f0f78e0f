# lfs_ingest/processors/stats_processor.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional

from lfs_ingest.processors.ajax_rows import (
    extract_data_array,
    infer_header_texts,
    row_to_record,
    value_to_string,
)
from lfs_ingest.processors.headers import (
    HeaderKey,
    clean_text,
    detect_header_key,
    parse_number,
    parse_percent,
    resolve_position,
    strip_html,
)
from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)


@dataclass
class PlayerStatsRow:
    name: str
    team: str
    position: Optional[str]
    games: Optional[float] = None
    goals: Optional[float] = None
    assists: Optional[float] = None
    points: Optional[float] = None
    pen_min: Optional[float] = None
    shots: Optional[float] = None
    saves: Optional[float] = None
    save_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


SKATER_KEYS = {
    HeaderKey.NAME: ("name", "player", "piel", "vārds", "vards", "speletajs"),
    HeaderKey.TEAM: ("team", "komanda", "klubs"),
    HeaderKey.POSITION: ("position", "pozicija", "poz"),
    HeaderKey.GAMES: ("games", "gp", "speles"),
    HeaderKey.GOALS: ("goals", "g", "varti"),
    HeaderKey.ASSISTS: ("assists", "a", "piespeles"),
    HeaderKey.POINTS: ("points", "punkti", "pt"),
    HeaderKey.PEN_MIN: ("pen_min", "pim", "sodi"),
}

GOALIE_KEYS = {
    HeaderKey.NAME: ("name", "player", "vartsargs", "vards", "speletajs"),
    HeaderKey.TEAM: ("team", "komanda", "klubs"),
    HeaderKey.GAMES: ("games", "gp", "speles", "g"),
    HeaderKey.SAVES: ("saves", "atvairiti", "atvairijumi"),
    HeaderKey.SAVE_PCT: ("save_pct", "save%", "procenti", "%"),
    HeaderKey.PEN_MIN: ("pen_min", "pim", "sodi"),
}
GOALIE_SHOT_KEYS = ("shots", "metieni")


def parse_stat_number(value: Any) -> Optional[float]:
    """'12/3' style cells carry the primary figure before the slash."""
    text = strip_html(value_to_string(value))
    if not text:
        return None
    return parse_number(text.split("/")[0].strip())


def infer_position_from_label(value: str) -> str:
    lowered = (value or "").strip().lower()
    if lowered.startswith("v"):
        return "V"
    if lowered.startswith("a"):
        return "A"
    return "U"


def _cell(row: List[Any], index: int) -> str:
    return value_to_string(row[index]) if index < len(row) else ""


def _first_value(record: Dict[str, Any], key: HeaderKey, keys: Dict[HeaderKey, Iterable[str]]) -> str:
    for literal in keys.get(key, ()):
        if literal in record and record[literal] is not None:
            return value_to_string(record[literal])
    # headers nobody listed explicitly: fall back to fuzzy header detection
    for raw_key, value in record.items():
        if value is None:
            continue
        if detect_header_key(str(raw_key)) == key:
            return value_to_string(value)
    return ""


# ------------------------------ skaters ------------------------------

def map_record_to_skater(record: Dict[str, Any]) -> Optional[PlayerStatsRow]:
    name = strip_html(_first_value(record, HeaderKey.NAME, SKATER_KEYS))
    team = strip_html(_first_value(record, HeaderKey.TEAM, SKATER_KEYS))
    if not name or not team:
        return None
    pos_value = strip_html(_first_value(record, HeaderKey.POSITION, SKATER_KEYS))
    position = resolve_position(pos_value) or infer_position_from_label(pos_value)
    return PlayerStatsRow(
        name=name,
        team=team,
        position=position,
        games=parse_stat_number(_first_value(record, HeaderKey.GAMES, SKATER_KEYS)),
        goals=parse_stat_number(_first_value(record, HeaderKey.GOALS, SKATER_KEYS)),
        assists=parse_stat_number(_first_value(record, HeaderKey.ASSISTS, SKATER_KEYS)),
        points=parse_stat_number(_first_value(record, HeaderKey.POINTS, SKATER_KEYS)),
        pen_min=parse_stat_number(_first_value(record, HeaderKey.PEN_MIN, SKATER_KEYS)),
    )


def map_array_to_skater(row: Any) -> Optional[PlayerStatsRow]:
    if not isinstance(row, list) or len(row) < 3:
        return None
    name = strip_html(_cell(row, 1))
    team = strip_html(_cell(row, 2))
    if not name or not team:
        return None
    pos_value = strip_html(_cell(row, 3))
    return PlayerStatsRow(
        name=name,
        team=team,
        position=resolve_position(pos_value) or infer_position_from_label(pos_value),
        games=parse_stat_number(_cell(row, 4)),
        goals=parse_stat_number(_cell(row, 5)),
        assists=parse_stat_number(_cell(row, 6)),
        points=parse_stat_number(_cell(row, 7)),
        pen_min=parse_stat_number(_cell(row, 8)),
    )


# ------------------------------ goalies ------------------------------

def map_record_to_goalie(record: Dict[str, Any]) -> Optional[PlayerStatsRow]:
    name = strip_html(_first_value(record, HeaderKey.NAME, GOALIE_KEYS))
    team = strip_html(_first_value(record, HeaderKey.TEAM, GOALIE_KEYS))
    if not name or not team:
        return None
    shots = ""
    for literal in GOALIE_SHOT_KEYS:
        if record.get(literal) is not None:
            shots = value_to_string(record[literal])
            break
    return PlayerStatsRow(
        name=name,
        team=team,
        position="V",
        games=parse_stat_number(_first_value(record, HeaderKey.GAMES, GOALIE_KEYS)),
        pen_min=parse_stat_number(_first_value(record, HeaderKey.PEN_MIN, GOALIE_KEYS)),
        shots=parse_stat_number(shots),
        saves=parse_stat_number(_first_value(record, HeaderKey.SAVES, GOALIE_KEYS)),
        save_pct=parse_percent(strip_html(_first_value(record, HeaderKey.SAVE_PCT, GOALIE_KEYS))),
    )


def map_array_to_goalie(row: Any) -> Optional[PlayerStatsRow]:
    if not isinstance(row, list) or len(row) < 3:
        return None
    name = strip_html(_cell(row, 1))
    team = strip_html(_cell(row, 2))
    if not name or not team:
        return None
    return PlayerStatsRow(
        name=name,
        team=team,
        position="V",
        games=parse_stat_number(_cell(row, 3)),
        assists=parse_stat_number(_cell(row, 4)),
        shots=parse_stat_number(_cell(row, 6)),
        saves=parse_stat_number(_cell(row, 8)),
        save_pct=parse_percent(strip_html(_cell(row, 9))),
        pen_min=parse_stat_number(_cell(row, 10)),
    )


def _map_rows(payload: Any, record_mapper, array_mapper, label: str,
              tracker: Optional[WarningTracker] = None) -> List[PlayerStatsRow]:
    rows = extract_data_array(payload)
    if not rows:
        logger.warning(f"[stats] {label}: no data rows in payload")
        return []
    headers = infer_header_texts(rows[0])
    tracker = tracker or WarningTracker()
    out: List[PlayerStatsRow] = []
    for row in rows:
        mapped = None
        record = row_to_record(row, headers)
        if record and not isinstance(row, list):
            mapped = record_mapper(record)
        if mapped is None:
            mapped = array_mapper(row)
        if mapped is None:
            tracker.warn_once(logger, "UNMAPPED_STATS_ROW", label, sample=str(row)[:120])
            continue
        out.append(mapped)
    logger.info(f"[stats] {label}: mapped {len(out)}/{len(rows)} rows")
    return out


def map_skater_rows(payload: Any, tracker: Optional[WarningTracker] = None) -> List[PlayerStatsRow]:
    return _map_rows(payload, map_record_to_skater, map_array_to_skater, "skaters", tracker)


def map_goalie_rows(payload: Any, tracker: Optional[WarningTracker] = None) -> List[PlayerStatsRow]:
    return _map_rows(payload, map_record_to_goalie, map_array_to_goalie, "goalies", tracker)


# ------------------------------ staging / players ------------------------------

def _as_int(value: Optional[float]) -> Optional[int]:
    return None if value is None else int(round(value))


def to_staging_row(row: PlayerStatsRow) -> Dict[str, Any]:
    return {
        "name": clean_text(row.name),
        "team": clean_text(row.team),
        "position": row.position,
        "games": _as_int(row.games),
        "goals": _as_int(row.goals),
        "assists": _as_int(row.assists),
        "points": _as_int(row.points),
        "saves": _as_int(row.saves),
        "save_pct": row.save_pct,
        "penalty_min": _as_int(row.pen_min),
    }


def normalize_position(value: Optional[str]) -> str:
    """Stored position code; anything unrecognised becomes U."""
    code = (value or "").strip().upper()
    if code in ("V", "A", "U"):
        return code
    return resolve_position(value) or "U"


def to_player_row(staging: Dict[str, Any], team_id: Any) -> Dict[str, Any]:
    goals = staging.get("goals") or 0
    assists = staging.get("assists") or 0
    points = staging.get("points")
    return {
        "name": clean_text(staging.get("name")),
        "team_id": team_id,
        "position": normalize_position(staging.get("position")),
        "games": staging.get("games"),
        "goals": staging.get("goals"),
        "assists": staging.get("assists"),
        "points": points if points is not None else goals + assists,
        "saves": staging.get("saves"),
        "save_pct": staging.get("save_pct"),
        "penalty_min": staging.get("penalty_min"),
    }
