# lfs_ingest/processors/calendar_processor.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from lfs_ingest.core.config import config
from lfs_ingest.processors.ajax_rows import value_to_string
from lfs_ingest.processors.headers import load_html, strip_html
from lfs_ingest.utils.logger import get_logger
from lfs_ingest.utils.normalizer import normalize_key

logger = get_logger(__name__)

_DATE_RE = re.compile(r"(\d{1,2})\.(\d{1,2})(?:\.(\d{2,4}))?")
_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")
_SCORE_RE = re.compile(r"(\d+)\s*[:\-]\s*(\d+)")

STATUS_SCHEDULED = "scheduled"
STATUS_FINISHED = "finished"


@dataclass
class CalendarMatch:
    date: datetime
    home_name: str
    away_name: str
    venue: Optional[str]
    protocol_id: Optional[str]
    result_text: Optional[str]
    status: str
    home_score: Optional[int]
    away_score: Optional[int]

    @property
    def day(self) -> str:
        return self.date.strftime("%Y-%m-%d")


def season_start_year(season: Any) -> int:
    """'2025', '2025-26' and '2025/2026' all start in 2025."""
    match = re.match(r"\s*(\d{4})", str(season or ""))
    if not match:
        raise ValueError(f"Unrecognised season: {season!r}")
    return int(match.group(1))


def parse_date_time(raw_date: Optional[str], raw_time: Optional[str], season_year: int) -> Optional[datetime]:
    date_match = _DATE_RE.search(raw_date or "")
    if not date_match:
        return None
    day = int(date_match.group(1))
    month = int(date_match.group(2))
    if date_match.group(3):
        year = int(date_match.group(3))
        if year < 100:
            year += 2000
    else:
        # season runs autumn -> spring
        year = season_year if month >= 8 else season_year + 1

    time_match = _TIME_RE.search(raw_time or "") or _TIME_RE.search(raw_date or "")
    hour = int(time_match.group(1)) if time_match else 0
    minute = int(time_match.group(2)) if time_match else 0
    try:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_score(raw: Optional[str]) -> Optional[Tuple[int, int]]:
    if not raw:
        return None
    match = _SCORE_RE.search(re.sub(r"\s+", "", raw))
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def extract_protocol_id(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    path = urlparse(urljoin(config.LFS_BASE_URL + "/", href)).path
    if "/proto/" not in path:
        return None
    segments = [s for s in path.split("/proto/", 1)[1].split("/") if s]
    return segments[-1] if segments else None


def parse_calendar_row(row: Any, season_year: int) -> Optional[CalendarMatch]:
    """One AJAX row: [date, time, home, result, away, venue]."""
    if not isinstance(row, (list, tuple)) or len(row) < 6:
        return None
    date_cell, time_cell, home_cell, result_cell, away_cell, venue_cell = (
        value_to_string(c) for c in row[:6]
    )
    date_text = strip_html(date_cell)
    time_text = strip_html(time_cell)
    parsed = parse_date_time(date_text, time_text, season_year)
    if parsed is None:
        logger.warning(f"[calendar] Skipping row with unparseable date/time: {list(row)[:6]}")
        return None

    link = load_html(result_cell).select_one('a[href*="/proto/"]')
    protocol_id = extract_protocol_id(link.get("href") if link else None)
    result_text = strip_html(result_cell) or None
    score = parse_score(result_text)
    status = STATUS_FINISHED if (score or protocol_id) else STATUS_SCHEDULED

    return CalendarMatch(
        date=parsed,
        home_name=strip_html(home_cell),
        away_name=strip_html(away_cell),
        venue=strip_html(venue_cell) or None,
        protocol_id=protocol_id,
        result_text=result_text,
        status=status,
        home_score=score[0] if score else None,
        away_score=score[1] if score else None,
    )


def parse_calendar_rows(rows: List[Any], season_year: int) -> List[CalendarMatch]:
    out = []
    for row in rows:
        parsed = parse_calendar_row(row, season_year)
        if parsed is not None:
            out.append(parsed)
    return out


def _match_identity(match: CalendarMatch, season: str) -> Tuple[str, ...]:
    if match.protocol_id:
        return ("proto", match.protocol_id)
    return ("composite", str(season), match.day, normalize_key(match.home_name), normalize_key(match.away_name))


def dedupe_calendar_matches(matches: List[CalendarMatch], season: str) -> List[CalendarMatch]:
    """Keep one row per protocol id (or season/date/teams); later pages win."""
    by_key: Dict[Tuple[str, ...], CalendarMatch] = {}
    for match in matches:
        by_key[_match_identity(match, season)] = match
    out = list(by_key.values())
    if len(out) != len(matches):
        logger.info(f"[calendar] Dedupe: {len(matches)} -> {len(out)} (-{len(matches) - len(out)})")
    return out


def code_for_external_id(team: Dict[str, Any]) -> str:
    code = normalize_key(team.get("code")) or normalize_key(team.get("name"))
    return code.replace(" ", "") or "unknown"


def fallback_external_id(league: str, season_code: str, match: CalendarMatch, home_code: str, away_code: str) -> str:
    return f"{league}:{season_code}:{match.day}:{home_code}:{away_code}"
