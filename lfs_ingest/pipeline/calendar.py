# lfs_ingest/pipeline/calendar.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lfs_ingest.core.config import config
from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.core.errors import UpstreamFormatError
from lfs_ingest.processors.calendar_processor import (
    STATUS_FINISHED,
    STATUS_SCHEDULED,
    CalendarMatch,
    code_for_external_id,
    dedupe_calendar_matches,
    fallback_external_id,
    parse_calendar_rows,
    season_start_year,
)
from lfs_ingest.scrapers.calendar_scraper import CalendarScraper
from lfs_ingest.utils.logger import get_logger, WarningTracker
from lfs_ingest.utils.normalizer import TeamResolver

logger = get_logger(__name__)


@dataclass
class CalendarResult:
    rows_fetched: int = 0
    parsed: int = 0
    upserted: int = 0
    skipped: int = 0
    finished: int = 0
    scheduled: int = 0
    without_protocol: int = 0
    months_ok: int = 0
    months_failed: int = 0
    unmapped_teams: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if k != "unmapped_teams"}


def build_match_rows(
    matches: List[CalendarMatch],
    season: str,
    league: str,
    resolver: TeamResolver,
    season_code: str = config.CALENDAR_SEASON_CODE,
    tracker: Optional[WarningTracker] = None,
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Resolve both sides of every match and build `matches` rows keyed by external_id."""
    tracker = tracker or WarningTracker()
    rows: Dict[str, Dict[str, Any]] = {}
    unmapped: List[str] = []
    for match in matches:
        home_id = resolver.resolve(match.home_name)
        away_id = resolver.resolve(match.away_name)
        if home_id is None or away_id is None:
            for name, team_id in ((match.home_name, home_id), (match.away_name, away_id)):
                if team_id is None and name not in unmapped:
                    unmapped.append(name)
                    tracker.warn_once(
                        logger, "UNMAPPED_TEAM", name,
                        name=name, suggestions=resolver.suggestions(name),
                    )
            continue

        external_id = match.protocol_id or fallback_external_id(
            league,
            season_code,
            match,
            code_for_external_id(resolver.by_id(home_id) or {}),
            code_for_external_id(resolver.by_id(away_id) or {}),
        )
        rows[external_id] = {
            "external_id": external_id,
            "date": match.date.isoformat(),
            "season": season,
            "home_team": home_id,
            "away_team": away_id,
            "venue": match.venue,
            "status": match.status,
            "home_score": match.home_score,
            "away_score": match.away_score,
        }
    return list(rows.values()), unmapped


def ingest_calendar(
    season: str = config.DEFAULT_SEASON,
    league: str = config.DEFAULT_LEAGUE,
    *,
    scraper: Optional[CalendarScraper] = None,
    db: Optional[DatabaseClient] = None,
    tracker: Optional[WarningTracker] = None,
) -> CalendarResult:
    scraper = scraper or CalendarScraper()
    db = db or get_db()
    tracker = tracker or WarningTracker()
    result = CalendarResult()

    fetched = scraper.scrape(season, league)
    result.rows_fetched = len(fetched.rows)
    result.months_ok = len(fetched.months_ok)
    result.months_failed = len(fetched.months_failed)
    if fetched.all_failed:
        raise UpstreamFormatError(
            f"all calendar months failed ({', '.join(fetched.months_failed)}); upstream blocked or changed"
        )

    matches = dedupe_calendar_matches(parse_calendar_rows(fetched.rows, season_start_year(season)), season)
    result.parsed = len(matches)
    result.finished = sum(1 for m in matches if m.status == STATUS_FINISHED)
    result.scheduled = sum(1 for m in matches if m.status == STATUS_SCHEDULED)
    result.without_protocol = sum(1 for m in matches if not m.protocol_id)
    if not matches:
        logger.warning("[calendar] No calendar rows parsed")
        return result

    teams = db.fetch_teams()
    logger.info(f"[calendar] Loaded {len(teams)} teams for mapping")
    resolver = TeamResolver(teams, tracker)
    rows, unmapped = build_match_rows(matches, season, league, resolver, scraper.season_code, tracker)
    result.unmapped_teams = unmapped
    result.skipped = len(matches) - len(rows)
    if unmapped:
        logger.warning(f"[calendar] Unmapped teams: {', '.join(unmapped)}")

    if rows:
        ok, _ = db.upsert_matches(rows)
        result.upserted = ok

    logger.info(
        f"[calendar] Summary: rows={result.rows_fetched} parsed={result.parsed} upserted={result.upserted} "
        f"skipped={result.skipped} finished={result.finished} scheduled={result.scheduled} "
        f"withoutProtocol={result.without_protocol}"
    )
    return result
