# lfs_ingest/pipeline/orchestrator.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from lfs_ingest.core.config import config
from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.core.http import HttpClient
from lfs_ingest.pipeline.calendar import ingest_calendar
from lfs_ingest.pipeline.match_events import MatchEventIngestor
from lfs_ingest.pipeline.match_points import compute_points_for_match
from lfs_ingest.scrapers.calendar_scraper import CalendarScraper
from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)

RECENT_DAYS = 7
FAIL_RATIO_LIMIT = 0.2
MODES = ("recent", "missing", "suspicious", "backfill")


@dataclass
class Selection:
    recent: set = field(default_factory=set)
    missing_events: set = field(default_factory=set)
    missing_goalies: set = field(default_factory=set)
    suspicious: set = field(default_factory=set)
    selected: List[Dict[str, Any]] = field(default_factory=list)

    def breakdown(self) -> Dict[str, int]:
        ids = {m["id"] for m in self.selected}
        return {
            "selected": len(self.selected),
            "recent": len(ids & self.recent),
            "missing_events": len(ids & self.missing_events),
            "missing_goalies": len(ids & self.missing_goalies),
            "suspicious": len(ids & self.suspicious),
        }


@dataclass
class RunResult:
    mode: str
    season: str
    soft_skipped: bool = False
    calendar: Dict[str, Any] = field(default_factory=dict)
    total_finished: int = 0
    considered: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    events_rows: int = 0
    goalie_rows: int = 0
    points_rows: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def fail_ratio(self) -> float:
        return self.failed / max(1, self.considered)

    @property
    def ok(self) -> bool:
        return self.fail_ratio < FAIL_RATIO_LIMIT


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _score(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def select_matches(
    matches: List[Dict[str, Any]],
    events: List[Dict[str, Any]],
    goalie_rows: List[Dict[str, Any]],
    mode: str = "recent",
    days: int = RECENT_DAYS,
    now: Optional[datetime] = None,
) -> Selection:
    """Finished matches that need (re-)ingestion: recent, without events/goalies, or short on goals."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    event_counts = Counter(e.get("match_id") for e in events)
    goal_counts = Counter(e.get("match_id") for e in events if e.get("event_type") == "goal")
    goalie_counts = Counter(g.get("match_id") for g in goalie_rows)

    sel = Selection()
    for m in matches:
        mid = m["id"]
        played = _parse_date(m.get("date"))
        if played is not None and played >= cutoff:
            sel.recent.add(mid)
        if event_counts[mid] == 0:
            sel.missing_events.add(mid)
        if goalie_counts[mid] == 0:
            sel.missing_goalies.add(mid)
        if event_counts[mid] == 0 or goal_counts[mid] < _score(m.get("home_score")) + _score(m.get("away_score")):
            sel.suspicious.add(mid)

    if mode == "backfill":
        sel.selected = list(matches)
        return sel
    if mode == "missing":
        wanted = sel.missing_events | sel.missing_goalies
    elif mode == "suspicious":
        wanted = sel.suspicious
    elif mode == "recent":
        wanted = sel.recent | sel.missing_events | sel.missing_goalies
    else:
        raise ValueError(f"unknown mode {mode!r}, expected one of {MODES}")
    sel.selected = [m for m in matches if m["id"] in wanted]
    return sel


def check_access(http: HttpClient, url: Optional[str] = None) -> bool:
    url = url or f"{config.LFS_BASE_URL}/lv/"
    headers = {"user-agent": config.LFS_USER_AGENT}
    if config.LFS_COOKIE:
        headers["cookie"] = config.LFS_COOKIE
    try:
        result = http.fetch_with_retry(url, headers=headers)
    except FetchError as e:
        logger.error(f"[vv] LFS access check failed url={url}: {e}")
        return False
    logger.info(f"[vv] LFS access check OK status={result.status}")
    return True


def run_vv(
    season: Optional[str] = None,
    league: str = config.DEFAULT_LEAGUE,
    mode: str = "recent",
    days: int = RECENT_DAYS,
    *,
    db: Optional[DatabaseClient] = None,
    http: Optional[HttpClient] = None,
    calendar_scraper: Optional[CalendarScraper] = None,
    ingestor: Optional[MatchEventIngestor] = None,
    ci: bool = config.CI,
    now: Optional[datetime] = None,
) -> RunResult:
    """Calendar -> selection -> events -> points for the recent window (or the whole season)."""
    if mode not in MODES:
        raise ValueError(f"unknown mode {mode!r}, expected one of {MODES}")
    db = db or get_db()
    http = http or HttpClient()
    season = season or config.DEFAULT_SEASON
    tracker = WarningTracker()
    result = RunResult(mode=mode, season=season)
    logger.info(f"[vv] mode={result.mode} season={season} league={league} days={days}")

    if not check_access(http):
        if ci:
            logger.warning("[vv] CI: upstream not reachable, skipping run")
            result.soft_skipped = True
            return result
        raise FetchError("LFS access check failed", url=f"{config.LFS_BASE_URL}/lv/")

    try:
        cal = ingest_calendar(
            season, league,
            scraper=calendar_scraper or CalendarScraper(http),
            db=db,
            tracker=tracker,
        )
        result.calendar = cal.as_dict()
    except UpstreamFormatError as e:
        if ci:
            logger.warning(f"[vv] CI: calendar skipped ({e})")
            result.soft_skipped = True
            return result
        raise

    matches = db.fetch_finished_matches(season=season, with_protocol=False)
    match_ids = [m["id"] for m in matches]
    events = db.fetch_events_for_matches(match_ids) if match_ids else []
    goalies = db.fetch_goalie_stats_for_matches(match_ids) if match_ids else []
    sel = select_matches(matches, events, goalies, mode=mode, days=days, now=now)
    result.total_finished = len(matches)
    result.considered = len(sel.selected)
    logger.info(f"[vv] Selection total_finished={len(matches)} {sel.breakdown()}")

    ingestor = ingestor or MatchEventIngestor(db=db, tracker=tracker)
    for i, match in enumerate(sel.selected, 1):
        logger.info(f"[vv] [{i}/{len(sel.selected)}] match {match['id']} ext={match.get('external_id') or ''}")
        try:
            res = ingestor.ingest_match(match)
        except (FetchError, UpstreamFormatError) as e:
            result.failed += 1
            result.failures.append(f"{match.get('external_id') or match['id']}:{e}")
            logger.error(f"[vv] ❌ match {match['id']} failed: {e}")
            continue
        if res.skipped:
            result.skipped += 1
            logger.warning(f"[vv] skipping match {match['id']} ({match.get('external_id')}) - {res.skip_reason}")
            continue
        result.events_rows += res.events_inserted
        result.goalie_rows += res.goalie_stats_upserted
        result.points_rows += compute_points_for_match(match, db)["rows"]
        result.processed += 1

    logger.info(
        f"[vv] SUMMARY season={season} finished={result.total_finished} considered={result.considered} "
        f"processed={result.processed} skipped={result.skipped} failed={result.failed} "
        f"events={result.events_rows} goalies={result.goalie_rows} points={result.points_rows}"
    )
    if result.failed and result.ok:
        logger.warning(f"[vv] some matches failed but under threshold ({result.failed}/{result.considered})")
    return result
