# lfs_ingest/pipeline/seed_stats.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.processors.stats_processor import PlayerStatsRow, to_staging_row
from lfs_ingest.scrapers.base_scraper import BaseScraper
from lfs_ingest.scrapers.stats_scraper import GoalieStatsScraper, SkaterStatsScraper
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def _scrape_role(scraper: BaseScraper, label: str) -> List[PlayerStatsRow]:
    logger.info(f"[seed] Fetching {label} stats via AJAX…")
    try:
        rows = scraper.scrape()
    except (FetchError, UpstreamFormatError, ValueError) as e:
        logger.warning(f"[seed] {label} AJAX fetch failed; continuing without {label}: {e}")
        return []
    if not rows:
        logger.warning(f"[seed] {label} endpoint returned no rows.")
    return rows


def seed_from_stats(
    db: Optional[DatabaseClient] = None,
    skaters: Optional[BaseScraper] = None,
    goalies: Optional[BaseScraper] = None,
) -> Dict[str, Any]:
    """Scrape skater + goalie season tables into players_stats_staging (clear, then insert)."""
    db = db or get_db()
    skater_rows = _scrape_role(skaters or SkaterStatsScraper(), "skater")
    goalie_rows = _scrape_role(goalies or GoalieStatsScraper(), "goalie")

    staging_rows = [to_staging_row(r) for r in skater_rows + goalie_rows]
    summary = {"skaters": len(skater_rows), "goalies": len(goalie_rows), "inserted": 0}

    db.clear_staging()
    if not staging_rows:
        logger.warning("[seed] No player rows scraped; cleared players_stats_staging and skipped insert.")
        return summary

    logger.info(f"[seed] Prepared {len(staging_rows)} rows for players_stats_staging")
    summary["inserted"] = db.insert_staging(staging_rows)
    logger.info(f"[seed] Inserted {summary['inserted']} rows into players_stats_staging")
    return summary
