# lfs_ingest/pipeline/cleanup.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.utils.logger import get_logger
from lfs_ingest.utils.normalizer import is_junk_name

logger = get_logger(__name__)

LOG_PREFIX = "[cleanup:junk-players]"


def find_junk_players(players: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Recently created players without games or team whose name is not a real name."""
    return [
        p for p in players
        if (p.get("games") is None or p.get("team_id") is None) and is_junk_name(p.get("name"))
    ]


def cleanup_junk_players(
    db: Optional[DatabaseClient] = None,
    days: int = 30,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    db = db or get_db()
    since = ((now or datetime.now(timezone.utc)) - timedelta(days=days)).isoformat()
    logger.info(f"{LOG_PREFIX} Loading candidate junk players created since {since}...")
    junk = find_junk_players(db.fetch_players_created_since(since))
    summary = {"candidates": len(junk), "deleted": 0, "dry_run": dry_run}
    if not junk:
        logger.info(f"{LOG_PREFIX} No junk players found. Nothing to do.")
        return summary

    sample = [{"id": p["id"], "name": p.get("name"), "team_id": p.get("team_id")} for p in junk[:10]]
    logger.info(f"{LOG_PREFIX} Junk players detected count={len(junk)} sample={sample}")
    if dry_run:
        logger.info(f"{LOG_PREFIX} Dry run: nothing deleted")
        return summary

    ids = [p["id"] for p in junk]
    logger.info(f"{LOG_PREFIX} Clearing assist references...")
    db.null_assist_refs(ids)
    logger.info(f"{LOG_PREFIX} Deleting events of junk players...")
    db.delete_events_for_players(ids)
    summary["deleted"] = db.delete_players(ids)
    logger.info(f"{LOG_PREFIX} Players deleted: {summary['deleted']}")
    return summary
