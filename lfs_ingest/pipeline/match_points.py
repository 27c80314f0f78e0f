# lfs_ingest/pipeline/match_points.py
from __future__ import annotations

from typing import Any, Dict, Optional

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.processors.points_processor import DEFAULT_RULES, ScoringRules, compute_match_points
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def compute_points_for_match(
    match: Any,
    db: Optional[DatabaseClient] = None,
    rules: ScoringRules = DEFAULT_RULES,
) -> Dict[str, int]:
    """Recompute player_match_points for one match (delete, then insert). `match` is a row or an id."""
    db = db or get_db()
    if not isinstance(match, dict):
        match = db.fetch_match(match)
    match_id = match["id"]

    events = db.fetch_match_events(match_id)
    goalie_stats = db.fetch_goalie_stats(match_id)
    player_ids = set()
    for ev in events:
        player_ids.update(pid for pid in (ev.get("player_id"), ev.get("assist_id")) if pid)
    player_ids.update(g["player_id"] for g in goalie_stats if g.get("player_id"))
    players = {p["id"]: p for p in db.fetch_players_by_ids(player_ids)} if player_ids else {}

    rows, skipped = compute_match_points(match, events, players, goalie_stats, rules)
    inserted = db.replace_match_points(match_id, rows)
    logger.info(
        f"[points] match {match_id}: events={len(events)} goalies={len(goalie_stats)} "
        f"rows={inserted} skipped={skipped}"
    )
    return {"events": len(events), "rows": inserted, "skipped": skipped}


def compute_points_all_finished(
    season: Optional[str] = None,
    db: Optional[DatabaseClient] = None,
    rules: ScoringRules = DEFAULT_RULES,
) -> Dict[str, Any]:
    db = db or get_db()
    season = season or db.fetch_current_season()
    matches = db.fetch_finished_matches(season=season, with_protocol=False)
    logger.info(f"[points] season {season}: {len(matches)} finished matches")
    totals = {"season": season, "matches": len(matches), "rows": 0, "skipped": 0}
    for match in matches:
        counts = compute_points_for_match(match, db, rules)
        totals["rows"] += counts["rows"]
        totals["skipped"] += counts["skipped"]
    logger.info(f"[points] ✅ done: {totals}")
    return totals
