# lfs_ingest/pipeline/sync_players.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.processors.headers import clean_text
from lfs_ingest.processors.stats_processor import to_player_row
from lfs_ingest.utils.logger import get_logger, WarningTracker
from lfs_ingest.utils.normalizer import (
    TeamResolver,
    is_junk_name,
    normalize_key,
    player_key,
    unique_team_code,
)

logger = get_logger(__name__)


def _games(row: Dict[str, Any]) -> int:
    try:
        return int(row.get("games") or 0)
    except (TypeError, ValueError):
        return 0


def ensure_teams(db: DatabaseClient, staging: List[Dict[str, Any]], tracker: WarningTracker) -> TeamResolver:
    """Insert teams named in staging that are not known yet; return a resolver over all teams."""
    teams = db.fetch_teams()
    resolver = TeamResolver(teams, tracker)
    taken = [t.get("code") for t in teams]

    missing: Dict[str, str] = {}
    for row in staging:
        name = clean_text(row.get("team"))
        key = normalize_key(name)
        if not key or key in missing or resolver.resolve(name) is not None:
            continue
        missing[key] = name

    if not missing:
        logger.info(f"[sync] Found {len(teams)} existing teams, nothing to insert")
        return resolver

    to_insert = []
    for name in missing.values():
        code = unique_team_code(name, taken)
        taken.append(code)
        to_insert.append({"code": code, "name": name, "short_name": name})
    logger.info(f"[sync] Found {len(teams)} existing teams, inserting {len(to_insert)} new teams: "
                f"{[(t['code'], t['name']) for t in to_insert]}")
    db.insert_teams(to_insert)
    return TeamResolver(db.fetch_teams(), tracker)


def build_player_rows(
    staging: List[Dict[str, Any]],
    resolver: TeamResolver,
    manual_prices: Optional[Dict[Tuple[Any, str], Any]] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    manual_prices = manual_prices or {}
    stats = {"junk": 0, "no_games": 0, "unresolved_team": 0, "duplicates": 0, "manual_kept": 0}
    rows: Dict[Tuple[Any, str], Dict[str, Any]] = {}
    for st in staging:
        name = clean_text(st.get("name"))
        if is_junk_name(name):
            stats["junk"] += 1
            continue
        if _games(st) <= 0:
            stats["no_games"] += 1
            continue
        team_id = resolver.resolve(st.get("team"))
        if team_id is None:
            stats["unresolved_team"] += 1
        row = to_player_row(st, team_id)
        key = (team_id, player_key(name))
        if key in rows:
            # same player in skater and goalie tables: keep the row with more games
            stats["duplicates"] += 1
            if _games(rows[key]) >= _games(row):
                continue
        manual = manual_prices.get(key)
        if manual is not None:
            row["price_manual"] = manual
            stats["manual_kept"] += 1
        row["points_total"] = row.get("points") or 0
        rows[key] = row
    return list(rows.values()), stats


def sync_staging_to_players(db: Optional[DatabaseClient] = None, tracker: Optional[WarningTracker] = None) -> Dict[str, Any]:
    """Full replace of `players` from players_stats_staging.

    Delete-all then insert is not atomic: a failure in between leaves
    `players` empty until the sync is re-run.
    """
    db = db or get_db()
    tracker = tracker or WarningTracker()
    logger.info("[sync] Starting sync from players_stats_staging to players…")
    staging = db.fetch_staging()
    logger.info(f"[sync] Loaded {len(staging)} rows from players_stats_staging")
    if not staging:
        logger.warning("[sync] No staging rows; aborting sync.")
        return {"staged": 0, "inserted": 0}

    resolver = ensure_teams(db, staging, tracker)

    manual_prices: Dict[Tuple[Any, str], Any] = {}
    for p in db.fetch_players("id,name,team_id,price_manual"):
        if p.get("price_manual") is not None:
            manual_prices[(p.get("team_id"), player_key(p.get("name")))] = p["price_manual"]

    rows, stats = build_player_rows(staging, resolver, manual_prices)
    logger.info(f"[sync] Prepared {len(rows)} players ({stats})")
    inserted = db.replace_players(rows)
    logger.info(f"[sync] ✅ Replaced players: {inserted} rows")
    return {"staged": len(staging), "inserted": inserted, **stats}
