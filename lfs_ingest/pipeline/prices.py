# lfs_ingest/pipeline/prices.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.processors.calendar_processor import season_start_year
from lfs_ingest.processors.pricing import DEFAULT_PRICING, PlayerTotal, PriceResult, PricingConfig, compute_prices
from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)


def season_range(season: Any) -> Tuple[str, str]:
    """[Sep 1 of the start year, Sep 1 of the next year) as ISO timestamps."""
    year = season_start_year(season)
    start = datetime(year, 9, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 9, 1, tzinfo=timezone.utc)
    return start.isoformat(), end.isoformat()


def aggregate_season_points(rows: Iterable[Dict[str, Any]]) -> Dict[Any, Tuple[float, int]]:
    """player_id -> (total fantasy points, games); each (player, match) counts once."""
    seen = set()
    totals: Dict[Any, Tuple[float, int]] = {}
    for row in rows:
        player_id, match_id = row.get("player_id"), row.get("match_id")
        if not player_id or not match_id or (player_id, match_id) in seen:
            continue
        seen.add((player_id, match_id))
        try:
            points = float(row.get("fantasy_points") or 0)
        except (TypeError, ValueError):
            points = 0.0
        total, games = totals.get(player_id, (0.0, 0))
        totals[player_id] = (total + points, games + 1)
    return totals


def compute_and_store_prices(
    season: Optional[str] = None,
    db: Optional[DatabaseClient] = None,
    cfg: PricingConfig = DEFAULT_PRICING,
    tracker: Optional[WarningTracker] = None,
    dry_run: bool = False,
) -> List[PriceResult]:
    db = db or get_db()
    tracker = tracker or WarningTracker()
    season = season or db.fetch_current_season()
    start, end = season_range(season)

    matches = db.fetch_matches_in_range(start, end, status="finished")
    match_ids = [m["id"] for m in matches]
    points_rows = db.fetch_points_for_matches(match_ids) if match_ids else []
    logger.info(f"[prices] season {season}: {len(matches)} finished matches, {len(points_rows)} player_match_points rows")
    totals = aggregate_season_points(points_rows)

    players = db.fetch_players("id,name,position,price_manual")
    logger.info(f"[prices] Loaded {len(players)} players")
    inputs = []
    for p in players:
        if p.get("id") is None:
            continue
        total, games = totals.get(p["id"], (0.0, 0))
        inputs.append(PlayerTotal(
            player_id=p["id"],
            position=p.get("position"),
            total=total,
            games=games,
            price_manual=p.get("price_manual"),
        ))

    results = compute_prices(inputs, cfg, tracker)
    if dry_run:
        logger.info(f"[prices] Dry run: {len(results)} prices computed, nothing written")
        return results

    for res in results:
        db.update_player(res.player_id, res.update_payload())
    logger.info(f"[prices] ✅ Updated prices for {len(results)} players")
    return results
