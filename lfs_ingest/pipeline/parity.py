# lfs_ingest/pipeline/parity.py
from __future__ import annotations

from typing import Optional

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.processors.parity import WORST_N, ParityReport, build_report, map_staging_to_players
from lfs_ingest.utils.logger import get_logger, WarningTracker
from lfs_ingest.utils.normalizer import TeamResolver

logger = get_logger(__name__)


def run_parity_check(
    season: Optional[str] = None,
    db: Optional[DatabaseClient] = None,
    tracker: Optional[WarningTracker] = None,
    worst_n: int = WORST_N,
) -> ParityReport:
    """Staged (scraped) season totals vs. the totals computed from match events."""
    db = db or get_db()
    tracker = tracker or WarningTracker()
    season = season or db.fetch_current_season()

    staging = db.fetch_staging()
    players = db.fetch_players("id,name,team_id")
    resolver = TeamResolver(db.fetch_teams(), tracker)
    staged, names, unmapped = map_staging_to_players(staging, players, resolver)
    computed_rows = db.fetch_season_points(season)

    report = build_report(season, staged, computed_rows, names, unmapped)
    worst = report.worst(worst_n)
    logger.info(
        f"[parity] season={season} staged={len(staging)} mapped={len(staged)} unmapped={unmapped} "
        f"computed={len(computed_rows)} mismatches={len(report.mismatches)}"
    )
    if worst:
        logger.warning(f"[parity] PARITY_WARN worst {len(worst)} of {len(report.mismatches)} mismatches")
        for row in worst:
            logger.warning(
                f"[parity] PARITY_WARN player={row.name or row.player_id} "
                f"goals {row.staged.goals}->{row.computed.goals} ({row.diff_goals:+d}) "
                f"assists {row.staged.assists}->{row.computed.assists} ({row.diff_assists:+d}) "
                f"pim {row.staged.pen_min}->{row.computed.pen_min} ({row.diff_pen_min:+d})"
            )
    else:
        logger.info("[parity] ✅ no mismatches")
    return report
