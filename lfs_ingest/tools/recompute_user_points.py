# lfs_ingest/tools/recompute_user_points.py
"""Recompute per-user fantasy season totals inside the datastore.

Runs the `recompute_user_season_points` database function, which sums
`player_match_points` over each user's roster windows (captain periods
count double) into `user_season_points`.

Usage:
  lfs-recompute-user-points --season 2025-26
"""

import argparse
import sys

from lfs_ingest.core.database import get_db
from lfs_ingest.tools.common import add_season_arg, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Recompute user season points")
    add_season_arg(ap)
    args = ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        db = get_db()
        season = args.season or db.fetch_current_season()
        logger.info(f"[user-points] season {season}")
        data = db.recompute_user_season_points(season)
        logger.info(f"[user-points] ✅ done {data if data is not None else ''}".rstrip())
        return 0

    return run_job("user-points", job)


if __name__ == "__main__":
    sys.exit(main())
