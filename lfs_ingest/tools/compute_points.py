# lfs_ingest/tools/compute_points.py
"""Recompute player_match_points from stored events and goalie lines.

Usage:
  lfs-compute-points --matchId <uuid>
  lfs-compute-points --all-finished [--season 2025]
"""

import argparse
import sys

from lfs_ingest.pipeline.match_points import compute_points_all_finished, compute_points_for_match
from lfs_ingest.tools.common import add_season_arg, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Compute fantasy points per player per match")
    target = ap.add_mutually_exclusive_group(required=True)
    target.add_argument("--matchId", dest="match_id", help="Single match id (matches.id)")
    target.add_argument("--all-finished", action="store_true", help="Every finished match of the season")
    add_season_arg(ap)
    args = ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        if args.match_id:
            counts = compute_points_for_match(args.match_id)
        else:
            counts = compute_points_all_finished(args.season)
        logger.info(f"[points] ✅ done: {counts}")
        return 0

    return run_job("points", job)


if __name__ == "__main__":
    sys.exit(main())
