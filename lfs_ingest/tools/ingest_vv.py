# lfs_ingest/tools/ingest_vv.py
"""Calendar + events + points for recent (or all) finished matches.

Usage:
  lfs-ingest-vv                       # recent window, missing events/goalies
  lfs-ingest-vv --mode suspicious
  lfs-ingest-vv --backfill
"""

import argparse
import sys

from lfs_ingest.core.config import config
from lfs_ingest.pipeline.orchestrator import FAIL_RATIO_LIMIT, MODES, RECENT_DAYS, run_vv
from lfs_ingest.tools.common import add_season_arg, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Recent/backfill ingestion for the league")
    add_season_arg(ap, default=config.DEFAULT_SEASON)
    ap.add_argument("--league", default=config.DEFAULT_LEAGUE)
    ap.add_argument("--mode", choices=MODES, default="recent")
    ap.add_argument("--backfill", action="store_true", help="Shortcut for --mode backfill")
    ap.add_argument("--days", type=int, default=RECENT_DAYS, help="Recent window in days (default: %(default)s)")
    args = ap.parse_args(argv)
    mode = "backfill" if args.backfill else args.mode

    if not config_ok():
        return 1

    def job() -> int:
        result = run_vv(args.season, args.league, mode=mode, days=args.days)
        if result.soft_skipped:
            return 0
        if not result.ok:
            logger.error(
                f"[vv] ❌ fail ratio {result.fail_ratio:.2f} >= {FAIL_RATIO_LIMIT} "
                f"({result.failed}/{result.considered}): {result.failures[:10]}"
            )
            return 1
        logger.info(f"[vv] ✅ done: processed={result.processed} skipped={result.skipped} failed={result.failed}")
        return 0

    return run_job("vv", job)


if __name__ == "__main__":
    sys.exit(main())
