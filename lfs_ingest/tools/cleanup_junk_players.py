# lfs_ingest/tools/cleanup_junk_players.py
"""Delete recently created junk players (protocol text mistaken for names).

Usage:
  lfs-cleanup-junk --days 30 [--dry-run]
"""

import argparse
import sys

from lfs_ingest.pipeline.cleanup import LOG_PREFIX, cleanup_junk_players
from lfs_ingest.tools.common import config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Remove junk player rows")
    ap.add_argument("--days", type=int, default=30, help="Look-back window in days (default: %(default)s)")
    ap.add_argument("--dry-run", action="store_true", help="Only list candidates")
    args = ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        summary = cleanup_junk_players(days=args.days, dry_run=args.dry_run)
        logger.info(f"{LOG_PREFIX} ✅ done: {summary}")
        return 0

    return run_job("cleanup", job)


if __name__ == "__main__":
    sys.exit(main())
