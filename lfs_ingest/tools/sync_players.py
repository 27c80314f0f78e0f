# lfs_ingest/tools/sync_players.py
"""Replace `players` from players_stats_staging (creating missing teams first)."""

import argparse
import sys

from lfs_ingest.pipeline.sync_players import sync_staging_to_players
from lfs_ingest.tools.common import config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Sync staged season stats into players")
    ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        summary = sync_staging_to_players()
        logger.info(f"[sync] ✅ done: {summary}")
        return 0

    return run_job("sync", job)


if __name__ == "__main__":
    sys.exit(main())
