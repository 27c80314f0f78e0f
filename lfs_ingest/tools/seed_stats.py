# lfs_ingest/tools/seed_stats.py
"""Scrape skater + goalie season stats into players_stats_staging."""

import argparse
import sys

from lfs_ingest.core.config import STATS_SETTINGS
from lfs_ingest.pipeline.seed_stats import seed_from_stats
from lfs_ingest.tools.common import DB_SETTINGS, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Seed players_stats_staging from the stats AJAX endpoints")
    ap.parse_args(argv)

    if not config_ok(DB_SETTINGS + STATS_SETTINGS):
        return 1

    def job() -> int:
        summary = seed_from_stats()
        logger.info(f"[seed] ✅ done: {summary}")
        return 0

    return run_job("seed", job)


if __name__ == "__main__":
    sys.exit(main())
