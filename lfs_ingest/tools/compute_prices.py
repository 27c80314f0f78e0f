# lfs_ingest/tools/compute_prices.py
"""Compute player prices from season fantasy points.

Usage:
  lfs-compute-prices --season 2025 [--dry-run]
"""

import argparse
import sys

from lfs_ingest.pipeline.prices import compute_and_store_prices
from lfs_ingest.tools.common import add_season_arg, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Compute and store player prices")
    add_season_arg(ap)
    ap.add_argument("--dry-run", action="store_true", help="Compute prices without writing them")
    args = ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        results = compute_and_store_prices(args.season, dry_run=args.dry_run)
        top = sorted(results, key=lambda r: -r.price_final)[:10]
        for r in top:
            logger.info(f"[prices] {r.player_id} {r.group} total={r.total:.1f} price={r.price_final:.2f}")
        return 0

    return run_job("prices", job)


if __name__ == "__main__":
    sys.exit(main())
