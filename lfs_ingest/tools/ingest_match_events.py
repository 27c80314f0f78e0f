# lfs_ingest/tools/ingest_match_events.py
"""Ingest protocol events (goals, assists, penalties, MVPs, goalie lines).

Usage:
  lfs-ingest-events --matchId <uuid>
  lfs-ingest-events --all-finished [--season 2025]
"""

import argparse
import sys

from lfs_ingest.pipeline.match_events import MatchEventIngestor
from lfs_ingest.tools.common import add_season_arg, config_ok, run_job
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Ingest match protocol events")
    target = ap.add_mutually_exclusive_group(required=True)
    target.add_argument("--matchId", dest="match_id", help="Single match id (matches.id)")
    target.add_argument("--all-finished", action="store_true", help="Every finished match with a protocol id")
    add_season_arg(ap)
    ap.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bar output")
    args = ap.parse_args(argv)

    if not config_ok():
        return 1

    def job() -> int:
        ingestor = MatchEventIngestor()
        if args.match_id:
            res = ingestor.ingest_match_id(args.match_id)
            if res.skipped:
                logger.warning(f"[events] match {args.match_id} skipped: {res.skip_reason}")
            else:
                logger.info(f"[events] ✅ match {args.match_id}: {res.events_inserted} events")
            return 0
        batch = ingestor.ingest_all_finished(args.season, show_progress=not args.no_progress)
        for match_id, reason in batch.failures:
            logger.warning(f"[events] failed match {match_id}: {reason}")
        logger.info(
            f"[events] ✅ all-finished done: ok={batch.succeeded} failed={batch.failed} skipped={batch.skipped}"
        )
        return 0

    return run_job("events", job)


if __name__ == "__main__":
    sys.exit(main())
