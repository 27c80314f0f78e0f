# lfs_ingest/tools/common.py
import argparse
from typing import Callable, Iterable, Optional

from lfs_ingest.core.config import config
from lfs_ingest.core.errors import DatabaseError, FetchError, UpstreamFormatError
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)

DB_SETTINGS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")


def config_ok(require: Iterable[str] = DB_SETTINGS) -> bool:
    try:
        config.validate_config(require)
    except ValueError as e:
        logger.error(f"❌ {e}")
        return False
    return True


def add_season_arg(parser: argparse.ArgumentParser, default: Optional[str] = None) -> None:
    parser.add_argument(
        "--season",
        default=default,
        help="Season (start year, e.g. 2025 or 2025-26); defaults to the latest season in the datastore",
    )


def run_job(label: str, job: Callable[[], int]) -> int:
    """Run a job and map datastore, upstream and lookup failures to exit code 1."""
    try:
        return job()
    except DatabaseError as e:
        logger.error(f"[{label}] ❌ datastore error ({e.operation} on {e.table}): {e.cause}")
    except (FetchError, UpstreamFormatError) as e:
        logger.error(f"[{label}] ❌ upstream error: {e}")
    except LookupError as e:
        logger.error(f"[{label}] ❌ {e}")
    return 1
