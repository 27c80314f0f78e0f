from .calendar import ingest_calendar
from .match_events import MatchEventIngestor
from .match_points import compute_points_for_match, compute_points_all_finished
from .seed_stats import seed_from_stats
from .sync_players import sync_staging_to_players
from .prices import compute_and_store_prices
from .parity import run_parity_check
from .cleanup import cleanup_junk_players
from .orchestrator import run_vv

__all__ = [
    "ingest_calendar",
    "MatchEventIngestor",
    "compute_points_for_match",
    "compute_points_all_finished",
    "seed_from_stats",
    "sync_staging_to_players",
    "compute_and_store_prices",
    "run_parity_check",
    "cleanup_junk_players",
    "run_vv",
]
# pipeline package: one module per ingestion job
