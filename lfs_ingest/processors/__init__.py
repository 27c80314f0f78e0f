# lfs_ingest/processors/__init__.py
"""
Pure parsing / transform steps. Nothing in here talks to the network or the
datastore:

  headers             stats table header -> HeaderKey, text helpers
  ajax_rows           AJAX payload row extraction
  stats_processor     skater/goalie rows -> staging / players rows
  calendar_processor  calendar AJAX rows -> CalendarMatch
  protocol_processor  protocol page -> goals, penalties, MVP, goalie lines
  points_processor    match events -> player_match_points rows
  pricing             season totals -> prices
  parity              staged vs computed season totals
"""

from .headers import HeaderKey, detect_header_key, strip_html
from .ajax_rows import extract_data_array, row_to_record, value_to_string
from .stats_processor import PlayerStatsRow, map_skater_rows, map_goalie_rows, to_staging_row, to_player_row
from .calendar_processor import CalendarMatch, parse_calendar_row, parse_calendar_rows, dedupe_calendar_matches
from .protocol_processor import ProtocolParse, parse_protocol, parse_penalty_detail, classify_penalty
from .points_processor import ScoringRules, compute_match_points
from .pricing import PricingConfig, PlayerTotal, compute_prices
from .parity import ParityReport, build_report

__all__ = [
    "HeaderKey", "detect_header_key", "strip_html",
    "extract_data_array", "row_to_record", "value_to_string",
    "PlayerStatsRow", "map_skater_rows", "map_goalie_rows", "to_staging_row", "to_player_row",
    "CalendarMatch", "parse_calendar_row", "parse_calendar_rows", "dedupe_calendar_matches",
    "ProtocolParse", "parse_protocol", "parse_penalty_detail", "classify_penalty",
    "ScoringRules", "compute_match_points",
    "PricingConfig", "PlayerTotal", "compute_prices",
    "ParityReport", "build_report",
]
