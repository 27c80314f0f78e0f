# lfs_ingest/utils/__init__.py
"""
Utils module - logging, normalization and debugging helpers
"""

from .logger import get_logger, fmt_fields, WarningTracker
from .normalizer import (
    normalize_name,
    normalize_key,
    team_code,
    player_key,
    is_junk_name,
    is_probable_player_name,
    TeamResolver,
)
from .debug_cache import save_debug_response

__all__ = [
    'get_logger',
    'fmt_fields',
    'WarningTracker',
    'normalize_name',
    'normalize_key',
    'team_code',
    'player_key',
    'is_junk_name',
    'is_probable_player_name',
    'TeamResolver',
    'save_debug_response',
]
