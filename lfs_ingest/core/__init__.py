# lfs_ingest/core/__init__.py
"""
Core module - configuration, HTTP access and the Supabase client.

Only config and errors are re-exported here; `core.http` and `core.database`
depend on `utils.logger`, which itself reads `core.config`.
"""

from .config import config, Config
from .errors import IngestError, FetchError, UpstreamFormatError, DatabaseError

__all__ = [
    'config',
    'Config',
    'IngestError',
    'FetchError',
    'UpstreamFormatError',
    'DatabaseError',
]
