# lfs_ingest/core/errors.py
from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    """Base class for ingestion failures."""


class FetchError(IngestError):
    """HTTP request failed after all retries (or hit a terminal status)."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None, attempts: int = 0):
        super().__init__(message)
        self.url = url
        self.status = status
        self.attempts = attempts

    @property
    def not_found(self) -> bool:
        return self.status == 404


class UpstreamFormatError(IngestError):
    """Upstream answered with something we cannot parse (HTML instead of JSON, empty body...)."""


class DatabaseError(IngestError):
    def __init__(self, table: str, operation: str, cause: Exception):
        super().__init__(f"{operation} on {table} failed: {cause}")
        self.table = table
        self.operation = operation
        self.cause = cause
