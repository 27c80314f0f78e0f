"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os

import pytest

# Set required environment variables before any imports
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ["MIN_REQUEST_GAP_MS"] = "0"
os.environ["RETRY_BACKOFF_MS"] = "0"

from lfs_ingest.core.database import DatabaseClient  # noqa: E402
from lfs_ingest.core.http import HttpClient, RequestGate  # noqa: E402
from lfs_ingest.utils.logger import WarningTracker  # noqa: E402
from tests.fakes import AWAY, HOME, FakeSupabase, FakeSession  # noqa: E402


@pytest.fixture
def fake_client():
    return FakeSupabase()


@pytest.fixture
def db(fake_client):
    return DatabaseClient(client=fake_client)


@pytest.fixture
def tracker():
    return WarningTracker()


@pytest.fixture
def make_http():
    """Build an HttpClient over a FakeSession with no pacing and no real sleeps."""

    def _make(routes, **kwargs):
        sleeps = []
        kwargs.setdefault("max_attempts", 3)
        kwargs.setdefault("backoff_ms", 100)
        client = HttpClient(
            session=FakeSession(routes),
            gate=RequestGate(min_gap_ms=0),
            sleep=sleeps.append,
            **kwargs,
        )
        client.sleeps = sleeps
        return client

    return _make


@pytest.fixture
def teams():
    return [
        {"id": HOME, "code": "RIG", "name": "Rīgas Lauvas", "short_name": "Lauvas"},
        {"id": AWAY, "code": "VAL", "name": "Valmieras Vilki", "short_name": "Vilki"},
    ]
