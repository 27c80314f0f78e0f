"""Tests for stats seeding, staging -> players sync and junk-player cleanup."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lfs_ingest.core.errors import UpstreamFormatError
from lfs_ingest.pipeline.cleanup import cleanup_junk_players, find_junk_players
from lfs_ingest.pipeline.seed_stats import seed_from_stats
from lfs_ingest.pipeline.sync_players import sync_staging_to_players
from lfs_ingest.processors.stats_processor import PlayerStatsRow
from tests.fakes import AWAY, HOME


class FakeStatsScraper:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error

    def scrape(self):
        if self.error is not None:
            raise self.error
        return self.rows


class TestSeedFromStats:
    def test_goalie_failure_keeps_skaters(self, db, fake_client):
        fake_client.add("players_stats_staging", {"name": "Old Row", "team": "Old"})
        skaters = FakeStatsScraper([
            PlayerStatsRow(name="Jānis Bērziņš", team="Rīgas Lauvas", position="U", games=10, goals=5),
            PlayerStatsRow(name="Andris Ozols", team="Valmieras Vilki", position="A", games=9, assists=2),
        ])
        goalies = FakeStatsScraper(error=UpstreamFormatError("goalies endpoint returned HTML"))

        summary = seed_from_stats(db=db, skaters=skaters, goalies=goalies)

        assert summary == {"skaters": 2, "goalies": 0, "inserted": 2}
        names = sorted(r["name"] for r in fake_client.rows("players_stats_staging"))
        assert names == ["Andris Ozols", "Jānis Bērziņš"]

    def test_nothing_scraped_still_clears(self, db, fake_client):
        fake_client.add("players_stats_staging", {"name": "Old Row", "team": "Old"})
        summary = seed_from_stats(db=db, skaters=FakeStatsScraper(), goalies=FakeStatsScraper())
        assert summary["inserted"] == 0
        assert fake_client.rows("players_stats_staging") == []


class TestSyncStagingToPlayers:
    @pytest.fixture
    def staged(self, fake_client, teams):
        for team in teams:
            fake_client.add("teams", team)
        fake_client.add("players", {"id": "old-janis", "name": "Jānis Bērziņš", "team_id": HOME, "price_manual": 11.5})
        for row in (
            {"name": "Jānis Bērziņš", "team": "Rīgas Lauvas", "position": "U", "games": 10, "goals": 5, "assists": 3, "points": 8},
            {"name": "Kārlis Liepa", "team": "Rīgas Lauvas", "position": "U", "games": 2},
            {"name": "Kārlis Liepa", "team": "Rīgas Lauvas", "position": "V", "games": 12, "saves": 300, "save_pct": 91.5},
            {"name": "Kopsavilkums", "team": "Rīgas Lauvas", "games": 12},
            {"name": "Andris Ozols", "team": "Valmieras Vilki", "position": "A", "games": 0},
            {"name": "Pēteris Kalniņš", "team": "Cēsu Ērgļi", "position": "A", "games": 4, "goals": 1},
        ):
            fake_client.add("players_stats_staging", row)
        return fake_client

    def test_full_replace(self, db, staged):
        summary = sync_staging_to_players(db=db)

        assert summary["staged"] == 6
        assert summary["inserted"] == 3
        assert summary["junk"] == 1
        assert summary["no_games"] == 1
        assert summary["duplicates"] == 1
        assert summary["manual_kept"] == 1

        players = {p["name"]: p for p in staged.rows("players")}
        assert set(players) == {"Jānis Bērziņš", "Kārlis Liepa", "Pēteris Kalniņš"}
        assert players["Jānis Bērziņš"]["price_manual"] == 11.5
        assert players["Jānis Bērziņš"]["points_total"] == 8
        assert players["Kārlis Liepa"]["position"] == "V"
        assert players["Kārlis Liepa"]["games"] == 12

    def test_new_team_created(self, db, staged):
        sync_staging_to_players(db=db)
        cesis = next(t for t in staged.rows("teams") if t["name"] == "Cēsu Ērgļi")
        assert cesis["code"] == "CES"
        players = {p["name"]: p for p in staged.rows("players")}
        assert players["Pēteris Kalniņš"]["team_id"] == cesis["id"]
        assert {t["id"] for t in staged.rows("teams")} >= {HOME, AWAY}

    def test_empty_staging_leaves_players(self, db, fake_client):
        fake_client.add("players", {"id": "p1", "name": "Jānis Bērziņš", "team_id": HOME})
        assert sync_staging_to_players(db=db) == {"staged": 0, "inserted": 0}
        assert len(fake_client.rows("players")) == 1


class TestCleanupJunkPlayers:
    NOW = datetime(2025, 9, 15, tzinfo=timezone.utc)

    @pytest.fixture
    def junk_db(self, fake_client):
        recent = "2025-09-10T00:00:00+00:00"
        fake_client.add("players", {"id": "j1", "name": "Aizturēta soda laikā", "team_id": HOME, "created_at": recent})
        fake_client.add("players", {"id": "j2", "name": "12", "created_at": recent})
        fake_client.add("players", {"id": "stub", "name": "Pēteris Kalniņš", "team_id": HOME, "created_at": recent})
        fake_client.add("players", {"id": "old", "name": "Kopsavilkums", "created_at": "2025-01-01T00:00:00+00:00"})
        fake_client.add("match_events", {"id": "e1", "match_id": "m1", "player_id": "stub", "assist_id": "j1", "event_type": "goal"})
        fake_client.add("match_events", {"id": "e2", "match_id": "m1", "player_id": "j2", "event_type": "minor_2"})
        return fake_client

    def test_deletes_only_junk(self, db, junk_db):
        summary = cleanup_junk_players(db=db, days=30, now=self.NOW)

        assert summary == {"candidates": 2, "deleted": 2, "dry_run": False}
        assert sorted(p["id"] for p in junk_db.rows("players")) == ["old", "stub"]
        events = {e["id"]: e for e in junk_db.rows("match_events")}
        assert set(events) == {"e1"}
        assert events["e1"]["assist_id"] is None

    def test_dry_run(self, db, junk_db):
        summary = cleanup_junk_players(db=db, days=30, dry_run=True, now=self.NOW)
        assert summary["candidates"] == 2
        assert summary["deleted"] == 0
        assert len(junk_db.rows("players")) == 4

    def test_real_names_never_junk(self):
        players = [
            {"id": "a", "name": "Pēteris Kalniņš", "team_id": None, "games": None},
            {"id": "b", "name": "Kopsavilkums", "team_id": HOME, "games": 3},
        ]
        assert find_junk_players(players) == []
