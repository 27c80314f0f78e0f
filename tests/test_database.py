"""Tests for DatabaseClient over the in-memory Supabase stand-in."""

from __future__ import annotations

import pytest

from lfs_ingest.core import database
from lfs_ingest.core.config import config
from lfs_ingest.core.database import _clean_rows
from lfs_ingest.core.errors import DatabaseError
from tests.fakes import AWAY, HOME


class TestCleanRows:
    def test_allow_list_and_coercion(self):
        rows = _clean_rows("players", [{
            "name": "Jānis Bērziņš",
            "team_id": None,
            "games": "12",
            "save_pct": "91,5%",
            "price_manual": "",
            "nickname": "JB",
        }])
        assert rows == [{"name": "Jānis Bērziņš", "team_id": None, "games": 12, "save_pct": 91.5}]

    def test_nullable_event_columns_kept(self):
        rows = _clean_rows("match_events", [{"match_id": "m1", "event_type": "goal", "assist_id": None, "raw": {"a": 1}}])
        assert rows[0]["assist_id"] is None
        assert rows[0]["raw"] == {"a": 1}

    def test_empty_rows_dropped(self):
        assert _clean_rows("teams", [{"unknown": 1}, "not a dict"]) == []


class TestQueries:
    def test_paging(self, db, fake_client, monkeypatch):
        monkeypatch.setattr(config, "PAGE_SIZE", 2)
        for i in range(5):
            fake_client.add("players", {"id": f"p{i}", "name": f"Player {i}"})
        players = db.fetch_players()
        assert [p["id"] for p in players] == ["p0", "p1", "p2", "p3", "p4"]
        assert fake_client.calls.count(("players", "select")) == 3

    def test_in_lookups_are_chunked(self, db, fake_client, monkeypatch):
        monkeypatch.setattr(config, "LOOKUP_CHUNK", 2)
        for i in range(5):
            fake_client.add("players", {"id": f"p{i}", "name": f"Player {i}", "team_id": HOME})
        found = db.fetch_players_by_ids([f"p{i}" for i in range(5)] + [None])
        assert len(found) == 5
        assert fake_client.calls.count(("players", "select")) == 3

    def test_fetch_match_missing(self, db):
        with pytest.raises(LookupError):
            db.fetch_match("nope")

    def test_current_season(self, db, fake_client):
        fake_client.add("matches", {"external_id": "1", "season": "2024"})
        fake_client.add("matches", {"external_id": "2", "season": "2025"})
        fake_client.add("matches", {"external_id": "3", "season": None})
        assert db.fetch_current_season() == "2025"

    def test_current_season_empty(self, db):
        with pytest.raises(LookupError):
            db.fetch_current_season()

    def test_finished_matches_with_protocol(self, db, fake_client):
        base = {"status": "finished", "season": "2025", "home_team": HOME, "away_team": AWAY}
        fake_client.add("matches", dict(base, external_id="123", date="2025-09-12"))
        fake_client.add("matches", dict(base, external_id="vv:34:2025-09-13:rig:val", date="2025-09-13"))
        fake_client.add("matches", dict(base, external_id="456", date="2025-09-14", status="scheduled"))
        with_protocol = db.fetch_finished_matches(season="2025")
        assert [m["external_id"] for m in with_protocol] == ["123"]
        assert len(db.fetch_finished_matches(season="2025", with_protocol=False)) == 2

    def test_upsert_matches_by_external_id(self, db, fake_client):
        row = {"external_id": "123", "season": "2025", "status": "scheduled", "home_score": None}
        db.upsert_matches([row])
        db.upsert_matches([dict(row, status="finished", home_score="3")])
        stored = fake_client.rows("matches")
        assert len(stored) == 1
        assert stored[0]["status"] == "finished"
        assert stored[0]["home_score"] == 3

    def test_replace_match_events(self, db, fake_client):
        fake_client.add("match_events", {"match_id": "m1", "event_type": "goal"})
        fake_client.add("match_events", {"match_id": "m2", "event_type": "goal"})
        inserted = db.replace_match_events("m1", [
            {"match_id": "m1", "event_type": "mvp", "value": 1},
            {"match_id": "m1", "event_type": "minor_2", "value": 2},
        ])
        assert inserted == 2
        by_match = sorted((e["match_id"], e["event_type"]) for e in fake_client.rows("match_events"))
        assert by_match == [("m1", "minor_2"), ("m1", "mvp"), ("m2", "goal")]

    def test_staging_reads_every_page(self, db, fake_client, monkeypatch):
        monkeypatch.setattr(config, "PAGE_SIZE", 2)
        for name, team in (
            ("Zane Ozola", "Valmieras Vilki"),
            ("Andris Ozols", "Valmieras Vilki"),
            ("Kārlis Liepa", "Rīgas Lauvas"),
            ("Andris Ozols", "Rīgas Lauvas"),
            ("Jānis Bērziņš", "Rīgas Lauvas"),
        ):
            fake_client.add("players_stats_staging", {"name": name, "team": team})
        staged = db.fetch_staging()
        assert [(r["name"], r["team"]) for r in staged] == [
            ("Andris Ozols", "Rīgas Lauvas"),
            ("Andris Ozols", "Valmieras Vilki"),
            ("Jānis Bērziņš", "Rīgas Lauvas"),
            ("Kārlis Liepa", "Rīgas Lauvas"),
            ("Zane Ozola", "Valmieras Vilki"),
        ]
        assert fake_client.calls.count(("players_stats_staging", "select")) == 3

    def test_recompute_user_season_points(self, db, fake_client):
        assert db.recompute_user_season_points("2025-26") is None
        assert fake_client.rpc_calls == [("recompute_user_season_points", {"target_season": "2025-26"})]


class TestFailures:
    def test_errors_wrapped(self, db, fake_client):
        fake_client.fail_tables.add("teams")
        with pytest.raises(DatabaseError) as exc_info:
            db.fetch_teams()
        assert exc_info.value.table == "teams"
        assert exc_info.value.operation == "select"
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_rpc_errors_wrapped(self, db, fake_client):
        fake_client.fail_rpcs.add("recompute_user_season_points")
        with pytest.raises(DatabaseError) as exc_info:
            db.recompute_user_season_points("2025")
        assert exc_info.value.table == "recompute_user_season_points"
        assert exc_info.value.operation == "rpc"

    def test_health_check(self, db, fake_client):
        assert db.health_check() is True
        fake_client.fail_tables.add("teams")
        assert db.health_check() is False

    def test_get_db_is_shared(self, monkeypatch, fake_client):
        monkeypatch.setattr(database, "_db", None)
        monkeypatch.setattr(database, "create_client", lambda url, key: fake_client)
        assert database.get_db() is database.get_db()
        assert database.get_db().client is fake_client
