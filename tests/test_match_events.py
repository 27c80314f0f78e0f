"""Tests for protocol -> match_events / match_goalie_stats ingestion."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone

import pytest

from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.pipeline.match_events import MatchEventIngestor, PlayerIndex, dedupe_events, dedupe_goalie_stats
from lfs_ingest.pipeline.match_points import compute_points_for_match
from tests.fakes import AWAY, HOME
from tests.test_protocol import PROTOCOL_HTML

MATCH = {
    "id": "m1",
    "external_id": "123",
    "season": "2025",
    "home_team": HOME,
    "away_team": AWAY,
    "home_score": 1,
    "away_score": 1,
    "status": "finished",
}


class FakeProtocolScraper:
    def __init__(self, pages):
        self.pages = pages
        self.urls = []

    def fetch(self, url):
        self.urls.append(url)
        page = self.pages.get(url.rsplit("/", 1)[-1])
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def seeded(fake_client, teams):
    for team in teams:
        fake_client.add("teams", team)
    fake_client.add("players", {"id": "p-janis", "name": "Jānis Bērziņš", "team_id": HOME, "position": "U"})
    fake_client.add("players", {"id": "p-karlis", "name": "Kārlis Liepa", "team_id": HOME, "position": "V"})
    fake_client.add("matches", dict(MATCH))
    return fake_client


def make_ingestor(db, pages):
    return MatchEventIngestor(
        db=db,
        scraper=FakeProtocolScraper(pages),
        now=lambda: datetime(2025, 9, 13, tzinfo=timezone.utc),
    )


class TestIngestMatch:
    def test_events_and_stubs(self, db, seeded):
        res = make_ingestor(db, {"123": PROTOCOL_HTML}).ingest_match(dict(MATCH))

        assert not res.skipped
        assert res.stubs_created == 2
        stub_names = sorted(p["name"] for p in seeded.rows("players") if p["position"] is None)
        assert stub_names == ["Andris Ozols", "Pēteris Kalniņš"]

        events = [e for e in seeded.rows("match_events") if e["match_id"] == "m1"]
        assert res.events_inserted == 4
        assert Counter(e["event_type"] for e in events) == {"goal": 2, "minor_2": 1, "mvp": 1}

        goal = next(e for e in events if e["event_type"] == "goal" and e["team_id"] == HOME)
        assert goal["player_id"] == "p-janis"
        kalnins = next(p for p in seeded.rows("players") if p["name"] == "Pēteris Kalniņš")
        assert goal["assist_id"] == kalnins["id"]
        assert goal["ts_seconds"] == 312
        assert goal["period"] == 1

        goalies = seeded.rows("match_goalie_stats")
        assert len(goalies) == 1
        assert goalies[0]["player_id"] == "p-karlis"
        assert goalies[0]["team_id"] == HOME
        assert (goalies[0]["saves"], goalies[0]["goals_against"]) == (19, 1)

    def test_rerun_replaces_events_without_new_stubs(self, db, seeded):
        ingestor = make_ingestor(db, {"123": PROTOCOL_HTML})
        ingestor.ingest_match(dict(MATCH))
        players_after_first = len(seeded.rows("players"))

        res = ingestor.ingest_match(dict(MATCH))
        assert res.stubs_created == 0
        assert len(seeded.rows("players")) == players_after_first
        assert len([e for e in seeded.rows("match_events") if e["match_id"] == "m1"]) == 4
        assert len(seeded.rows("match_goalie_stats")) == 1

    def test_invalid_external_id_skipped(self, db, seeded):
        match = dict(MATCH, external_id="vv:34:2025-09-13:rig:val")
        res = make_ingestor(db, {}).ingest_match(match)
        assert res.skipped and res.skip_reason == "invalid_external_id"

    def test_missing_protocol_skipped(self, db, seeded):
        res = make_ingestor(db, {}).ingest_match(dict(MATCH))
        assert res.skipped and res.skip_reason == "protocol_not_found"
        assert seeded.rows("match_events") == []

    def test_empty_page_is_format_error(self, db, seeded):
        with pytest.raises(UpstreamFormatError):
            make_ingestor(db, {"123": "   "}).ingest_match(dict(MATCH))

    def test_batch_isolates_failures(self, db, seeded):
        other = dict(MATCH, id="m2", external_id="456")
        seeded.add("matches", other)
        pages = {"123": PROTOCOL_HTML, "456": FetchError("boom", url="x", status=500, attempts=3)}
        batch = make_ingestor(db, pages).ingest_matches([dict(MATCH), other], season="2025")
        assert batch.considered == 2
        assert batch.succeeded == 1
        assert batch.failed == 1
        assert batch.failures[0][0] == "m2"
        assert batch.fail_ratio == pytest.approx(0.5)

    def test_batch_with_progress_bar(self, db, seeded):
        other = dict(MATCH, id="m2", external_id="456")
        seeded.add("matches", other)
        batch = make_ingestor(db, {"123": PROTOCOL_HTML, "456": PROTOCOL_HTML}).ingest_matches(
            [dict(MATCH), other], show_progress=True
        )
        assert batch.succeeded == 2
        assert batch.matches_without_goalies == []

    def test_points_after_ingest(self, db, seeded):
        make_ingestor(db, {"123": PROTOCOL_HTML}).ingest_match(dict(MATCH))
        counts = compute_points_for_match("m1", db)
        assert counts["rows"] == 4
        assert counts["skipped"] == 0

        points = {p["player_id"]: p for p in seeded.rows("player_match_points")}
        assert points["p-janis"]["fantasy_points"] == pytest.approx(1.5)
        assert points["p-karlis"]["fantasy_points"] == pytest.approx(6.9)
        ozols = next(p for p in seeded.rows("players") if p["name"] == "Andris Ozols")
        assert points[ozols["id"]]["fantasy_points"] == pytest.approx(1.0)
        assert points[ozols["id"]]["pen_min"] == 2


class TestHelpers:
    def test_player_index(self):
        index = PlayerIndex([
            {"id": "p1", "name": "#9 Jānis Bērziņš", "team_id": HOME},
            {"id": "p2", "name": "Andris Ozols", "team_id": AWAY},
            {"id": "p3", "name": "Andris Ozols", "team_id": HOME},
            {"id": "p4", "name": "No Team"},
        ])
        assert index.get(HOME, "janis berzins") == "p1"
        assert index.get(AWAY, "janis berzins") is None
        assert index.any_team("janis berzins") == ("p1", HOME)
        assert index.any_team("andris ozols") is None
        assert len(index) == 3

    def test_dedupe_events(self):
        ev = {"event_type": "goal", "period": 1, "ts_seconds": 10, "player_id": "p1", "assist_id": None, "value": None}
        assert len(dedupe_events([ev, dict(ev), dict(ev, ts_seconds=11)])) == 2

    def test_dedupe_goalie_stats_keeps_longest(self):
        rows = [
            {"player_id": "g1", "minutes_seconds": 1200, "saves": 5},
            {"player_id": "g1", "minutes_seconds": 3600, "saves": 20},
        ]
        assert dedupe_goalie_stats(rows) == [rows[1]]
