"""Tests for season stats mapping and the AJAX stats scrapers."""

from __future__ import annotations

import json

import pytest

from lfs_ingest.core.errors import UpstreamFormatError
from lfs_ingest.processors.stats_processor import (
    PlayerStatsRow,
    map_goalie_rows,
    map_skater_rows,
    normalize_position,
    to_player_row,
    to_staging_row,
)
from lfs_ingest.scrapers.stats_scraper import GoalieStatsScraper, SkaterStatsScraper, _AjaxStatsScraper
from tests.fakes import FakeHttpResponse


def _scraper_kwargs():
    return dict(
        page_url="https://www.floorball.lv/lv/2025/chempionats/vv/statistika",
        endpoint="https://www.floorball.lv/ajax/stats.php",
        form="draw=1&start=0&length=500",
        cookie="PHPSESSID=abc",
        save_debug=False,
    )


class TestSkaterMapping:
    def test_dict_rows(self, tracker):
        payload = {"data": [{
            "name": "<a href='/p/1'>Jānis Bērziņš</a>",
            "team": "Rīgas Lauvas",
            "position": "Uzbrucējs",
            "games": "10",
            "goals": "5",
            "assists": "3",
            "points": "8",
            "pim": "4",
        }]}
        rows = map_skater_rows(payload, tracker)
        assert rows == [PlayerStatsRow(
            name="Jānis Bērziņš", team="Rīgas Lauvas", position="U",
            games=10.0, goals=5.0, assists=3.0, points=8.0, pen_min=4.0,
        )]

    def test_array_rows(self):
        payload = {"aaData": [[1, "<b>Andris Ozols</b>", "Valmieras Vilki", "A", "12", "2", "7/1", "9", "6"]]}
        row = map_skater_rows(payload)[0]
        assert row.name == "Andris Ozols"
        assert row.position == "A"
        assert row.assists == 7.0
        assert row.pen_min == 6.0

    def test_unmappable_rows_counted(self, tracker):
        rows = map_skater_rows({"data": [["x"], [1, "", ""]]}, tracker)
        assert rows == []
        assert tracker.counts["UNMAPPED_STATS_ROW"] == 2

    def test_empty_payload(self):
        assert map_skater_rows({"data": []}) == []
        assert map_skater_rows("not json") == []


class TestGoalieMapping:
    def test_array_row(self):
        row = map_goalie_rows([[1, "Kārlis Liepa", "Rīgas Lauvas", "10", "0", "", "300", "", "270", "90%", "2"]])[0]
        assert row.position == "V"
        assert (row.games, row.shots, row.saves) == (10.0, 300.0, 270.0)
        assert row.save_pct == 90.0
        assert row.pen_min == 2.0

    def test_dict_row(self):
        row = map_goalie_rows({"data": [{"name": "Kārlis Liepa", "team": "Rīgas Lauvas",
                                         "games": 8, "saves": 150, "save_pct": "88,5", "shots": "170"}]})[0]
        assert row.saves == 150.0
        assert row.shots == 170.0
        assert row.save_pct == 88.5


class TestRowConversion:
    def test_to_staging_row(self):
        row = PlayerStatsRow(name=" Jānis  Bērziņš ", team="Rīgas Lauvas", position="U",
                             games=10.0, goals=4.6, pen_min=2.0)
        staged = to_staging_row(row)
        assert staged["name"] == "Jānis Bērziņš"
        assert staged["goals"] == 5
        assert staged["penalty_min"] == 2
        assert staged["assists"] is None

    def test_to_player_row_fills_points(self):
        row = to_player_row({"name": "Jānis Bērziņš", "position": "uzbrucējs", "goals": 2, "assists": 3}, "t1")
        assert row["points"] == 5
        assert row["position"] == "U"
        assert row["team_id"] == "t1"

    def test_normalize_position(self):
        assert normalize_position("v") == "V"
        assert normalize_position("Aizsargs") == "A"
        assert normalize_position(None) == "U"


class TestStatsScrapers:
    def test_json_response(self, make_http):
        body = json.dumps({"data": [[1, "Andris Ozols", "Valmieras Vilki", "U", "3", "1", "1", "2", "0"]]})
        http = make_http(lambda method, url, data: FakeHttpResponse(200, body, {"content-type": "application/json"}))
        rows = SkaterStatsScraper(http, **_scraper_kwargs()).scrape()
        assert [r.name for r in rows] == ["Andris Ozols"]
        call = http.session.calls[0]
        assert call["method"] == "POST"
        assert call["data"] == "draw=1&start=0&length=500"
        assert call["headers"]["x-requested-with"] == "XMLHttpRequest"

    def test_html_response_is_format_error(self, make_http):
        http = make_http(lambda method, url, data: FakeHttpResponse(200, "<html><body>login</body></html>"))
        with pytest.raises(UpstreamFormatError):
            GoalieStatsScraper(http, **_scraper_kwargs()).scrape()

    def test_missing_cookie(self, make_http):
        http = make_http(lambda method, url, data: FakeHttpResponse(200, "{}"))
        kwargs = dict(_scraper_kwargs(), cookie="")
        with pytest.raises(ValueError):
            SkaterStatsScraper(http, **kwargs).scrape()

    def test_subclass_without_mapper_cannot_be_built(self, make_http):
        class NoMapper(_AjaxStatsScraper):
            label = "broken"

        http = make_http(lambda method, url, data: FakeHttpResponse(200, "{}"))
        with pytest.raises(TypeError):
            NoMapper(http, **_scraper_kwargs())
