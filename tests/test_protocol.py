"""Tests for protocol page parsing and penalty classification."""

from __future__ import annotations

import pytest

from lfs_ingest.processors.protocol_processor import (
    DOUBLE_MINOR,
    MINOR_2,
    MISCONDUCT_10,
    RED_CARD,
    build_non_player_keys,
    classify_penalty,
    is_non_player_assist_text,
    parse_penalty_detail,
    parse_protocol,
    parse_time_to_seconds,
)
from lfs_ingest.scrapers.protocol_scraper import build_protocol_url

PROTOCOL_HTML = """
<html><body>
<table>
  <tr><td colspan="4">1. periods</td></tr>
  <tr><td class="maj">05:12</td><td>Vārti</td><td>1:0</td><td>#10 Jānis Bērziņš (#7 Pēteris Kalniņš)</td></tr>
  <tr><td class="vie">12:40</td><td>Sods</td><td></td><td>Andris Ozols (2 min; Klupināšana)</td></tr>
  <tr><td colspan="4">2. periods</td></tr>
  <tr><td class="vie">25:00</td><td>Vārti</td><td>1:1</td><td>Andris Ozols</td></tr>
</table>
<p>Vārtos (Rīgas Lauvas) vārtos - #1 Kārlis Liepa;</p>
<p>Vārtsarga stat. #1 Kārlis Liepa - vārti: 1; metieni: 20; minūtes: 60:00</p>
<p>60:00 Labākais spēlētājs #10 Jānis Bērziņš</p>
</body></html>
"""


class TestPenaltyClassification:
    @pytest.mark.parametrize(
        "details,minutes,expected",
        [
            ("Jānis Bērziņš (2 min; Klupināšana)", 2, [(MINOR_2, 2)]),
            ("Jānis Bērziņš (4 min; Augsta nūja)", 4, [(DOUBLE_MINOR, 4)]),
            ("Jānis Bērziņš (2+2 min; Rupjība)", 4, [(DOUBLE_MINOR, 4)]),
        ],
    )
    def test_minutes_to_events(self, details, minutes, expected):
        detail = parse_penalty_detail(details)
        assert detail.player_part == "Jānis Bērziņš"
        assert detail.minutes == minutes
        assert classify_penalty(detail.minutes, details) == expected

    def test_game_penalty_is_red_card(self):
        assert classify_penalty(None, "Andris Ozols (Spēles sods)") == [(RED_CARD, 20)]
        assert classify_penalty(20, "Andris Ozols (20 min)") == [(RED_CARD, 20)]
        assert classify_penalty(25, "Andris Ozols (25 min)") == [(RED_CARD, 25)]

    def test_misconduct_with_served_minor(self):
        details = "Andris Ozols (12 min; Nesportiska uzvedība) sodu izcieš #5 Jānis Bērziņš"
        detail = parse_penalty_detail(details)
        assert detail.minutes == 12
        assert detail.served_by_number == "5"
        assert classify_penalty(detail.minutes, details) == [(MINOR_2, 2), (MISCONDUCT_10, 10)]

    def test_unclassifiable(self):
        assert classify_penalty(None, "Andris Ozols") == []

    def test_reason_extracted(self):
        assert parse_penalty_detail("Andris Ozols (2 min; Klupināšana)").reason == "Klupināšana"


class TestParseProtocol:
    def test_goals(self):
        parsed = parse_protocol(PROTOCOL_HTML)
        assert len(parsed.goals) == 2
        first, second = parsed.goals
        assert first.team_side == "home"
        assert first.period == 1
        assert first.scorer_key == "janis berzins"
        assert first.assist_key == "peteris kalnins"
        assert second.team_side == "away"
        assert second.period == 2
        assert second.assist_key is None

    def test_penalties(self):
        parsed = parse_protocol(PROTOCOL_HTML)
        assert len(parsed.penalties) == 1
        pen = parsed.penalties[0]
        assert pen.player_key == "andris ozols"
        assert pen.minutes == 2
        assert pen.team_side == "away"
        assert not pen.looks_like_reason

    def test_goalie_lines(self):
        parsed = parse_protocol(PROTOCOL_HTML)
        assert len(parsed.goalie_starts) == 1
        assert parsed.goalie_starts[0].team_label == "Rīgas Lauvas"
        line = parsed.goalie_lines[0]
        assert line.name == "Kārlis Liepa"
        assert line.goals_against == 1
        assert line.shots == 20
        assert line.saves == 19
        assert line.minutes_seconds == 3600

    def test_mvp(self):
        parsed = parse_protocol(PROTOCOL_HTML)
        assert [m.name for m in parsed.mvps] == ["Jānis Bērziņš"]
        assert parsed.mvps[0].jersey_number == "10"

    def test_empty_page(self):
        parsed = parse_protocol("<html></html>")
        assert parsed.goals == [] and parsed.penalties == [] and parsed.goalie_lines == []


class TestHelpers:
    def test_time_to_seconds(self):
        assert parse_time_to_seconds("05:12") == 312
        assert parse_time_to_seconds("") is None

    def test_non_player_assist_text(self, teams):
        keys = build_non_player_keys(teams)
        assert is_non_player_assist_text("Rīgas Lauvas", keys)
        assert is_non_player_assist_text("Aizturēta soda laikā", keys)
        assert is_non_player_assist_text("(tukšos vārtos)", keys)
        assert not is_non_player_assist_text("Pēteris Kalniņš", keys)

    def test_protocol_url(self):
        assert build_protocol_url("123-x", "2025-26") == "https://www.floorball.lv/lv/2025/chempionats/vv/proto/123"
        assert build_protocol_url("vv:34:2025-09-13:tmb:tma", "2025") is None
        assert build_protocol_url("12", "2025") is None
        assert build_protocol_url(None) is None
