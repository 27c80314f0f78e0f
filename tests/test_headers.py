"""Tests for stats header detection and the text helpers."""

from __future__ import annotations

import pytest

from lfs_ingest.processors.headers import (
    HeaderKey,
    detect_header_key,
    parse_percent,
    resolve_position,
    strip_html,
)


class TestDetectHeaderKey:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Vārti", HeaderKey.GOALS),
            ("Spēles", HeaderKey.GAMES),
            ("Komanda", HeaderKey.TEAM),
            ("Piespēles", HeaderKey.ASSISTS),
            ("PIM", HeaderKey.PEN_MIN),
            ("%", HeaderKey.SAVE_PCT),
            ("Spēlētājs", HeaderKey.NAME),
            ("Cena (final)", HeaderKey.PRICE_FINAL),
        ],
    )
    def test_known_headers(self, text, expected):
        assert detect_header_key(text) == expected

    @pytest.mark.parametrize("text", [None, "", "Xyzzy"])
    def test_unknown_is_none(self, text):
        assert detect_header_key(text) is None


class TestPositions:
    def test_latvian_labels(self):
        assert resolve_position("Vārtsargs") == "V"
        assert resolve_position("Aizsargs") == "A"
        assert resolve_position("Uzbrucējs") == "U"

    def test_unknown(self):
        assert resolve_position("?") is None


class TestTextHelpers:
    def test_strip_html(self):
        assert strip_html("<a href='/x'> Team  A</a>") == "Team A"
        assert strip_html(None) == ""

    def test_parse_percent(self):
        assert parse_percent("90%") == 90.0
        assert parse_percent("0,9") == pytest.approx(90.0)
        assert parse_percent("") is None
