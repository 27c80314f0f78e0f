"""Tests for configuration helpers."""

from __future__ import annotations

import logging

import pytest

from lfs_ingest.core.config import STATS_SETTINGS, Config, parse_bool
from lfs_ingest.utils.logger import resolve_level


class TestConfig:
    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), (" Yes ", True), ("on", True),
        ("0", False), ("", False), (None, False), ("nope", False),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_validate_db_settings(self):
        assert Config.validate_config() is True

    def test_validate_reports_every_missing_setting(self, monkeypatch):
        for name in STATS_SETTINGS:
            monkeypatch.setattr(Config, name, "")
        with pytest.raises(ValueError) as exc_info:
            Config.validate_config(STATS_SETTINGS)
        message = str(exc_info.value)
        assert all(f"{name} not set" in message for name in STATS_SETTINGS)


class TestLogLevel:
    def test_ingest_debug_forces_debug(self, monkeypatch):
        monkeypatch.setattr(Config, "INGEST_DEBUG", True)
        monkeypatch.setattr(Config, "LOG_LEVEL", "WARNING")
        assert resolve_level(Config()) == logging.DEBUG

    @pytest.mark.parametrize("name,expected", [
        ("warning", logging.WARNING), ("INFO", logging.INFO), ("chatty", logging.INFO),
    ])
    def test_log_level_without_debug_flag(self, monkeypatch, name, expected):
        monkeypatch.setattr(Config, "INGEST_DEBUG", False)
        monkeypatch.setattr(Config, "LOG_LEVEL", name)
        assert resolve_level(Config()) == expected
