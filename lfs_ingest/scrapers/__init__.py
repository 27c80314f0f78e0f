# lfs_ingest/scrapers/__init__.py
"""
Scrapers module - floorball.lv fetchers (stats AJAX, calendar AJAX, protocol pages)
"""

from .base_scraper import BaseScraper
from .stats_scraper import SkaterStatsScraper, GoalieStatsScraper
from .calendar_scraper import CalendarScraper, CalendarFetch
from .protocol_scraper import ProtocolScraper, build_protocol_url

__all__ = [
    "BaseScraper",
    "SkaterStatsScraper",
    "GoalieStatsScraper",
    "CalendarScraper",
    "CalendarFetch",
    "ProtocolScraper",
    "build_protocol_url",
]
