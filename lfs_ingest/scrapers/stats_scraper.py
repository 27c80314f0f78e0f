# lfs_ingest/scrapers/stats_scraper.py - season skater/goalie stats via the AJAX tables
from abc import abstractmethod
from typing import Any, Callable, List, Optional

from .base_scraper import BaseScraper
from lfs_ingest.core.config import config
from lfs_ingest.core.errors import UpstreamFormatError
from lfs_ingest.core.http import HttpClient, looks_like_html
from lfs_ingest.processors.stats_processor import PlayerStatsRow, map_goalie_rows, map_skater_rows
from lfs_ingest.utils.debug_cache import save_debug_response
from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)


class _AjaxStatsScraper(BaseScraper):
    """POSTs a captured browser form to a stats endpoint and maps the rows."""

    label = "stats"
    debug_filename = "last_stats.json"

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        *,
        page_url: str,
        endpoint: str,
        form: str,
        user_agent: str = config.LFS_USER_AGENT,
        cookie: str = config.LFS_COOKIE,
        save_debug: bool = config.DEBUG_SAVE_HTML,
        tracker: Optional[WarningTracker] = None,
    ):
        super().__init__(http)
        self.page_url = page_url
        self.endpoint = endpoint
        self.form = form
        self.user_agent = user_agent
        self.cookie = cookie
        self.save_debug = save_debug
        self.tracker = tracker or WarningTracker()

    @abstractmethod
    def _mapper(self) -> Callable[..., List[PlayerStatsRow]]:
        raise NotImplementedError

    def scrape(self) -> List[PlayerStatsRow]:
        self._log_scrape_start(self.label)
        logger.info(f"[stats] {self.label} form length: {len(self.form or '')}")
        response = self.http.post_ajax(
            self.endpoint or self.page_url,
            self.form,
            referer=self.page_url,
            user_agent=self.user_agent,
            cookie=self.cookie,
        )
        if self.save_debug:
            save_debug_response(self.debug_filename, response.raw)

        if not response.is_json:
            kind = "HTML" if looks_like_html(response.raw) else "non-JSON"
            raise UpstreamFormatError(f"{self.label} endpoint returned {kind} ({len(response.raw)} chars)")

        rows = self._mapper()(response.data, self.tracker)
        self._log_scrape_end(self.label, rows)
        return rows


class SkaterStatsScraper(_AjaxStatsScraper):
    label = "skaters"
    debug_filename = "last_skaters.json"

    def __init__(self, http: Optional[HttpClient] = None, **kwargs: Any):
        kwargs.setdefault("page_url", config.LFS_SKATERS_URL)
        kwargs.setdefault("endpoint", config.LFS_SKATERS_ENDPOINT)
        kwargs.setdefault("form", config.LFS_SKATERS_FORM)
        super().__init__(http, **kwargs)

    def _mapper(self):
        return map_skater_rows


class GoalieStatsScraper(_AjaxStatsScraper):
    label = "goalies"
    debug_filename = "last_goalies.json"

    def __init__(self, http: Optional[HttpClient] = None, **kwargs: Any):
        kwargs.setdefault("page_url", config.LFS_GOALIES_URL)
        kwargs.setdefault("endpoint", config.LFS_GOALIES_ENDPOINT)
        kwargs.setdefault("form", config.LFS_GOALIES_FORM)
        super().__init__(http, **kwargs)

    def _mapper(self):
        return map_goalie_rows
