# lfs_ingest/scrapers/protocol_scraper.py - per-match protocol pages
import re
from typing import Any, Optional

from .base_scraper import BaseScraper
from lfs_ingest.core.config import config
from lfs_ingest.core.errors import FetchError
from lfs_ingest.core.http import HttpClient
from lfs_ingest.utils.debug_cache import save_debug_response
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)

_NUMERIC_PREFIX_RE = re.compile(r"^(\d{3,})")


def build_protocol_url(external_id: Optional[str], season: Any = None, league: str = "vv") -> Optional[str]:
    """Protocol page URL for a match, or None when the external id has no numeric protocol prefix."""
    if not external_id:
        return None
    match = _NUMERIC_PREFIX_RE.match(str(external_id).strip())
    if not match:
        logger.warning(f"[events] Invalid external_id, missing numeric prefix external_id={external_id}")
        return None
    season_path = str(season or config.DEFAULT_SEASON).split("-")[0].strip() or config.DEFAULT_SEASON
    return f"{config.LFS_BASE_URL}/lv/{season_path}/chempionats/{league}/proto/{match.group(1)}"


class ProtocolScraper(BaseScraper):
    def __init__(
        self,
        http: Optional[HttpClient] = None,
        user_agent: str = config.LFS_USER_AGENT,
        cookie: str = config.LFS_COOKIE,
        save_debug: bool = config.DEBUG_SAVE_HTML,
    ):
        super().__init__(http)
        self.user_agent = user_agent
        self.cookie = cookie
        self.save_debug = save_debug

    def fetch(self, url: str) -> Optional[str]:
        """Protocol HTML, or None when the page does not exist (404)."""
        headers = {"user-agent": self.user_agent}
        if self.cookie:
            headers["cookie"] = self.cookie
        try:
            result = self.http.fetch_with_retry(url, headers=headers)
        except FetchError as e:
            if e.not_found:
                logger.warning(f"[events] protocol 404, skipping url={url}")
                return None
            raise
        self.scraped_count += 1
        logger.info(f"[events] protocol {url} status={result.status} content-type={result.content_type}")
        if self.save_debug:
            save_debug_response("last_protocol.html", result.body)
        return result.body

    def scrape(self, external_id: Optional[str], season: Any = None) -> Optional[str]:
        url = build_protocol_url(external_id, season)
        if url is None:
            return None
        return self.fetch(url)
