# lfs_ingest/scrapers/base_scraper.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from lfs_ingest.core.http import HttpClient
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


class BaseScraper(ABC):
    """Base class for all floorball.lv scrapers with shared HTTP client + metrics."""

    def __init__(self, http: Optional[HttpClient] = None):
        self.http = http or HttpClient()
        self.scraped_count = 0
        self.errors_count = 0

    @abstractmethod
    def scrape(self, *args, **kwargs) -> Any:
        """Main scraping method - must be implemented by subclasses"""
        raise NotImplementedError

    # ---------- logging ----------
    def _log_scrape_start(self, scraper_type: str):
        logger.info(f"Starting {scraper_type} scraping.")

    def _log_scrape_end(self, scraper_type: str, results: List[Any]):
        self.scraped_count = len(results)
        logger.info(f"{scraper_type} completed: {self.scraped_count} items")

    def _handle_scraping_error(self, error: Exception, scraper_type: str):
        self.errors_count += 1
        logger.error(f"{scraper_type} scraper error: {error}")

    def get_stats(self) -> Dict[str, int]:
        return {
            "scraped": self.scraped_count,
            "errors": self.errors_count,
            "requests": self.http.requests_made,
        }
