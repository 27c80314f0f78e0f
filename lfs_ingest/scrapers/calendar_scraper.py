# lfs_ingest/scrapers/calendar_scraper.py - season calendar via the DataTables AJAX endpoint
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from .base_scraper import BaseScraper
from lfs_ingest.core.config import config
from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.core.http import FORM_CONTENT_TYPE, AJAX_ACCEPT, HttpClient, looks_like_html
from lfs_ingest.processors.ajax_rows import extract_data_array, total_records
from lfs_ingest.processors.calendar_processor import season_start_year
from lfs_ingest.processors.headers import load_html, clean_text
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)

ALL_MONTHS = "00"


@dataclass
class CalendarFetch:
    rows: List[Any] = field(default_factory=list)
    months_ok: List[str] = field(default_factory=list)
    months_failed: List[str] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.months_failed) and not self.months_ok


def calendar_page_url(season: str, league: str) -> str:
    return f"{config.LFS_BASE_URL}/lv/{season_start_year(season)}/chempionats/{league}/kalendars"


def build_calendar_form(league: str, season_code: str, month: str, start: int, length: int, echo: int = 1) -> str:
    return urlencode({
        "url": f"{config.LFS_BASE_URL}/lv",
        "menu": "chempionats",
        "filtrs_grupa": league,
        "filtrs_sezona": season_code,
        "filtrs_spelu_veids": "00",
        "filtrs_menesis": month,
        "filtrs_komanda": "00",
        "filtrs_majas_viesi": "00",
        "iDisplayStart": str(start),
        "iDisplayLength": str(length),
        "sEcho": str(echo),
    })


def parse_month_options(html: str) -> List[str]:
    """Month filter values from the calendar page's <select name="filtrs_menesis">."""
    select = load_html(html).select_one('select[name="filtrs_menesis"]')
    if select is None:
        return []
    values = []
    for option in select.find_all("option"):
        value = clean_text(option.get("value"))
        if value and value != ALL_MONTHS and value not in values:
            values.append(value)
    return values


class CalendarScraper(BaseScraper):
    """Month-partitioned, paginated calendar fetch."""

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        ajax_url: str = config.LFS_CALENDAR_AJAX_URL,
        season_code: str = config.CALENDAR_SEASON_CODE,
        page_size: int = config.CALENDAR_PAGE_SIZE,
        fallback_months: Optional[List[str]] = None,
        user_agent: str = config.LFS_USER_AGENT,
        cookie: str = config.LFS_COOKIE,
    ):
        super().__init__(http)
        self.ajax_url = ajax_url
        self.season_code = season_code
        self.page_size = max(1, page_size)
        self.fallback_months = list(fallback_months or config.CALENDAR_MONTHS)
        self.user_agent = user_agent
        self.cookie = cookie

    def _headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "accept": AJAX_ACCEPT,
            "content-type": FORM_CONTENT_TYPE,
            "x-requested-with": "XMLHttpRequest",
            "user-agent": self.user_agent,
        }
        if referer:
            headers["referer"] = referer
        if self.cookie:
            headers["cookie"] = self.cookie
        return headers

    def discover_months(self, season: str, league: str) -> List[str]:
        url = calendar_page_url(season, league)
        try:
            result = self.http.fetch_with_retry(url, headers={"user-agent": self.user_agent})
            months = parse_month_options(result.body)
        except FetchError as e:
            logger.warning(f"[calendar] month discovery failed ({e}); using configured months")
            return list(self.fallback_months)
        if not months:
            logger.info("[calendar] no month filter on calendar page; using configured months")
            return list(self.fallback_months)
        logger.info(f"[calendar] discovered months: {', '.join(months)}")
        return months

    def _fetch_page(self, league: str, month: str, start: int, echo: int, referer: str) -> Dict[str, Any]:
        body = build_calendar_form(league, self.season_code, month, start, self.page_size, echo)
        result = self.http.fetch_with_retry(self.ajax_url, method="POST", headers=self._headers(referer), data=body)
        raw = result.body or ""
        if not raw.strip():
            raise UpstreamFormatError(f"empty calendar response (month={month}, start={start})")
        if looks_like_html(raw):
            raise UpstreamFormatError(
                f"calendar returned HTML (month={month}, content-type={result.content_type})"
            )
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise UpstreamFormatError(f"calendar returned non-JSON (month={month})") from e
        if not isinstance(payload, (dict, list)):
            raise UpstreamFormatError(f"calendar returned unexpected payload type (month={month})")
        return payload

    def fetch_month(self, league: str, month: str, referer: str) -> List[Any]:
        rows: List[Any] = []
        start = 0
        echo = 1
        while True:
            payload = self._fetch_page(league, month, start, echo, referer)
            page = extract_data_array(payload)
            rows.extend(page)
            total = total_records(payload)
            logger.debug(f"[calendar] month {month} start={start}: page={len(page)} total={total}")
            if len(page) < self.page_size:
                break
            if total is not None and len(rows) >= total:
                break
            start += self.page_size
            echo += 1
        return rows

    def scrape(self, season: str, league: str) -> CalendarFetch:
        self._log_scrape_start(f"calendar {league}/{season}")
        referer = calendar_page_url(season, league)
        out = CalendarFetch()
        for month in self.discover_months(season, league):
            try:
                month_rows = self.fetch_month(league, month, referer)
            except (FetchError, UpstreamFormatError) as e:
                self._handle_scraping_error(e, f"calendar month {month}")
                out.months_failed.append(month)
                continue
            logger.info(f"[calendar] month {month}: {len(month_rows)} rows")
            out.months_ok.append(month)
            out.rows.extend(month_rows)
        self._log_scrape_end("calendar", out.rows)
        logger.info(
            f"[calendar] months ok={len(out.months_ok)} failed={len(out.months_failed)} rows={len(out.rows)}"
        )
        return out
