# lfs_ingest/core/http.py
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests

from .config import config
from .errors import FetchError, UpstreamFormatError
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    "user-agent": config.LFS_USER_AGENT,
    "accept": "text/html,application/xhtml+xml",
    "accept-language": "lv,en;q=0.9",
}

AJAX_ACCEPT = "application/json, text/javascript, */*; q=0.01"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"


@dataclass
class FetchResult:
    body: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        for k, v in self.headers.items():
            if k.lower() == "content-type":
                return v
        return "unknown"


@dataclass
class AjaxResponse:
    raw: str
    data: Any

    @property
    def is_json(self) -> bool:
        return not isinstance(self.data, str)


def looks_like_html(text: Optional[str]) -> bool:
    head = (text or "").lstrip()[:200].lower()
    return head.startswith("<") or "<html" in head or "<!doctype" in head


class RequestGate:
    """Minimum delay between consecutive requests, shared by all clients by default."""

    def __init__(
        self,
        min_gap_ms: int = config.MIN_REQUEST_GAP_MS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_gap = max(0, min_gap_ms) / 1000.0
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None

    def wait(self) -> float:
        waited = 0.0
        if self._last is not None:
            elapsed = self._clock() - self._last
            if elapsed < self.min_gap:
                waited = self.min_gap - elapsed
                self._sleep(waited)
        self._last = self._clock()
        return waited


default_gate = RequestGate()


class HttpClient:
    """Sequential HTTP access to the league site with retry + pacing."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        gate: Optional[RequestGate] = None,
        max_attempts: int = config.RETRY_ATTEMPTS,
        backoff_ms: int = config.RETRY_BACKOFF_MS,
        timeout: int = config.REQUEST_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.gate = gate or default_gate
        self.max_attempts = max(1, max_attempts)
        self.backoff_ms = backoff_ms
        self.timeout = timeout
        self._sleep = sleep
        self.requests_made = 0

    def fetch_with_retry(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        data: Any = None,
        max_attempts: Optional[int] = None,
        backoff_ms: Optional[int] = None,
    ) -> FetchResult:
        attempts = max(1, max_attempts or self.max_attempts)
        backoff = self.backoff_ms if backoff_ms is None else backoff_ms
        merged = dict(DEFAULT_HEADERS)
        merged.update(headers or {})

        last_error = ""
        last_status: Optional[int] = None
        for attempt in range(1, attempts + 1):
            self.gate.wait()
            self.requests_made += 1
            logger.debug(f"core.http | {method} {url} attempt {attempt}/{attempts}")
            try:
                resp = self.session.request(method, url, headers=merged, data=data, timeout=self.timeout)
                if 200 <= resp.status_code < 300:
                    return FetchResult(body=resp.text, status=resp.status_code, headers=dict(resp.headers))
                last_status = resp.status_code
                last_error = f"HTTP {resp.status_code}"
                if resp.status_code == 404:
                    raise FetchError(f"{method} {url} -> 404", url=url, status=404, attempts=attempt)
            except requests.RequestException as e:
                last_error = str(e)
                last_status = None

            logger.warning(f"core.http | {method} {url} attempt {attempt}/{attempts} failed: {last_error}")
            if attempt < attempts:
                self._sleep(backoff * attempt / 1000.0)

        raise FetchError(
            f"{method} {url} failed after {attempts} attempts: {last_error}",
            url=url,
            status=last_status,
            attempts=attempts,
        )

    def fetch_json_with_retry(self, url: str, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("accept", "application/json")
        result = self.fetch_with_retry(url, headers=headers, **kwargs)
        try:
            return json.loads(result.body)
        except ValueError as e:
            raise UpstreamFormatError(f"Failed to parse JSON from {url}") from e

    def post_ajax(
        self,
        url: str,
        form_body: str,
        referer: str,
        user_agent: str,
        cookie: str,
        origin: Optional[str] = None,
    ) -> AjaxResponse:
        """POST a captured form to an AJAX endpoint; data falls back to the raw text."""
        if not referer:
            raise ValueError("AJAX request needs a referer")
        if not user_agent:
            raise ValueError("AJAX request needs a user-agent")
        if not cookie:
            raise ValueError("AJAX request needs a cookie")

        headers = {
            "accept": AJAX_ACCEPT,
            "content-type": FORM_CONTENT_TYPE,
            "x-requested-with": "XMLHttpRequest",
            "origin": origin or config.LFS_BASE_URL,
            "referer": referer,
            "user-agent": user_agent,
            "cookie": cookie,
        }
        result = self.fetch_with_retry(url, method="POST", headers=headers, data=form_body)
        raw = result.body
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(
                f"core.http | non-JSON AJAX response from {url} "
                f"(content-type={result.content_type}, html={looks_like_html(raw)})"
            )
            data = raw
        return AjaxResponse(raw=raw, data=data)
