"""Tests for the paced, retrying HTTP client."""

from __future__ import annotations

import json

import pytest
import requests

from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.core.http import RequestGate, looks_like_html
from tests.fakes import FakeHttpResponse, queued


class TestFetchWithRetry:
    def test_success_first_attempt(self, make_http):
        http = make_http(queued(FakeHttpResponse(200, "<html>ok</html>")))
        result = http.fetch_with_retry("https://example.test/")
        assert result.status == 200
        assert result.body == "<html>ok</html>"
        assert len(http.session.calls) == 1
        assert http.sleeps == []

    def test_retries_with_linear_backoff(self, make_http):
        http = make_http(queued(FakeHttpResponse(500), FakeHttpResponse(502), FakeHttpResponse(200, "fine")))
        result = http.fetch_with_retry("https://example.test/")
        assert result.body == "fine"
        assert http.sleeps == [pytest.approx(0.1), pytest.approx(0.2)]
        assert http.requests_made == 3

    def test_exhaustion_raises(self, make_http):
        http = make_http(queued(FakeHttpResponse(500), FakeHttpResponse(500), FakeHttpResponse(500)))
        with pytest.raises(FetchError) as exc:
            http.fetch_with_retry("https://example.test/")
        assert exc.value.status == 500
        assert exc.value.attempts == 3
        assert len(http.sleeps) == 2

    def test_404_is_terminal(self, make_http):
        http = make_http(queued(FakeHttpResponse(404), FakeHttpResponse(200)))
        with pytest.raises(FetchError) as exc:
            http.fetch_with_retry("https://example.test/missing")
        assert exc.value.not_found
        assert len(http.session.calls) == 1

    def test_network_error_retried(self, make_http):
        http = make_http(queued(requests.ConnectionError("reset"), FakeHttpResponse(200, "back")))
        assert http.fetch_with_retry("https://example.test/").body == "back"

    def test_json_parse_failure(self, make_http):
        http = make_http(queued(FakeHttpResponse(200, "<html>blocked</html>")))
        with pytest.raises(UpstreamFormatError):
            http.fetch_json_with_retry("https://example.test/data")


class TestPostAjax:
    def test_json_payload(self, make_http):
        http = make_http(queued(FakeHttpResponse(200, json.dumps({"data": [[1, 2]]}))))
        resp = http.post_ajax("https://example.test/ajax", "a=1", referer="https://example.test/p",
                              user_agent="UA", cookie="sid=1")
        assert resp.is_json
        assert resp.data == {"data": [[1, 2]]}
        call = http.session.calls[0]
        assert call["method"] == "POST"
        assert call["data"] == "a=1"
        assert call["headers"]["x-requested-with"] == "XMLHttpRequest"
        assert call["headers"]["cookie"] == "sid=1"

    def test_html_falls_back_to_raw(self, make_http):
        http = make_http(queued(FakeHttpResponse(200, "<!doctype html><p>login</p>")))
        resp = http.post_ajax("https://example.test/ajax", "a=1", referer="r", user_agent="UA", cookie="c")
        assert not resp.is_json
        assert looks_like_html(resp.raw)

    @pytest.mark.parametrize("field", ["referer", "user_agent", "cookie"])
    def test_missing_header_inputs(self, make_http, field):
        http = make_http(queued())
        kwargs = {"referer": "r", "user_agent": "UA", "cookie": "c"}
        kwargs[field] = ""
        with pytest.raises(ValueError):
            http.post_ajax("https://example.test/ajax", "a=1", **kwargs)
        assert http.session.calls == []


class TestRequestGate:
    def test_waits_for_remaining_gap(self):
        now = [0.0]
        slept = []
        gate = RequestGate(min_gap_ms=1000, sleep=slept.append, clock=lambda: now[0])
        assert gate.wait() == 0.0
        now[0] = 0.3
        assert gate.wait() == pytest.approx(0.7)
        assert slept == [pytest.approx(0.7)]

    def test_no_wait_after_gap(self):
        now = [0.0]
        slept = []
        gate = RequestGate(min_gap_ms=500, sleep=slept.append, clock=lambda: now[0])
        gate.wait()
        now[0] = 2.0
        gate.wait()
        assert slept == []
