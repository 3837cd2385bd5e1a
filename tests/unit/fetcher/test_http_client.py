"""
Tests for the single-shot Fetcher.

Responses are faked with aioresponses; the tests assert on the returned
result/error values only.
"""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from pagelift.fetcher.http_client import http_error
from pagelift.fetcher.user_agents import googlebot_identity, minimal_identity
from pagelift.protocols import FetchError, FetchErrorKind, FetchResult

URL = "https://example.com/story"


@pytest.mark.unit
class TestFetcher:
    """Fetch outcomes via the public API."""

    @pytest.mark.asyncio
    async def test_success_returns_html(self, fetcher):
        with aioresponses() as m:
            m.get(URL, status=200, body="<html><body>ok</body></html>", headers={"Content-Type": "text/html"})

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchResult)
        assert result.html == "<html><body>ok</body></html>"
        assert result.content_length == len(result.html)
        assert result.content_type == "text/html"
        assert result.final_url == URL

    @pytest.mark.asyncio
    async def test_non_html_content_is_accepted(self, fetcher):
        with aioresponses() as m:
            m.get(URL, status=200, body='{"a": 1}', headers={"Content-Type": "application/json"})

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchResult)
        assert result.html == '{"a": 1}'

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 429, 451])
    async def test_blocking_statuses(self, fetcher, status):
        with aioresponses() as m:
            m.get(URL, status=status)

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.BLOCKED
        assert result.is_blocked
        assert result.status_code == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,message",
        [
            (404, "Page not found"),
            (410, "This page no longer exists"),
            (503, "Server error — the website is having issues"),
            (418, "HTTP error 418"),
        ],
    )
    async def test_http_errors(self, fetcher, status, message):
        with aioresponses() as m:
            m.get(URL, status=status)

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.HTTP
        assert result.message == message
        assert not result.is_blocked

    @pytest.mark.asyncio
    async def test_timeout_is_distinct_kind(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=asyncio.TimeoutError())

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_failure_is_network(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=aiohttp.ClientConnectionError("dns failure"))

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_unknown(self, fetcher):
        with aioresponses() as m:
            m.get(URL, exception=ValueError("weird"))

            result = await fetcher.fetch(URL)

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.UNKNOWN
        assert result.message == "weird"

    @pytest.mark.asyncio
    async def test_invalid_url_is_rejected_without_request(self, fetcher):
        with aioresponses():
            result = await fetcher.fetch("ftp://example.com/file")

        assert isinstance(result, FetchError)
        assert result.kind is FetchErrorKind.UNKNOWN

    @pytest.mark.asyncio
    async def test_identity_headers_are_sent(self, fetcher, config):
        with aioresponses() as m:
            m.get(URL, status=200, body="ok")

            await fetcher.fetch(URL, googlebot_identity(config.fetcher))

            request = next(iter(m.requests.values()))[0]
        assert "Googlebot" in request.kwargs["headers"]["User-Agent"]

    @pytest.mark.asyncio
    async def test_default_identity_sends_origin_referer(self, fetcher):
        with aioresponses() as m:
            m.get(URL, status=200, body="ok")

            await fetcher.fetch(URL)

            request = next(iter(m.requests.values()))[0]
        assert request.kwargs["headers"]["Referer"] == "https://example.com/"
        assert request.kwargs["headers"]["Sec-Fetch-Mode"] == "navigate"

    def test_minimal_identity_has_only_accept(self, config):
        identity = minimal_identity(config.fetcher)
        assert list(identity.headers) == ["Accept"]
        assert identity.timeout == config.fetcher.minimal_timeout


@pytest.mark.unit
def test_http_error_table():
    """Status mapping is pure and usable without a session."""
    error = http_error(403, "https://example.com/final")
    assert error.kind is FetchErrorKind.BLOCKED
    assert error.message == "Access denied — this page requires authentication"
    assert error.final_url == "https://example.com/final"
