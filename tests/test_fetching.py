"""
Tests for direct fetching with the privileged relay fallback.
"""

import asyncio
import gzip
from unittest.mock import Mock

import pytest
import requests

from svg_scout.fetching import Fetcher, decode_svg_bytes
from svg_scout.models import FetchResult

SVG = b'<svg xmlns="http://www.w3.org/2000/svg"><g/></svg>'


class FakeRelay:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def fetch_external(self, url):
        self.calls.append(url)
        return self.result


def _session(status_code=200, content=SVG, error=None):
    session = Mock()
    session.headers = {}
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = Mock(
            status_code=status_code,
            ok=200 <= status_code < 400,
            content=content,
            encoding="utf-8",
        )
    return session


class TestFetcher:
    """Test cases for the direct-then-relay fetch order."""

    def test_direct_success(self):
        relay = FakeRelay(FetchResult(content="unused"))
        session = _session()
        fetcher = Fetcher(session=session, relay=relay, referer="https://example.com/")
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) == SVG.decode()
        assert relay.calls == []
        assert session.headers["Referer"] == "https://example.com/"
        assert "User-Agent" in session.headers

    def test_sends_configured_user_agent(self):
        """Test that the configured agent replaces the requests default."""
        fetcher = Fetcher(user_agent="Custom/1.0")
        assert fetcher._session.headers["User-Agent"] == "Custom/1.0"

        session = _session()
        fetcher = Fetcher(session=session, user_agent="Custom/2.0")
        asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg"))
        assert session.headers["User-Agent"] == "Custom/2.0"

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_refused_uses_relay(self, status_code):
        relay = FakeRelay(FetchResult(content="<svg/>"))
        fetcher = Fetcher(session=_session(status_code=status_code), relay=relay)
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) == "<svg/>"
        assert relay.calls == ["https://cdn.example.com/a.svg"]

    def test_connection_error_uses_relay(self):
        relay = FakeRelay(FetchResult(content="<svg/>"))
        fetcher = Fetcher(
            session=_session(error=requests.ConnectionError("refused")), relay=relay
        )
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) == "<svg/>"

    def test_relay_failure(self):
        relay = FakeRelay(FetchResult(error="net::ERR_FAILED"))
        fetcher = Fetcher(session=_session(status_code=403), relay=relay)
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) is None

    def test_not_found_skips_relay(self):
        relay = FakeRelay(FetchResult(content="<svg/>"))
        fetcher = Fetcher(session=_session(status_code=404), relay=relay)
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) is None
        assert relay.calls == []

    def test_no_relay(self):
        fetcher = Fetcher(session=_session(error=requests.Timeout("slow")))
        assert asyncio.run(fetcher.fetch_text("https://cdn.example.com/a.svg")) is None


class TestDecodeSvgBytes:
    """Test cases for response body decoding."""

    def test_plain(self):
        assert decode_svg_bytes(SVG, "a.svg") == SVG.decode()

    def test_gzip(self):
        assert decode_svg_bytes(gzip.compress(SVG), "a.svgz") == SVG.decode()

    def test_binary_is_rejected(self):
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
        with pytest.raises(ValueError):
            decode_svg_bytes(png, "a.svg")
