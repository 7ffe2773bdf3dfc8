"""Retrieval of externally referenced SVG documents."""

from __future__ import annotations

import asyncio
import gzip
import logging
from typing import Optional, Protocol

import requests
from filetype import guess

from .config import DEFAULT_USER_AGENT
from .models import FetchResult

logger = logging.getLogger("svg_scout")

# Responses that mean "not allowed from here" rather than "not found".
RELAY_STATUS_CODES = {401, 403}
MAX_SVG_BYTES = 10 * 1024 * 1024


class FetchRelay(Protocol):
    """Privileged fetcher used when direct retrieval is refused."""

    async def fetch_external(self, url: str) -> FetchResult:
        ...


class BrowserFetchRelay:
    """Relay requests through a Playwright request context.

    The request context shares cookies and credentials with the browser
    session that rendered the page, so it can read references that an
    anonymous HTTP client is denied.
    """

    def __init__(self, request_context, timeout: float = 15.0) -> None:
        self._request = request_context
        self._timeout = timeout

    async def fetch_external(self, url: str) -> FetchResult:
        try:
            response = await self._request.get(url, timeout=self._timeout * 1000)
        except Exception as exc:  # pylint: disable=broad-except
            return FetchResult(error=str(exc))
        try:
            if not response.ok:
                return FetchResult(error=f"HTTP {response.status}")
            body = await response.body()
            return FetchResult(content=decode_svg_bytes(body, url))
        except Exception as exc:  # pylint: disable=broad-except
            return FetchResult(error=str(exc))
        finally:
            await response.dispose()


def decode_svg_bytes(data: bytes, url: str, encoding: Optional[str] = None) -> str:
    """Decode a response body, unpacking gzip (``.svgz``) payloads."""
    kind = guess(data)
    if kind is not None:
        if kind.extension == "gz":
            data = gzip.decompress(data)
        elif kind.mime != "image/svg+xml" and not kind.mime.startswith("text/"):
            raise ValueError(f"{url} returned {kind.mime}, not SVG")
    return data.decode(encoding or "utf-8", errors="replace")


class Fetcher:
    """Fetch a reference directly, falling back to the relay when refused."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        relay: Optional[FetchRelay] = None,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        referer: Optional[str] = None,
    ) -> None:
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = user_agent
        if referer:
            self._session.headers["Referer"] = referer
        self._relay = relay
        self._timeout = timeout

    async def fetch_text(self, url: str) -> Optional[str]:
        try:
            response = await asyncio.to_thread(
                self._session.get, url, timeout=self._timeout
            )
        except requests.RequestException as exc:
            logger.debug("Direct fetch of %s failed: %s", url, exc)
            return await self._fetch_via_relay(url)

        if response.status_code in RELAY_STATUS_CODES:
            logger.debug("Direct fetch of %s refused (HTTP %s)", url, response.status_code)
            return await self._fetch_via_relay(url)
        if not response.ok:
            logger.warning("Failed to fetch SVG %s: HTTP %s", url, response.status_code)
            return None

        data = response.content
        if len(data) > MAX_SVG_BYTES:
            logger.warning(
                "Skipping %s: response larger than %s bytes", url, MAX_SVG_BYTES
            )
            return None
        try:
            return decode_svg_bytes(data, url, response.encoding)
        except (OSError, LookupError, ValueError) as exc:
            logger.warning("Skipping %s: %s", url, exc)
            return None

    async def _fetch_via_relay(self, url: str) -> Optional[str]:
        if self._relay is None:
            logger.warning("Failed to fetch SVG %s and no relay is available", url)
            return None
        result = await self._relay.fetch_external(url)
        if not result.ok:
            logger.warning("Relay failed to fetch SVG %s: %s", url, result.error)
            return None
        return result.content
