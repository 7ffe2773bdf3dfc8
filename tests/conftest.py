"""Shared fixtures: snapshot builders and network-free fetch doubles."""

import asyncio
import io

import pytest
from PIL import Image

from svg_scout.models import AssetSource, PageSnapshot
from svg_scout.scanner import build_context
from svg_scout.svg_utils import make_asset

PAGE_URL = "https://example.com/docs/page.html"

CIRCLE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24">'
    '<circle cx="12" cy="12" r="10"/></svg>'
)
SQUARE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 16 16">'
    '<rect width="16" height="16"/></svg>'
)


class FakeFetcher:
    """Answers fetches from a dict and records every URL asked for."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def fetch_text(self, url):
        self.calls.append(url)
        return self.responses.get(url)


@pytest.fixture
def page_url():
    return PAGE_URL


@pytest.fixture
def make_context():
    def _make(
        html,
        fetcher=None,
        network=(),
        closed_exposed=False,
        url=PAGE_URL,
        stylesheets=(),
    ):
        snapshot = PageSnapshot(
            html=html,
            url=url,
            stylesheets=list(stylesheets),
            network_resources=list(network),
            closed_shadow_roots_exposed=closed_exposed,
        )
        return build_context(snapshot, fetcher)

    return _make


@pytest.fixture
def detect():
    def _detect(detector, context):
        return asyncio.run(detector.detect(context.for_detector()))

    return _detect


@pytest.fixture
def asset_factory():
    def _factory(content=CIRCLE_SVG, source=AssetSource.INLINE, source_url=None):
        asset = make_asset(content, source, source_url)
        assert asset is not None
        return asset

    return _factory


@pytest.fixture
def transparent_png():
    def _png(width, height):
        buffer = io.BytesIO()
        Image.new("RGBA", (width, height), (0, 0, 0, 0)).save(buffer, format="PNG")
        return buffer.getvalue()

    return _png


@pytest.fixture
def fake_fetcher():
    return FakeFetcher
