"""SVG responses the browser downloaded while loading the page."""

from __future__ import annotations

from typing import List

from ..models import AssetSource, DiscoveredAsset
from ..svg_utils import make_asset
from .base import DetectionContext


class NetworkDetector:
    """Catches SVGs no DOM strategy accounts for, such as images swapped out by scripts.

    Runs last so that any asset a DOM strategy also found keeps that
    strategy's source after deduplication.
    """

    name = "Network SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        seen = set()
        for resource in context.network_resources:
            if resource.url in seen:
                continue
            seen.add(resource.url)
            item = make_asset(resource.content, AssetSource.NETWORK_FALLBACK, resource.url)
            if item:
                items.append(item)
        return items
