"""SVG site icons declared with ``<link rel="icon">`` and friends."""

from __future__ import annotations

from typing import List

from ..config import SVG_MIME_TYPES
from ..models import AssetSource, DiscoveredAsset
from ..svg_utils import is_svg_data_uri, is_svg_url, make_asset
from .base import DetectionContext, find_live

ICON_RELATIONS = ("icon", "shortcut icon", "apple-touch-icon", "mask-icon")


def _relation(link) -> str:
    rel = link.get("rel") or ""
    if isinstance(rel, list):
        rel = " ".join(rel)
    return " ".join(rel.lower().split())


class FaviconDetector:
    name = "Favicon SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        for link in find_live(context.document, ["link"]):
            if _relation(link) not in ICON_RELATIONS:
                continue
            href = (link.get("href") or "").strip()
            declared_type = (link.get("type") or "").strip().lower()
            if not href:
                continue
            if not (
                is_svg_data_uri(href)
                or declared_type in SVG_MIME_TYPES
                or is_svg_url(href)
            ):
                continue
            content = await context.resolve_reference(href)
            if not content:
                continue
            item = make_asset(content, AssetSource.FAVICON, href)
            if item:
                items.append(item)
        return items
