"""SVG documents loaded through ``<object>`` and ``<embed>``."""

from __future__ import annotations

from typing import List

from bs4 import Tag

from ..config import SVG_MIME_TYPES
from ..models import AssetSource, DiscoveredAsset
from ..svg_utils import is_svg_data_uri, is_svg_url, make_asset
from .base import DetectionContext, find_live


async def collect_objects(
    context: DetectionContext,
    root: Tag,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    items: List[DiscoveredAsset] = []
    for element in find_live(root, ["object", "embed"]):
        attribute = "data" if element.name == "object" else "src"
        url = (element.get(attribute) or "").strip()
        declared_type = (element.get("type") or "").strip().lower()
        if not url:
            continue
        if declared_type not in SVG_MIME_TYPES and not (
            is_svg_url(url) or is_svg_data_uri(url)
        ):
            continue
        if not url.startswith("data:"):
            url = context.absolute_url(url)
        content = await context.resolve_reference(url)
        if not content:
            continue
        item = make_asset(content, source, url)
        if item:
            items.append(item)
    return items


class ObjectEmbedDetector:
    name = "Object/Embed SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        return await collect_objects(context, context.document, AssetSource.EMBEDDED_OBJECT)
