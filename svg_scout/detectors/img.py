"""SVGs referenced by ``<img>`` and ``<picture>`` sources."""

from __future__ import annotations

from typing import List

from bs4 import Tag

from ..models import AssetSource, DiscoveredAsset
from ..svg_utils import is_svg_data_uri, is_svg_url, make_asset
from .base import DetectionContext, find_live


def parse_srcset(srcset: str) -> List[str]:
    """URLs of a ``srcset`` value, descriptors dropped."""
    urls = []
    for entry in srcset.split(","):
        parts = entry.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


async def collect_reference(
    context: DetectionContext,
    reference: str,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    """Resolve one image-like reference when it points at an SVG."""
    if not reference or not (is_svg_data_uri(reference) or is_svg_url(reference)):
        return []
    content = await context.resolve_reference(reference)
    if not content:
        return []
    item = make_asset(content, source, reference)
    return [item] if item else []


async def collect_images(
    context: DetectionContext,
    root: Tag,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    items: List[DiscoveredAsset] = []
    for element in find_live(root, ["img", "source"]):
        if element.name == "source" and (
            element.parent is None or element.parent.name != "picture"
        ):
            continue
        src = (element.get("src") or "").strip()
        if src and not src.startswith("data:"):
            src = context.absolute_url(src)
        if src:
            items.extend(await collect_reference(context, src, source))
        srcset = element.get("srcset") or ""
        for url in parse_srcset(srcset):
            items.extend(await collect_reference(context, url, source))
    return items


class ImageDetector:
    name = "Image SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        return await collect_images(context, context.document, AssetSource.RASTER_REFERENCE)
