"""SVGs referenced from stylesheets: backgrounds, masks, generated content, cursors."""

from __future__ import annotations

from typing import List, Set

from ..config import CSS_PROPERTIES_WITH_SVG
from ..models import AssetSource, DiscoveredAsset
from ..styles import extract_css_urls, iter_style_values
from ..svg_utils import is_svg_data_uri, is_svg_url, make_asset
from .base import DetectionContext, iter_live_elements


class CssDetector:
    name = "CSS Background SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        seen_urls: Set[str] = set()
        values = iter_style_values(
            context.styles,
            iter_live_elements(context.document),
            CSS_PROPERTIES_WITH_SVG,
        )
        for value in values:
            for url in extract_css_urls(value):
                if url in seen_urls:
                    continue
                seen_urls.add(url)
                if not (is_svg_data_uri(url) or is_svg_url(url)):
                    continue
                content = await context.resolve_reference(url)
                if not content:
                    continue
                item = make_asset(content, AssetSource.STYLE_REFERENCE, url)
                if item:
                    items.append(item)
        return items
