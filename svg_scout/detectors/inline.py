"""Inline ``<svg>`` elements rendered directly in the page."""

from __future__ import annotations

from typing import List

from bs4 import Tag

from ..models import AssetSource, DiscoveredAsset
from ..styles import StyleResolver
from ..svg_utils import make_asset
from .base import (
    DetectionContext,
    find_live,
    is_hidden_definition_container,
    serialize_with_computed_styles,
)


def collect_inline(
    root: Tag,
    styles: StyleResolver,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    """Serialize every displayed ``<svg>`` under ``root``; sprite sheets are left to the sprite logic."""
    items: List[DiscoveredAsset] = []
    for svg in find_live(root, ["svg"]):
        if is_hidden_definition_container(svg, styles):
            continue
        item = make_asset(serialize_with_computed_styles(svg, styles), source)
        if item:
            items.append(item)
    return items


class InlineDetector:
    name = "Inline SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        return collect_inline(context.document, context.styles, AssetSource.INLINE)
