"""Sprite sheets: ``<use>`` references and hidden ``<symbol>`` definitions."""

from __future__ import annotations

import logging
from typing import List, Optional

from bs4 import Tag

from ..models import AssetSource, DiscoveredAsset
from ..styles import StyleResolver
from ..svg_utils import make_asset
from .base import (
    DetectionContext,
    find_live,
    find_live_by_id,
    is_hidden_definition_container,
    materialize_symbol,
    parse_fragment,
    serialize_svg,
)

logger = logging.getLogger("svg_scout")


def use_reference(use: Tag) -> str:
    return (use.get("href") or use.get("xlink:href") or "").strip()


def definition_to_svg(definition: Optional[Tag]) -> Optional[str]:
    if definition is None:
        return None
    if definition.name == "symbol":
        return materialize_symbol(definition)
    if definition.name == "svg":
        return serialize_svg(definition)
    return None


def extract_symbol(markup: str, symbol_id: str) -> Optional[str]:
    """Materialize ``#symbol_id`` from an external sprite document."""
    document = parse_fragment(markup)
    symbol = document.find(id=symbol_id)
    if symbol is not None and symbol.name == "symbol":
        return materialize_symbol(symbol)
    return None


async def resolve_use(context: DetectionContext, root: Tag, href: str) -> Optional[str]:
    if not href.startswith("#") and ".svg" in href:
        url, _, fragment = href.partition("#")
        document = await context.resolve_reference(url)
        if not document:
            return None
        if fragment:
            return extract_symbol(document, fragment)
        return document

    element_id = href[1:] if href.startswith("#") else href
    definition = find_live_by_id(root, element_id)
    if definition is None:
        logger.debug("No definition found for sprite reference %s", href)
    return definition_to_svg(definition)


async def collect_sprite_references(
    context: DetectionContext,
    root: Tag,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    items: List[DiscoveredAsset] = []
    for use in find_live(root, ["use"]):
        href = use_reference(use)
        if not href:
            continue
        content = await resolve_use(context, root, href)
        if not content:
            continue
        item = make_asset(content, source, href)
        if item:
            items.append(item)
    return items


def collect_hidden_symbols(
    root: Tag,
    styles: StyleResolver,
    source: AssetSource,
) -> List[DiscoveredAsset]:
    """Every symbol kept in a hidden sprite sheet, referenced or not."""
    items: List[DiscoveredAsset] = []
    for svg in find_live(root, ["svg"]):
        if not is_hidden_definition_container(svg, styles):
            continue
        for symbol in svg.find_all("symbol"):
            item = make_asset(
                materialize_symbol(symbol), source, f"#{symbol.get('id') or ''}"
            )
            if item:
                items.append(item)
    return items


class SpriteDetector:
    name = "Sprite SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items = await collect_sprite_references(
            context, context.document, AssetSource.SPRITE
        )
        items.extend(
            collect_hidden_symbols(context.document, context.styles, AssetSource.SPRITE)
        )
        return items
