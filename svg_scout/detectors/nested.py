"""SVGs inside nested documents: shadow roots, templates and noscript fallbacks.

Each nested fragment is parsed as its own document and scanned with the
inline, image and sprite strategies, scoped to that fragment only.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from bs4 import BeautifulSoup, Tag

from ..models import AssetSource, DiscoveredAsset
from ..styles import StyleResolver
from .base import (
    DetectionContext,
    child_elements,
    find_live,
    iter_live_elements,
    parse_fragment,
    raw_inner_markup,
)
from .img import collect_images
from .inline import collect_inline
from .object_embed import collect_objects
from .sprite import collect_hidden_symbols, collect_sprite_references

logger = logging.getLogger("svg_scout")

SHADOW_ROOT_ATTRIBUTES = ("shadowrootmode", "shadowroot")


async def collect_scope(
    context: DetectionContext,
    scope: BeautifulSoup,
    source: AssetSource,
    include_objects: bool = False,
) -> List[DiscoveredAsset]:
    styles = StyleResolver.for_tree(scope)
    items = collect_inline(scope, styles, source)
    items.extend(await collect_images(context, scope, source))
    if include_objects:
        items.extend(await collect_objects(context, scope, source))
    items.extend(await collect_sprite_references(context, scope, source))
    items.extend(collect_hidden_symbols(scope, styles, source))
    return items


def shadow_root_mode(template: Tag) -> Optional[str]:
    for attribute in SHADOW_ROOT_ATTRIBUTES:
        mode = template.get(attribute)
        if isinstance(mode, str) and mode.strip():
            return mode.strip().lower()
    return None


def declarative_closed_root(host: Tag) -> Optional[Tag]:
    """Closed-root opener for snapshots whose closed roots were serialized."""
    for child in child_elements(host):
        if child.name == "template" and shadow_root_mode(child) == "closed":
            return child
    return None


class ShadowDomDetector:
    name = "Shadow DOM SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        pending = [self._shadow_roots(context, context.document)]
        while pending:
            root = next(pending[-1], None)
            if root is None:
                pending.pop()
                continue
            scope = parse_fragment(raw_inner_markup(root))
            items.extend(
                await collect_scope(context, scope, AssetSource.NESTED_SHADOW_TREE)
            )
            pending.append(self._shadow_roots(context, scope))
        return items

    @staticmethod
    def _shadow_roots(context: DetectionContext, scope: Tag) -> Iterator[Tag]:
        for host in iter_live_elements(scope):
            for template in child_elements(host):
                if template.name != "template":
                    continue
                mode = shadow_root_mode(template)
                if mode is None:
                    continue
                if mode != "closed":
                    yield template
                    continue
                if context.closed_shadow_root is None:
                    logger.debug("Skipping closed shadow root on <%s>", host.name)
                    continue
                try:
                    root = context.closed_shadow_root(host)
                except Exception:  # pylint: disable=broad-except
                    logger.debug("Closed shadow root on <%s> is not reachable", host.name)
                    continue
                if root is not None:
                    yield root


class TemplateDetector:
    name = "Template SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        for template in find_live(context.document, ["template"]):
            if shadow_root_mode(template) is not None:
                continue
            markup = raw_inner_markup(template)
            if not markup.strip():
                continue
            items.extend(
                await collect_scope(
                    context, parse_fragment(markup), AssetSource.NESTED_TEMPLATE
                )
            )
        return items


class NoscriptDetector:
    name = "Noscript SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        for noscript in find_live(context.document, ["noscript"]):
            markup = raw_inner_markup(noscript)
            if not markup.strip():
                continue
            items.extend(
                await collect_scope(
                    context,
                    parse_fragment(markup),
                    AssetSource.NESTED_NOSCRIPT,
                    include_objects=True,
                )
            )
        return items
