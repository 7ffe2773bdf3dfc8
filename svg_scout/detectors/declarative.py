"""SVG markup carried as data: ``data-*`` attributes and JSON script blocks."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Set

from ..models import AssetSource, DiscoveredAsset
from ..svg_utils import data_uri_to_svg, is_svg_data_uri, looks_like_svg, make_asset
from .base import DetectionContext, find_live, iter_live_elements

logger = logging.getLogger("svg_scout")

JSON_SCRIPT_TYPES = ("application/json", "application/ld+json")


def _svg_from_value(value: str) -> Optional[str]:
    if looks_like_svg(value):
        return value
    if is_svg_data_uri(value):
        return data_uri_to_svg(value)
    return None


class DataAttributeDetector:
    name = "Data Attribute SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        seen: Set[str] = set()
        for element in iter_live_elements(context.document):
            for name, raw in element.attrs.items():
                name = str(name)
                if not name.startswith("data-") or not isinstance(raw, str):
                    continue
                value = raw.strip()
                if not value or value in seen:
                    continue
                if not (looks_like_svg(value) or is_svg_data_uri(value)):
                    continue
                seen.add(value)
                content = _svg_from_value(value)
                if not content:
                    continue
                item = make_asset(
                    content, AssetSource.DECLARATIVE_DATA_ATTRIBUTE, f"{name} attribute"
                )
                if item:
                    items.append(item)
        return items


def extract_svg_strings(data: Any) -> List[str]:
    """Strings anywhere in a JSON value that look like SVG markup or SVG data URIs."""
    results: List[str] = []
    stack = [data]
    while stack:
        value = stack.pop()
        if isinstance(value, str):
            trimmed = value.strip()
            if trimmed.startswith("data:image/svg+xml") or looks_like_svg(trimmed):
                results.append(value)
        elif isinstance(value, list):
            stack.extend(reversed(value))
        elif isinstance(value, dict):
            stack.extend(reversed(list(value.values())))
    return results


class JsonScriptDetector:
    name = "JSON Script SVGs"

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        items: List[DiscoveredAsset] = []
        seen: Set[str] = set()
        for script in find_live(context.document, ["script"]):
            script_type = (script.get("type") or "").strip().lower()
            if script_type not in JSON_SCRIPT_TYPES:
                continue
            text = "".join(str(child) for child in script.contents)
            if not text.strip():
                continue
            try:
                data = json.loads(text)
            except ValueError as exc:
                logger.debug("Skipping invalid JSON script block: %s", exc)
                continue
            for value in extract_svg_strings(data):
                if value in seen:
                    continue
                seen.add(value)
                content = _svg_from_value(value.strip())
                if not content:
                    continue
                item = make_asset(content, AssetSource.DECLARATIVE_JSON)
                if item:
                    items.append(item)
        return items
