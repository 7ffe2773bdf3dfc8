"""Normalization, validation, fingerprinting and naming of SVG markup."""

from __future__ import annotations

import base64
import binascii
import re
import xml.etree.ElementTree as ET
from typing import Iterable, List, Optional, Tuple
from urllib.parse import quote, unquote, urljoin, urlparse

from .config import SVG_FILE_EXTENSIONS, SVG_NAMESPACE
from .models import AssetSource, Dimensions, DiscoveredAsset
from .utils import sanitize_for_file_name

DEFAULT_DIMENSION = 100.0
SVG_DATA_URI_PREFIX = "data:image/svg+xml"

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_VIEW_BOX_SEPARATOR = re.compile(r"[\s,]+")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_svg(content: str) -> str:
    """Trim markup and declare the SVG namespace when it is missing."""
    svg = content.strip()
    if "xmlns" not in svg:
        svg = svg.replace("<svg", f'<svg xmlns="{SVG_NAMESPACE}"', 1)
    return svg


def looks_like_svg(value: str) -> bool:
    """Cheap structural check: root element or XML prolog plus a closing marker."""
    trimmed = value.strip()
    if not trimmed.startswith("<svg") and not trimmed.startswith("<?xml"):
        return False
    return "</svg>" in trimmed or "/>" in trimmed


def is_valid_svg(content: str) -> bool:
    if not content or not isinstance(content, str):
        return False
    if not looks_like_svg(content):
        return False
    try:
        ET.fromstring(content.strip())
    except ET.ParseError:
        return False
    return True


def fingerprint(content: str) -> str:
    """Deterministic 32-bit rolling hash of the markup, rendered in base 36.

    The hash walks UTF-16 code units so that identical markup yields the same
    identifier as exports produced by the browser extension.
    """
    value = 0
    encoded = content.encode("utf-16-le", "surrogatepass")
    for offset in range(0, len(encoded), 2):
        unit = encoded[offset] | (encoded[offset + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return _to_base36(abs(value))


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def parse_length(value: Optional[str]) -> float:
    """Read the leading number of an attribute value, ``parseFloat`` style."""
    if not value:
        return 0.0
    match = _LEADING_NUMBER.match(value)
    if not match:
        return 0.0
    return float(match.group(1))


def parse_view_box(value: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    if not value:
        return None
    parts = [part for part in _VIEW_BOX_SEPARATOR.split(value.strip()) if part]
    if len(parts) != 4:
        return None
    try:
        min_x, min_y, width, height = (float(part) for part in parts)
    except ValueError:
        return None
    return min_x, min_y, width, height


def format_number(value: float) -> str:
    """Format a number the way JavaScript's ``String(number)`` does for common values."""
    if value == int(value):
        return str(int(value))
    return repr(float(value))


def intrinsic_size(
    width_attr: Optional[str],
    height_attr: Optional[str],
    view_box_attr: Optional[str],
) -> Tuple[float, float]:
    width = parse_length(width_attr)
    height = parse_length(height_attr)
    if width <= 0 or height <= 0:
        view_box = parse_view_box(view_box_attr)
        if view_box:
            if width <= 0:
                width = view_box[2]
            if height <= 0:
                height = view_box[3]
    if width <= 0:
        width = DEFAULT_DIMENSION
    if height <= 0:
        height = DEFAULT_DIMENSION
    return width, height


def measure_svg(content: str) -> Dimensions:
    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError:
        return Dimensions(DEFAULT_DIMENSION, DEFAULT_DIMENSION)
    width, height = intrinsic_size(
        root.get("width"), root.get("height"), root.get("viewBox")
    )
    return Dimensions(width, height)


def make_asset(
    content: str,
    source: AssetSource,
    source_url: Optional[str] = None,
) -> Optional[DiscoveredAsset]:
    """Build a discovered asset, or ``None`` when the markup is not a usable SVG."""
    normalized = normalize_svg(content)
    if not is_valid_svg(normalized):
        return None
    return DiscoveredAsset(
        id=fingerprint(normalized),
        content=normalized,
        source=source,
        source_url=source_url,
        dimensions=measure_svg(normalized),
        file_size=len(normalized.encode("utf-8")),
    )


def deduplicate_assets(items: Iterable[DiscoveredAsset]) -> List[DiscoveredAsset]:
    """Keep the first asset seen for every fingerprint, preserving order."""
    seen = {}
    for item in items:
        if item.id not in seen:
            seen[item.id] = item
    return list(seen.values())


def is_svg_data_uri(uri: str) -> bool:
    return uri.startswith(SVG_DATA_URI_PREFIX)


def data_uri_to_svg(data_uri: str) -> Optional[str]:
    """Decode an ``image/svg+xml`` data URI into markup."""
    if not is_svg_data_uri(data_uri) or "," not in data_uri:
        return None
    header, payload = data_uri.split(",", 1)
    try:
        if header.lower().endswith(";base64"):
            raw = base64.b64decode(unquote(payload), validate=False)
            return raw.decode("utf-8", "replace")
        return unquote(payload)
    except (binascii.Error, ValueError):
        return None


def svg_to_data_uri(content: str) -> str:
    return f"{SVG_DATA_URI_PREFIX},{quote(content, safe='!~*()')}"


def is_svg_url(url: str) -> bool:
    try:
        path = urlparse(urljoin("https://example.com", url)).path
    except ValueError:
        return False
    return path.lower().endswith(SVG_FILE_EXTENSIONS)


def generate_file_name(
    asset: DiscoveredAsset,
    index: int,
    page_title: Optional[str] = None,
) -> str:
    """Pick a download name: display name, URL file name, or ``svg-N.svg``."""
    prefix = f"{sanitize_for_file_name(page_title)}-" if page_title else ""

    if asset.name:
        name = asset.name if asset.name.endswith(".svg") else f"{asset.name}.svg"
        return prefix + name

    if asset.source_url:
        try:
            path = urlparse(urljoin("https://example.com", asset.source_url)).path
        except ValueError:
            path = ""
        file_name = path.split("/")[-1]
        if file_name and ".svg" in file_name:
            return prefix + file_name

    return f"{prefix}svg-{index + 1}.svg"
