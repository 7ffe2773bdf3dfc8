"""Configuration objects and constants for the scanner and exporters."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger("svg_scout")

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XLINK_NAMESPACE = "http://www.w3.org/1999/xlink"

SVG_MIME_TYPES = ("image/svg+xml", "image/svg")
SVG_FILE_EXTENSIONS = (".svg", ".svgz")
PNG_SCALES = (1, 2, 4)

CSS_PROPERTIES_WITH_SVG = (
    "background-image",
    "background",
    "mask-image",
    "mask",
    "-webkit-mask-image",
    "-webkit-mask",
    "content",
    "list-style-image",
    "border-image-source",
    "cursor",
)

INLINED_PRESENTATION_PROPERTIES = (
    "fill",
    "stroke",
    "stroke-width",
    "stroke-linecap",
    "stroke-linejoin",
    "stroke-dasharray",
    "stroke-dashoffset",
    "opacity",
    "fill-opacity",
    "stroke-opacity",
    "transform",
    "font-family",
    "font-size",
    "font-weight",
    "text-anchor",
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080

SETTINGS_ENV_VAR = "SVG_SCOUT_SETTINGS"


@dataclass
class ScanConfig:
    """Settings that control page capture and reference fetching."""

    output_root: Path
    wait_after_load: float = 1.0
    navigation_timeout: float = 30.0
    fetch_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = DEFAULT_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT


@dataclass(frozen=True)
class ExportSettings:
    """Read-only export preferences owned by an external settings store."""

    default_scale: int = 2
    background_color: str = "transparent"
    include_png_in_archive: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ExportSettings":
        known = {field.name for field in fields(cls)}
        aliases = {
            "defaultPngScale": "default_scale",
            "pngBackgroundColor": "background_color",
        }
        merged = {}
        for key, value in values.items():
            key = aliases.get(key, key)
            if key in known:
                merged[key] = value
        settings = cls(**merged)
        if settings.default_scale not in PNG_SCALES:
            logger.warning(
                "Ignoring unsupported default scale %s; using 2",
                settings.default_scale,
            )
            settings = cls(
                default_scale=2,
                background_color=settings.background_color,
                include_png_in_archive=settings.include_png_in_archive,
            )
        return settings


def load_export_settings(path: Optional[Path] = None) -> ExportSettings:
    """Read export settings from a JSON file, falling back to defaults."""
    if path is None:
        override = os.getenv(SETTINGS_ENV_VAR)
        if not override:
            return ExportSettings()
        path = Path(override).expanduser()
        logger.debug("%s override detected at %s", SETTINGS_ENV_VAR, path)

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read settings from %s: %s", path, exc)
        return ExportSettings()
    if not isinstance(raw, dict):
        logger.warning("Settings file %s does not contain an object", path)
        return ExportSettings()
    return ExportSettings.from_mapping(raw)
