"""Turn discovered assets into downloadable SVG, PNG or ZIP payloads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from .archive import archive_file_name, build_archive
from .config import ExportSettings, load_export_settings
from .helper import HelperContext
from .models import DiscoveredAsset, ExportResult
from .render import RenderError, render_png
from .svg_utils import generate_file_name

logger = logging.getLogger("svg_scout")

SVG_MIME_TYPE = "image/svg+xml"
PNG_MIME_TYPE = "image/png"
ZIP_MIME_TYPE = "application/zip"
EXPORT_FORMATS = ("svg", "png")


def raster_file_name(vector_name: str, scale: int) -> str:
    return f"{vector_name.replace('.svg', '', 1)}-{scale}x.png"


def _from_response(
    response: Dict[str, Any], filename: str, mime_type: str
) -> ExportResult:
    if not response.get("success"):
        return ExportResult(filename=filename, error=response.get("error") or "Export failed")
    return ExportResult(payload=response["data"], filename=filename, mime_type=mime_type)


async def export_single(
    asset: DiscoveredAsset,
    fmt: str = "svg",
    scale: Optional[int] = None,
    background_color: Optional[str] = None,
    page_title: Optional[str] = None,
    helper: Optional[HelperContext] = None,
    settings: Optional[ExportSettings] = None,
    index: int = 0,
) -> ExportResult:
    """Export one asset; unset options come from the stored export settings."""
    if fmt not in EXPORT_FORMATS:
        logger.warning("Unsupported export format: %s", fmt)
        return ExportResult(error=f"Unsupported export format: {fmt}")
    settings = settings or load_export_settings()
    vector_name = generate_file_name(asset, index, page_title)

    if fmt == "svg":
        if helper is not None:
            response = await helper.create_binary(asset.content)
            return _from_response(response, vector_name, SVG_MIME_TYPE)
        return ExportResult(
            payload=asset.content.encode("utf-8"),
            filename=vector_name,
            mime_type=SVG_MIME_TYPE,
        )

    scale = scale or settings.default_scale
    if background_color is None:
        background_color = settings.background_color
    filename = raster_file_name(vector_name, scale)
    if helper is not None:
        response = await helper.render(asset.content, scale, background_color)
        return _from_response(response, filename, PNG_MIME_TYPE)
    try:
        payload = await asyncio.to_thread(
            render_png, asset.content, scale, background_color
        )
    except RenderError as exc:
        logger.warning("Failed to render %s: %s", filename, exc)
        return ExportResult(filename=filename, error=str(exc))
    return ExportResult(payload=payload, filename=filename, mime_type=PNG_MIME_TYPE)


async def export_archive(
    items: Sequence[DiscoveredAsset],
    include_raster: Optional[bool] = None,
    scale: Optional[int] = None,
    page_title: Optional[str] = None,
    helper: Optional[HelperContext] = None,
    settings: Optional[ExportSettings] = None,
) -> ExportResult:
    """Bundle assets into one ZIP named after the page."""
    settings = settings or load_export_settings()
    if include_raster is None:
        include_raster = settings.include_png_in_archive
    scale = scale or settings.default_scale
    filename = archive_file_name(page_title)

    if helper is not None:
        response = await helper.build_archive(items, include_raster, scale, page_title)
        return _from_response(response, filename, ZIP_MIME_TYPE)
    try:
        payload = await asyncio.to_thread(
            build_archive, list(items), include_raster, scale, page_title
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("Failed to build archive %s: %s", filename, exc)
        return ExportResult(filename=filename, error=str(exc))
    return ExportResult(payload=payload, filename=filename, mime_type=ZIP_MIME_TYPE)
