"""Package discovered SVGs (and optional PNG renders) into a ZIP archive."""

from __future__ import annotations

import io
import logging
import zipfile
from typing import Callable, Optional, Sequence, Set

from .models import DiscoveredAsset
from .render import RenderError, render_png
from .svg_utils import generate_file_name
from .utils import sanitize_for_file_name

logger = logging.getLogger("svg_scout")

Renderer = Callable[..., bytes]

SVG_FOLDER = "svg"
PNG_FOLDER = "png"
DEFAULT_ARCHIVE_NAME = "svg-export.zip"


def archive_file_name(page_title: Optional[str] = None) -> str:
    if page_title:
        prefix = sanitize_for_file_name(page_title, max_length=50)
        if prefix:
            return f"{prefix}-svgs.zip"
    return DEFAULT_ARCHIVE_NAME


def unique_name(base_name: str, used: Set[str]) -> str:
    candidate = base_name
    suffix = 1
    while candidate in used:
        suffix += 1
        candidate = f"{base_name}-{suffix}"
    used.add(candidate)
    return candidate


def build_archive(
    items: Sequence[DiscoveredAsset],
    include_raster: bool = False,
    scale: int = 2,
    page_title: Optional[str] = None,
    renderer: Renderer = render_png,
) -> bytes:
    """Write ``svg/<name>.svg`` for every asset and ``png/<name>-<scale>x.png`` on request.

    A PNG that fails to render is left out; the rest of the archive is still built.
    """
    buffer = io.BytesIO()
    used_names: Set[str] = set()
    skipped = 0
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for index, item in enumerate(items):
            base_name = generate_file_name(item, index, page_title).replace(".svg", "", 1)
            base_name = unique_name(base_name, used_names)
            archive.writestr(f"{SVG_FOLDER}/{base_name}.svg", item.content)

            if not include_raster:
                continue
            try:
                png = renderer(item.content, scale, "transparent")
            except RenderError as exc:
                skipped += 1
                logger.warning("Skipping PNG for %s: %s", base_name, exc)
                continue
            archive.writestr(f"{PNG_FOLDER}/{base_name}-{scale}x.png", png)

    logger.info(
        "Built archive with %d SVGs%s",
        len(items),
        f" ({skipped} PNG renders skipped)" if skipped else "",
    )
    return buffer.getvalue()
