"""Rasterize SVG markup to PNG at a fixed scale."""

from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional, Tuple

import fitz
from PIL import Image, ImageColor

from .config import PNG_SCALES, SVG_NAMESPACE, XLINK_NAMESPACE
from .styles import parse_declarations, serialize_declarations
from .svg_utils import format_number, intrinsic_size, parse_view_box

logger = logging.getLogger("svg_scout")

ET.register_namespace("", SVG_NAMESPACE)
ET.register_namespace("xlink", XLINK_NAMESPACE)

_TRANSFORM_FUNCTION = re.compile(r"([a-zA-Z]+)\s*\(([^)]*)\)")
_ARGUMENT_SEPARATOR = re.compile(r"[\s,]+")


class RenderError(RuntimeError):
    """Raised when an SVG cannot be turned into a PNG."""


@dataclass(frozen=True)
class RenderPlan:
    """Normalized markup and the pixel size it will be drawn at."""

    markup: str
    width: float
    height: float
    transform_scale: Tuple[float, float]
    pixel_width: int
    pixel_height: int


def _namespace_of(tag: str) -> str:
    if tag.startswith("{"):
        return tag[: tag.index("}") + 1]
    return ""


def _parse_arguments(raw: str) -> Tuple[float, ...]:
    values = []
    for token in _ARGUMENT_SEPARATOR.split(raw.strip()):
        if not token:
            continue
        try:
            values.append(float(token))
        except ValueError:
            return ()
    return tuple(values)


def transform_scale(transform: str) -> Tuple[float, float]:
    """Scale factors folded from ``scale()`` and ``matrix()`` functions."""
    scale_x = scale_y = 1.0
    for name, raw_arguments in _TRANSFORM_FUNCTION.findall(transform):
        name = name.lower()
        arguments = _parse_arguments(raw_arguments)
        if name == "scale" and arguments:
            scale_x *= arguments[0]
            scale_y *= arguments[1] if len(arguments) > 1 else arguments[0]
        elif name == "scalex" and arguments:
            scale_x *= arguments[0]
        elif name == "scaley" and arguments:
            scale_y *= arguments[0]
        elif name == "matrix" and len(arguments) == 6:
            scale_x *= arguments[0]
            scale_y *= arguments[3]
    return abs(scale_x), abs(scale_y)


def _pop_style_transform(root: ET.Element) -> Tuple[float, float]:
    style = root.get("style")
    if not style:
        return 1.0, 1.0
    declarations = parse_declarations(style)
    transform = declarations.pop("transform", None)
    if transform is None:
        return 1.0, 1.0
    remaining = {name: value for name, (value, _) in declarations.items()}
    if remaining:
        root.set("style", serialize_declarations(remaining))
    else:
        del root.attrib["style"]
    return transform_scale(transform[0])


def _normalize_view_box_origin(root: ET.Element) -> None:
    view_box = parse_view_box(root.get("viewBox"))
    if not view_box:
        return
    min_x, min_y, width, height = view_box
    if min_x == 0 and min_y == 0:
        return
    root.set("viewBox", f"0 0 {format_number(width)} {format_number(height)}")
    group = ET.Element(f"{_namespace_of(root.tag)}g")
    group.set(
        "transform", f"translate({format_number(-min_x)},{format_number(-min_y)})"
    )
    group.text = root.text
    root.text = None
    for child in list(root):
        root.remove(child)
        group.append(child)
    root.append(group)


def prepare_render(content: str, scale: int = 2) -> RenderPlan:
    """Normalize markup for rasterization and compute the output size."""
    if scale not in PNG_SCALES:
        raise RenderError(f"Unsupported scale {scale!r}")
    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError as exc:
        raise RenderError(f"Invalid SVG markup: {exc}") from exc
    if not root.tag.startswith("{"):
        root.tag = f"{{{SVG_NAMESPACE}}}{root.tag}"

    width, height = intrinsic_size(
        root.get("width"), root.get("height"), root.get("viewBox")
    )
    factors = _pop_style_transform(root)
    _normalize_view_box_origin(root)

    root.set("width", format_number(width))
    root.set("height", format_number(height))

    pixel_width = max(1, int(width * factors[0] * scale))
    pixel_height = max(1, int(height * factors[1] * scale))
    return RenderPlan(
        markup=ET.tostring(root, encoding="unicode"),
        width=width,
        height=height,
        transform_scale=factors,
        pixel_width=pixel_width,
        pixel_height=pixel_height,
    )


def _rasterize(markup: str, width: int, height: int) -> bytes:
    with fitz.open(stream=markup.encode("utf-8"), filetype="svg") as document:
        page = document[0]
        matrix = fitz.Matrix(width / page.rect.width, height / page.rect.height)
        pixmap = page.get_pixmap(matrix=matrix, alpha=True)
        return pixmap.tobytes("png")


def _fill_background(png: bytes, background_color: str) -> bytes:
    try:
        fill = ImageColor.getrgb(background_color)
    except ValueError as exc:
        raise RenderError(f"Unknown background color {background_color!r}") from exc
    with Image.open(io.BytesIO(png)) as drawing:
        foreground = drawing.convert("RGBA")
    canvas = Image.new("RGBA", foreground.size, fill)
    canvas.alpha_composite(foreground)
    buffer = io.BytesIO()
    canvas.save(buffer, format="PNG")
    return buffer.getvalue()


def render_png(
    content: str,
    scale: int = 2,
    background_color: Optional[str] = None,
) -> bytes:
    """Draw an SVG at ``scale`` and return PNG bytes."""
    plan = prepare_render(content, scale)
    try:
        png = _rasterize(plan.markup, plan.pixel_width, plan.pixel_height)
    except Exception as exc:  # pylint: disable=broad-except
        raise RenderError(f"Failed to load SVG image: {exc}") from exc
    if not png:
        raise RenderError("Failed to create PNG")
    if background_color and background_color != "transparent":
        png = _fill_background(png, background_color)
    logger.debug(
        "Rendered %dx%d PNG (%d bytes)", plan.pixel_width, plan.pixel_height, len(png)
    )
    return png
