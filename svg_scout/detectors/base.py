"""Shared context and tree helpers for the detectors."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Iterator, List, Optional, Protocol, Sequence, Set
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag

from ..config import INLINED_PRESENTATION_PROPERTIES, SVG_NAMESPACE, XLINK_NAMESPACE
from ..fetching import Fetcher
from ..models import DiscoveredAsset, NetworkResource
from ..styles import StyleResolver, is_hidden, parse_declarations, serialize_declarations
from ..svg_utils import data_uri_to_svg, format_number, is_svg_data_uri, parse_view_box

logger = logging.getLogger("svg_scout")

# Content of these elements is inert in a browser and gets its own detectors.
INERT_CONTAINERS = frozenset({"template", "noscript"})

ClosedShadowRootOpener = Callable[[Tag], Optional[Tag]]


@dataclass
class DetectionContext:
    """Everything a detector may read while scanning one page."""

    document: BeautifulSoup
    base_url: str
    styles: StyleResolver
    fetcher: Optional[Fetcher] = None
    network_resources: Sequence[NetworkResource] = ()
    closed_shadow_root: Optional[ClosedShadowRootOpener] = None
    attempted: Set[str] = field(default_factory=set, init=False, repr=False)

    def for_detector(self) -> "DetectionContext":
        """Copy of the context with an empty reference-dedup set."""
        return replace(self)

    def absolute_url(self, reference: str) -> str:
        return urljoin(self.base_url, reference)

    async def resolve_reference(self, reference: str) -> Optional[str]:
        """Markup behind a data URI or URL; each reference is tried once per run."""
        reference = reference.strip()
        if not reference:
            return None
        key = reference if reference.startswith("data:") else self.absolute_url(reference)
        if key in self.attempted:
            return None
        self.attempted.add(key)

        if is_svg_data_uri(reference):
            return data_uri_to_svg(reference)
        if reference.startswith("data:"):
            return None
        if self.fetcher is None:
            logger.debug("No fetcher configured; skipping %s", key)
            return None
        return await self.fetcher.fetch_text(key)


class Detector(Protocol):
    """A named extraction strategy."""

    name: str

    async def detect(self, context: DetectionContext) -> List[DiscoveredAsset]:
        ...


def child_elements(element: Tag) -> List[Tag]:
    return [child for child in element.children if isinstance(child, Tag)]


def iter_live_elements(root: Tag) -> Iterator[Tag]:
    """Elements in document order, without descending into inert containers."""
    stack = list(reversed(child_elements(root)))
    while stack:
        element = stack.pop()
        yield element
        if element.name in INERT_CONTAINERS:
            continue
        stack.extend(reversed(child_elements(element)))


def find_live(root: Tag, names: Iterable[str]) -> List[Tag]:
    wanted = set(names)
    return [element for element in iter_live_elements(root) if element.name in wanted]


def find_live_by_id(root: Tag, element_id: str) -> Optional[Tag]:
    for element in iter_live_elements(root):
        if element.get("id") == element_id:
            return element
    return None


def serialize_svg(element: Tag) -> str:
    """Serialize an element subtree as XML-compatible markup."""
    markup = element.decode(formatter="minimal")
    if "xlink:" in markup and "xmlns:xlink" not in markup and markup.startswith("<svg"):
        markup = markup.replace("<svg", f'<svg xmlns:xlink="{XLINK_NAMESPACE}"', 1)
    return markup


def is_hidden_definition_container(svg: Tag, styles: StyleResolver) -> bool:
    """A sprite sheet: holds symbols and is not meant to be displayed itself."""
    if svg.find("symbol") is None:
        return False
    if svg.get("aria-hidden") == "true":
        return True
    return is_hidden(styles.computed(svg), svg)


def serialize_with_computed_styles(svg: Tag, styles: StyleResolver) -> str:
    """Clone ``svg`` and inline the presentation properties that reach each element."""
    clone = copy.copy(svg)
    pairs = [(svg, clone)]
    while pairs:
        original, target = pairs.pop()
        _inline_properties(styles.computed(original), target)
        children = list(zip(child_elements(original), child_elements(target)))
        pairs.extend(reversed(children))
    return serialize_svg(clone)


def _inline_properties(computed: dict, target: Tag) -> None:
    existing = target.get("style")
    declarations = {
        name: value
        for name, (value, _) in parse_declarations(existing if isinstance(existing, str) else "").items()
    }
    changed = False
    for prop in INLINED_PRESENTATION_PROPERTIES:
        value = computed.get(prop)
        if value and value not in ("none", "normal"):
            if declarations.get(prop) != value:
                declarations[prop] = value
                changed = True
    if changed:
        target["style"] = serialize_declarations(declarations)


def materialize_symbol(symbol: Tag) -> str:
    """Turn a ``<symbol>`` definition into a standalone SVG document."""
    attrs = {"xmlns": SVG_NAMESPACE}
    view_box = symbol.get("viewBox") or ""
    if view_box:
        attrs["viewBox"] = view_box
        parts = parse_view_box(view_box)
        if parts:
            if parts[2]:
                attrs["width"] = format_number(parts[2])
            if parts[3]:
                attrs["height"] = format_number(parts[3])

    builder = BeautifulSoup("", "html.parser")
    svg = builder.new_tag("svg", attrs=attrs)
    for child in list(symbol.contents):
        svg.append(copy.copy(child))
    for name, value in symbol.attrs.items():
        name = str(name)
        if name != "id" and name not in svg.attrs:
            svg[name] = value
    return serialize_svg(svg)


def parse_fragment(markup: str) -> BeautifulSoup:
    """Parse an inert or alternate fragment as its own document."""
    return BeautifulSoup(markup, "html5lib")


def raw_inner_markup(element: Tag) -> str:
    """Inner markup of an element, keeping text children unescaped."""
    parts = []
    for child in element.contents:
        if isinstance(child, Tag) or type(child) is NavigableString:
            parts.append(str(child))
        else:
            parts.append(child.output_ready())
    return "".join(parts)
