"""Cascade-lite computed style resolution over a parsed page.

Detectors need the same answers a browser gives through
``getComputedStyle``: which presentation properties reach an SVG element and
which image references hang off an element or its generated pseudo-elements.
Rules come from captured stylesheets (or ``<style>`` blocks), are matched with
soupsieve, ordered by importance, specificity and source order, and inherited
properties flow down from ancestors.

Values come back the way a computed style reports them: custom properties are
substituted, ``currentColor`` becomes the element's color, ``url()``
references from external sheets are absolute, and ``@media`` groups only apply
when they match a screen of the configured viewport.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)
from urllib.parse import urljoin

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from .config import DEFAULT_VIEWPORT_HEIGHT, DEFAULT_VIEWPORT_WIDTH
from .models import CapturedStylesheet

logger = logging.getLogger("svg_scout")

PSEUDO_ELEMENTS = ("before", "after")

# Used value of currentColor when no author rule sets a color.
DEFAULT_COLOR = "rgb(0, 0, 0)"

Viewport = Tuple[int, int]
DEFAULT_VIEWPORT: Viewport = (DEFAULT_VIEWPORT_WIDTH, DEFAULT_VIEWPORT_HEIGHT)

StylesheetSource = Union[str, CapturedStylesheet]

INHERITED_PROPERTIES = frozenset(
    {
        "fill",
        "fill-opacity",
        "fill-rule",
        "stroke",
        "stroke-width",
        "stroke-linecap",
        "stroke-linejoin",
        "stroke-dasharray",
        "stroke-dashoffset",
        "stroke-opacity",
        "stroke-miterlimit",
        "font-family",
        "font-size",
        "font-weight",
        "font-style",
        "text-anchor",
        "visibility",
        "color",
        "cursor",
        "list-style-image",
    }
)

# SVG attributes that act as lowest-priority author declarations.
PRESENTATION_ATTRIBUTES = frozenset(
    {
        "fill",
        "fill-opacity",
        "fill-rule",
        "stroke",
        "stroke-width",
        "stroke-linecap",
        "stroke-linejoin",
        "stroke-dasharray",
        "stroke-dashoffset",
        "stroke-opacity",
        "stroke-miterlimit",
        "opacity",
        "font-family",
        "font-size",
        "font-weight",
        "font-style",
        "text-anchor",
        "visibility",
        "display",
        "color",
        "mask",
        "cursor",
    }
)

# Answers a plain desktop screen gives to the non-size media features.
SCREEN_MEDIA_FEATURES = {
    "prefers-color-scheme": "light",
    "prefers-reduced-motion": "no-preference",
    "prefers-contrast": "no-preference",
    "forced-colors": "none",
    "hover": "hover",
    "any-hover": "hover",
    "pointer": "fine",
    "any-pointer": "fine",
    "display-mode": "browser",
    "color-gamut": "srgb",
}

_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_PSEUDO_ELEMENT_SUFFIX = re.compile(
    r"(?:::|:)(before|after|first-line|first-letter|[a-z-]+)$", re.IGNORECASE
)
_LEGACY_PSEUDO_ELEMENTS = {"before", "after", "first-line", "first-letter"}
_ID_SELECTOR = re.compile(r"#[\w-]+")
_CLASS_LIKE_SELECTOR = re.compile(r"\.[\w-]+|\[[^\]]*\]|:(?!:)[\w-]+")
_TYPE_SELECTOR = re.compile(r"(?:^|[\s>+~(])([a-zA-Z][\w-]*)")
_GROUPING_AT_RULES = ("@supports", "@layer", "@container", "@document")
_CURRENT_COLOR = re.compile(r"\bcurrentcolor\b", re.IGNORECASE)
_VAR_START = re.compile(r"\bvar\(", re.IGNORECASE)

_MEDIA_FEATURE = re.compile(r"\(\s*([a-z-]+)\s*(?::\s*([^()]+?))?\s*\)")
_MEDIA_RANGE = re.compile(r"\(\s*(width|height)\s*(<=|>=|<|>|=)\s*([^()]+?)\s*\)")
_LENGTH = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)\s*(px|em|rem)?$")
_DENSITY = re.compile(r"^(\d+(?:\.\d+)?)\s*(dppx|x|dpi|dpcm)?$")

URL_TOKEN = re.compile(r"""url\((?:"([^"]+)"|'([^']+)'|([^)]+))\)""")


def extract_css_urls(value: str) -> List[str]:
    """Return every ``url(...)`` reference in a property value, in order."""
    if not value or value == "none":
        return []
    urls = []
    for match in URL_TOKEN.finditer(value):
        url = match.group(1) or match.group(2) or match.group(3)
        if url:
            urls.append(url.strip())
    return urls


def absolutize_css_urls(value: str, base_url: str) -> str:
    """Resolve relative ``url()`` references against the sheet they came from."""

    def replace(match: "re.Match[str]") -> str:
        url = (match.group(1) or match.group(2) or match.group(3) or "").strip()
        if not url or url.startswith(("data:", "#")):
            return match.group(0)
        return f'url("{urljoin(base_url, url)}")'

    return URL_TOKEN.sub(replace, value)


def _split_top_level(text: str, separator: str) -> List[str]:
    """Split on ``separator`` outside quotes and parentheses."""
    parts = []
    depth = 0
    quote: Optional[str] = None
    start = 0
    for index, char in enumerate(text):
        if quote:
            if char == quote and text[index - 1] != "\\":
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")" and depth:
            depth -= 1
        elif char == separator and depth == 0:
            parts.append(text[start:index])
            start = index + 1
    parts.append(text[start:])
    return parts


def _closing_paren(text: str, start: int) -> Optional[int]:
    depth = 1
    for index in range(start, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return index
    return None


def substitute_variables(
    value: str,
    lookup: Callable[[str], Optional[str]],
) -> Optional[str]:
    """Replace ``var()`` references; ``None`` when one cannot be resolved."""
    parts = []
    position = 0
    while True:
        match = _VAR_START.search(value, position)
        if match is None:
            parts.append(value[position:])
            return "".join(parts)
        end = _closing_paren(value, match.end())
        if end is None:
            return None
        name, comma, fallback = value[match.end() : end].partition(",")
        replacement = lookup(name.strip().lower())
        if replacement is None:
            if not comma:
                return None
            replacement = substitute_variables(fallback.strip(), lookup)
            if replacement is None:
                return None
        parts.append(value[position : match.start()])
        parts.append(replacement)
        position = end + 1


def _length_px(value: str) -> Optional[float]:
    match = _LENGTH.match(value.strip())
    if not match:
        return None
    number = float(match.group(1))
    if match.group(2) in ("em", "rem"):
        return number * 16
    return number


def _density(value: str) -> Optional[float]:
    match = _DENSITY.match(value.strip())
    if not match:
        return None
    number = float(match.group(1))
    if match.group(2) == "dpi":
        return number / 96
    if match.group(2) == "dpcm":
        return number * 2.54 / 96
    return number


def _compare(actual: float, operator: str, expected: float) -> bool:
    if operator == "<=":
        return actual <= expected
    if operator == ">=":
        return actual >= expected
    if operator == "<":
        return actual < expected
    if operator == ">":
        return actual > expected
    return actual == expected


def _feature_matches(name: str, value: str, viewport: Viewport) -> bool:
    width, height = viewport
    value = value.strip()
    if name.startswith("-webkit-"):
        name = name[len("-webkit-") :]
    operator = "="
    for prefix, bound in (("min-", ">="), ("max-", "<=")):
        if name.startswith(prefix):
            name = name[len(prefix) :]
            operator = bound
            break

    if name in ("width", "height", "device-width", "device-height"):
        if not value:
            return True
        expected = _length_px(value)
        actual = width if name.endswith("width") else height
        return expected is not None and _compare(actual, operator, expected)
    if name in ("resolution", "device-pixel-ratio"):
        expected = _density(value) if value else 1.0
        return expected is not None and _compare(1.0, operator, expected)
    if name == "orientation":
        return value == ("landscape" if width > height else "portrait")
    if name in ("color", "monochrome"):
        return name == "color"
    if name in SCREEN_MEDIA_FEATURES:
        answer = SCREEN_MEDIA_FEATURES[name]
        if not value:
            return answer not in ("none", "no-preference")
        return value == answer
    return False


def _media_query_matches(query: str, viewport: Viewport) -> bool:
    negated = False
    words = query.split(None, 1)
    if words and words[0] in ("not", "only"):
        negated = words[0] == "not"
        query = words[1] if len(words) > 1 else ""

    matched = True
    for name, operator, value in _MEDIA_RANGE.findall(query):
        expected = _length_px(value)
        actual = viewport[0] if name == "width" else viewport[1]
        matched = matched and expected is not None and _compare(actual, operator, expected)
    query = _MEDIA_RANGE.sub(" ", query)
    for name, value in _MEDIA_FEATURE.findall(query):
        matched = matched and _feature_matches(name, value, viewport)

    remainder = [word for word in _MEDIA_FEATURE.sub(" ", query).split() if word != "and"]
    if len(remainder) > 1 or any(char in word for word in remainder for char in "()<>=:"):
        # syntax this evaluator does not know never matches
        return False
    if remainder and remainder[0] not in ("all", "screen"):
        matched = False
    return matched != negated


def media_matches(query: str, viewport: Viewport = DEFAULT_VIEWPORT) -> bool:
    """Whether a media query list matches a screen of the given size."""
    query = query.strip().lower()
    if not query:
        return True
    return any(
        _media_query_matches(part.strip(), viewport)
        for part in _split_top_level(query, ",")
        if part.strip()
    )


def parse_declarations(text: str) -> Dict[str, Tuple[str, bool]]:
    """Parse ``prop: value`` pairs; the flag marks ``!important``."""
    declarations: Dict[str, Tuple[str, bool]] = {}
    for chunk in _split_top_level(text, ";"):
        if ":" not in chunk:
            continue
        name, value = chunk.split(":", 1)
        name = name.strip().lower()
        value = value.strip()
        if not name or not value:
            continue
        important = False
        if value.lower().endswith("!important"):
            important = True
            value = value[: -len("!important")].rstrip()
        declarations[name] = (value, important)
    return declarations


def serialize_declarations(declarations: Dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in declarations.items())


def _iter_blocks(css: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(prelude, body)`` pairs for the top-level blocks of a sheet."""
    depth = 0
    quote: Optional[str] = None
    paren = 0
    prelude_start = 0
    body_start = 0
    prelude = ""
    for index, char in enumerate(css):
        if quote:
            if char == quote and css[index - 1] != "\\":
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "(":
            paren += 1
        elif char == ")" and paren:
            paren -= 1
        elif paren:
            continue
        elif char == ";" and depth == 0:
            # statement at-rules such as @import or @charset
            prelude_start = index + 1
        elif char == "{":
            if depth == 0:
                prelude = css[prelude_start:index].strip()
                body_start = index + 1
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                yield prelude, css[body_start:index]
                prelude_start = index + 1


def specificity(selector: str) -> Tuple[int, int, int]:
    stripped = re.sub(r"\[[^\]]*\]", "[]", selector)
    ids = len(_ID_SELECTOR.findall(stripped))
    classes = len(_CLASS_LIKE_SELECTOR.findall(stripped))
    without_classes = _CLASS_LIKE_SELECTOR.sub(" ", _ID_SELECTOR.sub(" ", stripped))
    types = len(_TYPE_SELECTOR.findall(without_classes))
    return ids, classes, types


@dataclass
class StyleRule:
    """One selector of a parsed rule set, with its declarations."""

    selector: str
    pseudo: Optional[str]
    specificity: Tuple[int, int, int]
    order: int
    declarations: Dict[str, Tuple[str, bool]]
    matcher: "sv.SoupSieve"


def _group_applies(prelude: str, viewport: Viewport) -> bool:
    lowered = prelude.lower()
    if lowered.startswith("@media"):
        return media_matches(prelude[len("@media") :], viewport)
    return lowered.startswith(_GROUPING_AT_RULES)


def parse_stylesheet(
    css: str,
    start_order: int = 0,
    base_url: Optional[str] = None,
    viewport: Viewport = DEFAULT_VIEWPORT,
) -> List[StyleRule]:
    """Rules of one sheet in source order, including matching nested groups.

    ``base_url`` is the sheet's own address; its relative ``url()`` values are
    made absolute so they do not resolve against the page.
    """
    rules: List[StyleRule] = []
    order = start_order
    pending = [_iter_blocks(_COMMENT.sub("", css))]
    while pending:
        block = next(pending[-1], None)
        if block is None:
            pending.pop()
            continue
        prelude, body = block
        if prelude.startswith("@"):
            if _group_applies(prelude, viewport):
                pending.append(_iter_blocks(body))
            continue
        declarations = parse_declarations(body)
        if not declarations:
            continue
        if base_url:
            declarations = {
                name: (absolutize_css_urls(value, base_url), important)
                for name, (value, important) in declarations.items()
            }
        for selector in _split_top_level(prelude, ","):
            rule = _compile_rule(selector.strip(), declarations, order)
            if rule is not None:
                rules.append(rule)
            order += 1
    return rules


def _compile_rule(
    selector: str,
    declarations: Dict[str, Tuple[str, bool]],
    order: int,
) -> Optional[StyleRule]:
    if not selector:
        return None
    pseudo = None
    match = _PSEUDO_ELEMENT_SUFFIX.search(selector)
    if match and (
        selector[match.start() : match.start() + 2] == "::"
        or match.group(1).lower() in _LEGACY_PSEUDO_ELEMENTS
    ):
        pseudo = match.group(1).lower()
        if pseudo not in PSEUDO_ELEMENTS:
            return None
        selector = selector[: match.start()].strip() or "*"
    try:
        matcher = sv.compile(selector)
    except (sv.SelectorSyntaxError, NotImplementedError, ValueError) as exc:
        logger.debug("Skipping unsupported selector %r: %s", selector, exc)
        return None
    return StyleRule(
        selector=selector,
        pseudo=pseudo,
        specificity=specificity(selector),
        order=order,
        declarations=declarations,
        matcher=matcher,
    )


def _parent_element(element: Tag) -> Optional[Tag]:
    parent = element.parent
    if parent is None or isinstance(parent, BeautifulSoup):
        return None
    return parent


def _inherits(name: str) -> bool:
    return name in INHERITED_PROPERTIES or name.startswith("--")


def _custom_property_lookup(
    declared: Dict[str, str],
    inherited: Dict[str, str],
) -> Callable[[str], Optional[str]]:
    """Lookup for ``var()`` that resolves an element's own custom properties lazily."""
    resolved: Dict[str, Optional[str]] = {}
    active: Set[str] = set()

    def lookup(name: str) -> Optional[str]:
        if name in resolved:
            return resolved[name]
        if name not in declared:
            return inherited.get(name)
        if name in active:
            return None
        active.add(name)
        value = substitute_variables(declared[name], lookup)
        active.discard(name)
        resolved[name] = value
        return value

    return lookup


def _resolve_current_color(values: Dict[str, str]) -> Dict[str, str]:
    color = values.get("color") or DEFAULT_COLOR
    return {
        name: _CURRENT_COLOR.sub(lambda _: color, value)
        for name, value in values.items()
    }


def collect_style_blocks(
    root: Tag,
    viewport: Viewport = DEFAULT_VIEWPORT,
) -> List[str]:
    """Text of the ``<style>`` elements that apply to ``root``'s live tree."""
    sheets = []
    for style in root.find_all("style"):
        if style.find_parent(["template", "noscript"]) is not None:
            continue
        media = style.get("media")
        if isinstance(media, str) and not media_matches(media, viewport):
            continue
        sheets.append("".join(str(child) for child in style.contents))
    return sheets


class StyleResolver:
    """Resolve declared and inherited style values for elements of one tree."""

    def __init__(
        self,
        stylesheets: Sequence[StylesheetSource] = (),
        viewport: Viewport = DEFAULT_VIEWPORT,
    ) -> None:
        self._rules: List[StyleRule] = []
        for sheet in stylesheets:
            if isinstance(sheet, CapturedStylesheet):
                css, href = sheet.css, sheet.href
            else:
                css, href = sheet, None
            self._rules.extend(
                parse_stylesheet(
                    css,
                    start_order=len(self._rules),
                    base_url=href,
                    viewport=viewport,
                )
            )
        # specified values keep currentColor so it inherits as a keyword
        self._specified_cache: Dict[Tuple[int, Optional[str]], Dict[str, str]] = {}
        self._computed_cache: Dict[Tuple[int, Optional[str]], Dict[str, str]] = {}

    @classmethod
    def for_tree(
        cls,
        root: Tag,
        stylesheets: Optional[Sequence[StylesheetSource]] = None,
        viewport: Viewport = DEFAULT_VIEWPORT,
    ) -> "StyleResolver":
        """Use captured stylesheets when given, else the tree's own ``<style>`` blocks."""
        if stylesheets:
            return cls(stylesheets, viewport)
        return cls(collect_style_blocks(root, viewport), viewport)

    @property
    def rules(self) -> List[StyleRule]:
        return list(self._rules)

    def computed(self, element: Tag, pseudo: Optional[str] = None) -> Dict[str, str]:
        key = (id(element), pseudo)
        values = self._computed_cache.get(key)
        if values is None:
            values = _resolve_current_color(self._specified(element, pseudo))
            self._computed_cache[key] = values
        return values

    def _specified(self, element: Tag, pseudo: Optional[str] = None) -> Dict[str, str]:
        key = (id(element), pseudo)
        cached = self._specified_cache.get(key)
        if cached is not None:
            return cached

        if pseudo is not None:
            inherited = self._specified(element)
            declared = self._cascade(element, pseudo, include_element_styles=False)
            values = self._combine(inherited, declared)
            self._specified_cache[key] = values
            return values

        # walk up to the nearest resolved ancestor, then resolve downwards
        chain = []
        node: Optional[Tag] = element
        while node is not None and (id(node), None) not in self._specified_cache:
            chain.append(node)
            node = _parent_element(node)
        inherited = self._specified_cache[(id(node), None)] if node is not None else {}
        for node in reversed(chain):
            declared = self._cascade(node, None, include_element_styles=True)
            inherited = self._combine(inherited, declared)
            self._specified_cache[(id(node), None)] = inherited
        return inherited

    @staticmethod
    def _combine(inherited: Dict[str, str], declared: Dict[str, str]) -> Dict[str, str]:
        values = {name: value for name, value in inherited.items() if _inherits(name)}
        custom: Dict[str, str] = {}
        regular: Dict[str, str] = {}
        for name, value in declared.items():
            keyword = value.strip().lower()
            if name == "color" and keyword == "currentcolor":
                keyword = "inherit"
            if keyword == "inherit" or (keyword == "unset" and _inherits(name)):
                if name in inherited:
                    values[name] = inherited[name]
                else:
                    values.pop(name, None)
                continue
            if keyword in ("initial", "unset"):
                values.pop(name, None)
                continue
            if name.startswith("--"):
                custom[name] = value
            else:
                regular[name] = value

        lookup = _custom_property_lookup(custom, dict(values))
        for name in custom:
            resolved = lookup(name)
            if resolved is None:
                values.pop(name, None)
            else:
                values[name] = resolved

        for name, value in regular.items():
            if _VAR_START.search(value):
                substituted = substitute_variables(value, lookup)
                if substituted is None:
                    # invalid at computed-value time, so the property acts as unset
                    if _inherits(name) and name in inherited:
                        values[name] = inherited[name]
                    else:
                        values.pop(name, None)
                    continue
                value = substituted
            values[name] = value
        return values

    def _cascade(
        self,
        element: Tag,
        pseudo: Optional[str],
        include_element_styles: bool,
    ) -> Dict[str, str]:
        # (important, origin, specificity, order) sorts ascending; later wins
        weighted: Dict[str, Tuple[Tuple, str]] = {}

        def offer(name: str, value: str, weight: Tuple) -> None:
            current = weighted.get(name)
            if current is None or weight >= current[0]:
                weighted[name] = (weight, value)

        if include_element_styles:
            for name, value in element.attrs.items():
                name = str(name)
                if name in PRESENTATION_ATTRIBUTES and isinstance(value, str):
                    offer(name, value.strip(), (0, 0, (0, 0, 0), -1))

        for rule in self._rules:
            if rule.pseudo != pseudo:
                continue
            if not self._matches(rule, element):
                continue
            for name, (value, important) in rule.declarations.items():
                offer(name, value, (int(important), 1, rule.specificity, rule.order))

        if include_element_styles:
            inline = element.get("style")
            if isinstance(inline, str) and inline.strip():
                for name, (value, important) in parse_declarations(inline).items():
                    offer(name, value, (int(important), 2, (0, 0, 0), 0))

        return {name: value for name, (_, value) in weighted.items()}

    @staticmethod
    def _matches(rule: StyleRule, element: Tag) -> bool:
        try:
            return bool(rule.matcher.match(element))
        except (sv.SelectorSyntaxError, NotImplementedError, ValueError):
            return False


def is_hidden(style: Dict[str, str], element: Tag) -> bool:
    """Whether an element is not displayed, invisible, or collapsed to zero size."""
    if style.get("display", "").strip().lower() == "none":
        return True
    if style.get("visibility", "").strip().lower() == "hidden":
        return True
    width = style.get("width") or element.get("width")
    height = style.get("height") or element.get("height")
    return _is_zero(width) and _is_zero(height)


def _is_zero(value: Optional[object]) -> bool:
    if not isinstance(value, str):
        return False
    return value.strip().lower() in ("0", "0px", "0.0", "0em", "0rem", "0%")


def iter_style_values(
    resolver: StyleResolver,
    elements: Iterable[Tag],
    properties: Sequence[str],
) -> Iterator[str]:
    """Yield property values for each element, then its ::before and ::after."""
    for element in elements:
        scopes = [
            resolver.computed(element),
            resolver.computed(element, "before"),
            resolver.computed(element, "after"),
        ]
        for prop in properties:
            for style in scopes:
                value = style.get(prop)
                if value:
                    yield value
