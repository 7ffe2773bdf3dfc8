"""
Tests for the stylesheet parser and computed style resolution.
"""

import pytest
from bs4 import BeautifulSoup

from svg_scout.models import CapturedStylesheet
from svg_scout.styles import (
    DEFAULT_COLOR,
    StyleResolver,
    absolutize_css_urls,
    extract_css_urls,
    is_hidden,
    iter_style_values,
    media_matches,
    parse_declarations,
    parse_stylesheet,
    specificity,
)


def _soup(html):
    return BeautifulSoup(html, "html5lib")


class TestDeclarations:
    """Test cases for declaration and url() parsing."""

    def test_parse_declarations(self):
        """Test that importance flags and quoted semicolons are handled."""
        result = parse_declarations(
            "fill: red; stroke: blue !important; background: url('a;b.svg')"
        )
        assert result == {
            "fill": ("red", False),
            "stroke": ("blue", True),
            "background": ("url('a;b.svg')", False),
        }

    def test_extract_css_urls(self):
        """Test that every url() token is returned in order."""
        value = 'url("a.svg"), url(\'b.svg\'), url(c.svg)'
        assert extract_css_urls(value) == ["a.svg", "b.svg", "c.svg"]
        assert extract_css_urls("none") == []

    def test_specificity(self):
        assert specificity("#logo") == (1, 0, 0)
        assert specificity("svg.icon path") == (0, 1, 2)
        assert specificity("a:hover") == (0, 1, 1)


class TestStylesheetParsing:
    """Test cases for rule extraction."""

    def test_media_blocks_are_flattened(self):
        """Test that rules nested in grouping at-rules are kept."""
        rules = parse_stylesheet(
            ".a { fill: red } @media (min-width: 10px) { .b { fill: blue } }"
            " @font-face { font-family: X }"
        )
        assert [rule.selector for rule in rules] == [".a", ".b"]

    def test_pseudo_elements(self):
        """Test that ::before and ::after rules are tagged and others dropped."""
        rules = parse_stylesheet(
            ".x::before { content: url(a.svg) } .y:after { content: '' }"
            " .z::placeholder { color: red }"
        )
        assert [(rule.selector, rule.pseudo) for rule in rules] == [
            (".x", "before"),
            (".y", "after"),
        ]

    def test_comma_separated_selectors(self):
        rules = parse_stylesheet("/* icons */ .a, .b { fill: red }")
        assert [rule.selector for rule in rules] == [".a", ".b"]


class TestStyleResolver:
    """Test cases for the cascade and inheritance."""

    def test_inherited_fill(self):
        """Test that fill set on the root reaches descendants."""
        soup = _soup('<svg class="icon"><g><path id="p"></path></g></svg>')
        resolver = StyleResolver([".icon { fill: red }"])
        assert resolver.computed(soup.find(id="p"))["fill"] == "red"

    def test_non_inherited_property(self):
        """Test that opacity does not flow to children."""
        soup = _soup('<svg class="icon"><path id="p"></path></svg>')
        resolver = StyleResolver([".icon { opacity: 0.5 }"])
        assert "opacity" not in resolver.computed(soup.find(id="p"))

    def test_cascade_order(self):
        """Test inline over rules, specificity, and !important."""
        soup = _soup(
            '<svg><path id="p" class="c" fill="green" style="stroke: black"></path></svg>'
        )
        resolver = StyleResolver(
            [
                "#p { fill: blue } .c { fill: red; stroke: white !important }",
                "path { fill: yellow }",
            ]
        )
        computed = resolver.computed(soup.find(id="p"))
        assert computed["fill"] == "blue"
        assert computed["stroke"] == "white"

    def test_presentation_attribute_is_lowest(self):
        soup = _soup('<svg><path id="p" fill="green"></path></svg>')
        assert StyleResolver([]).computed(soup.find(id="p"))["fill"] == "green"
        resolver = StyleResolver(["path { fill: red }"])
        assert resolver.computed(soup.find(id="p"))["fill"] == "red"

    def test_inherit_keyword(self):
        soup = _soup('<div style="opacity: 0.3"><span id="s" style="opacity: inherit"></span></div>')
        assert StyleResolver([]).computed(soup.find(id="s"))["opacity"] == "0.3"

    def test_for_tree_reads_style_blocks(self):
        """Test that <style> blocks in templates are not applied to the page."""
        soup = _soup(
            "<style>.a { fill: red }</style>"
            "<template><style>.a { fill: blue }</style></template>"
            '<svg class="a" id="s"></svg>'
        )
        resolver = StyleResolver.for_tree(soup)
        assert resolver.computed(soup.find(id="s"))["fill"] == "red"

    def test_pseudo_element_values(self):
        """Test that ::before values are reported with the element's values."""
        soup = _soup('<div id="d" class="x" style="background-image: url(b.svg)"></div>')
        resolver = StyleResolver([".x::before { content: url(a.svg) }"])
        values = list(
            iter_style_values(resolver, [soup.find(id="d")], ["background-image", "content"])
        )
        assert values == ["url(b.svg)", "url(a.svg)"]


class TestVisibility:
    """Test cases for hidden-element detection."""

    def test_is_hidden(self):
        soup = _soup('<svg id="a" width="0" height="0"></svg><svg id="b" width="0"></svg>')
        assert is_hidden({"display": "none"}, soup.find(id="b"))
        assert is_hidden({"visibility": "hidden"}, soup.find(id="b"))
        assert is_hidden({}, soup.find(id="a"))
        assert not is_hidden({}, soup.find(id="b"))


class TestComputedValues:
    """Test cases for values reported the way a browser computes them."""

    def test_custom_properties(self):
        soup = _soup(
            '<svg id="s" style="--accent: var(--brand)">'
            '<path id="p"></path><path id="q" class="off"></path><path id="r" class="alt"></path>'
            "</svg>"
        )
        resolver = StyleResolver(
            [
                ":root { --brand: #ff0000 }"
                " path { fill: var(--accent) }"
                " .off { fill: var(--missing) }"
                " .alt { stroke: var(--missing, blue) }"
            ]
        )
        assert resolver.computed(soup.find(id="p"))["fill"] == "#ff0000"
        assert "fill" not in resolver.computed(soup.find(id="q"))
        assert resolver.computed(soup.find(id="r"))["stroke"] == "blue"

    def test_custom_property_cycle_is_invalid(self):
        soup = _soup('<svg id="s" style="--a: var(--b); --b: var(--a); fill: var(--a, green)"></svg>')
        assert StyleResolver([]).computed(soup.find(id="s"))["fill"] == "green"

    def test_current_color_inherits_as_keyword(self):
        """Test that currentColor follows the color of the element using it."""
        soup = _soup(
            '<svg id="s" style="color: #00aa00" fill="currentColor">'
            '<path id="p" style="color: red"></path></svg>'
        )
        resolver = StyleResolver([])
        assert resolver.computed(soup.find(id="s"))["fill"] == "#00aa00"
        assert resolver.computed(soup.find(id="p"))["fill"] == "red"

    def test_current_color_without_color(self):
        soup = _soup('<svg id="s" stroke="currentColor"></svg>')
        assert StyleResolver([]).computed(soup.find(id="s"))["stroke"] == DEFAULT_COLOR

    def test_unset_inherits_for_inherited_properties(self):
        soup = _soup('<svg style="fill: red"><path id="p" style="fill: unset"></path></svg>')
        assert StyleResolver([]).computed(soup.find(id="p"))["fill"] == "red"

    def test_media_groups(self):
        """Test that only groups matching a desktop screen are applied."""
        soup = _soup('<svg id="s" class="a"></svg>')
        resolver = StyleResolver(
            [
                ".a { fill: red }"
                " @media print { .a { fill: black } }"
                " @media screen and (min-width: 600px) { .a { stroke: green } }"
                " @media (max-width: 400px) { .a { opacity: 0.1 } }"
            ]
        )
        computed = resolver.computed(soup.find(id="s"))
        assert computed["fill"] == "red"
        assert computed["stroke"] == "green"
        assert "opacity" not in computed

    def test_media_groups_follow_viewport(self):
        soup = _soup('<svg id="s" class="a"></svg>')
        sheet = ".a { fill: red } @media (max-width: 400px) { .a { fill: blue } }"
        resolver = StyleResolver([sheet], viewport=(375, 812))
        assert resolver.computed(soup.find(id="s"))["fill"] == "blue"

    def test_style_media_attribute(self):
        soup = _soup(
            "<style>.a { fill: red }</style>"
            '<style media="print">.a { fill: black }</style>'
            '<svg class="a" id="s"></svg>'
        )
        assert StyleResolver.for_tree(soup).computed(soup.find(id="s"))["fill"] == "red"

    @pytest.mark.parametrize(
        "query, expected",
        [
            ("", True),
            ("screen", True),
            ("print", False),
            ("not print", True),
            ("only screen and (max-width: 30em)", False),
            ("(min-width: 2000px)", False),
            ("(width >= 600px)", True),
            ("print, (orientation: landscape)", True),
            ("(prefers-color-scheme: dark)", False),
            ("(-webkit-min-device-pixel-ratio: 2)", False),
            ("(unknown-feature)", False),
        ],
    )
    def test_media_matches(self, query, expected):
        assert media_matches(query) is expected


class TestStylesheetUrls:
    """Test cases for url() values from external sheets."""

    def test_absolutize_css_urls(self):
        base = "https://example.com/static/css/site.css"
        value = "url(../img/a.svg), url('#clip'), url(\"data:image/svg+xml,%3Csvg/%3E\")"
        assert absolutize_css_urls(value, base) == (
            'url("https://example.com/static/img/a.svg"), url(\'#clip\'),'
            ' url("data:image/svg+xml,%3Csvg/%3E")'
        )

    def test_captured_sheet_base(self):
        soup = _soup('<div id="d" class="x"></div>')
        sheet = CapturedStylesheet(
            css='.x { background-image: url("../img/icon.svg") }',
            href="https://e.com/static/css/site.css",
        )
        computed = StyleResolver([sheet]).computed(soup.find(id="d"))
        assert computed["background-image"] == 'url("https://e.com/static/img/icon.svg")'
