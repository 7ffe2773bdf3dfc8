"""
Tests for raster geometry normalization and PNG output.
"""

import io

import pytest
from PIL import Image

from svg_scout import render
from svg_scout.render import RenderError, prepare_render, render_png, transform_scale


class TestPrepareRender:
    """Test cases for the geometry steps applied before rasterizing."""

    def test_view_box_origin_is_normalized(self):
        """Test that a shifted viewBox is rebased onto a translating group."""
        plan = prepare_render(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="10 10 100 100">'
            '<rect x="10" y="10" width="50" height="50"/></svg>',
            scale=2,
        )
        assert 'viewBox="0 0 100 100"' in plan.markup
        assert '<g transform="translate(-10,-10)"><rect' in plan.markup
        assert (plan.pixel_width, plan.pixel_height) == (200, 200)
        assert 'width="100"' in plan.markup

    def test_zero_origin_untouched(self):
        plan = prepare_render(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 30 20"><g/></svg>', scale=1
        )
        assert "translate" not in plan.markup
        assert (plan.width, plan.height) == (30, 20)

    @pytest.mark.parametrize("scale, expected", [(1, 100), (2, 200), (4, 400)])
    def test_transform_scale_folds_into_size(self, scale, expected):
        """Test that a CSS scale() on the root enlarges the output."""
        plan = prepare_render(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 50 50"'
            ' style="transform: scale(2); fill: red"><g/></svg>',
            scale=scale,
        )
        assert (plan.pixel_width, plan.pixel_height) == (expected, expected)
        assert plan.transform_scale == (2, 2)
        assert "transform" not in plan.markup
        assert 'style="fill: red"' in plan.markup

    def test_explicit_size_wins(self):
        plan = prepare_render(
            '<svg xmlns="http://www.w3.org/2000/svg" width="16" height="8" viewBox="0 0 32 16"/>',
            scale=4,
        )
        assert (plan.pixel_width, plan.pixel_height) == (64, 32)

    def test_missing_namespace_is_added(self):
        plan = prepare_render('<svg width="5" height="5"><rect/></svg>', scale=1)
        assert plan.markup.startswith('<svg xmlns="http://www.w3.org/2000/svg"')

    def test_invalid_markup(self):
        with pytest.raises(RenderError):
            prepare_render("<svg><g></svg>", scale=2)

    def test_unsupported_scale(self):
        with pytest.raises(RenderError):
            prepare_render('<svg xmlns="http://www.w3.org/2000/svg"/>', scale=3)


class TestTransformScale:
    """Test cases for folding transform functions."""

    def test_functions(self):
        assert transform_scale("scale(3)") == (3, 3)
        assert transform_scale("scale(2, 0.5)") == (2, 0.5)
        assert transform_scale("matrix(1.5, 0, 0, 2, 10, 10)") == (1.5, 2)
        assert transform_scale("translate(4px, 4px) scaleX(2)") == (2, 1)
        assert transform_scale("rotate(45deg)") == (1, 1)


class TestRenderPng:
    """Test cases for PNG encoding with a stubbed rasterizer."""

    def test_passes_pixel_size(self, monkeypatch, transparent_png):
        calls = []

        def fake_rasterize(markup, width, height):
            calls.append((width, height))
            return transparent_png(width, height)

        monkeypatch.setattr(render, "_rasterize", fake_rasterize)
        png = render_png('<svg xmlns="http://www.w3.org/2000/svg" width="12" height="6"/>', 2)
        assert calls == [(24, 12)]
        with Image.open(io.BytesIO(png)) as image:
            assert image.size == (24, 12)

    def test_background_fill(self, monkeypatch, transparent_png):
        monkeypatch.setattr(render, "_rasterize", lambda markup, w, h: transparent_png(w, h))
        png = render_png(
            '<svg xmlns="http://www.w3.org/2000/svg" width="4" height="4"/>', 1, "#ff0000"
        )
        with Image.open(io.BytesIO(png)) as image:
            assert image.convert("RGBA").getpixel((0, 0)) == (255, 0, 0, 255)

    def test_transparent_background_is_untouched(self, monkeypatch, transparent_png):
        monkeypatch.setattr(render, "_rasterize", lambda markup, w, h: transparent_png(w, h))
        png = render_png(
            '<svg xmlns="http://www.w3.org/2000/svg" width="4" height="4"/>', 1, "transparent"
        )
        with Image.open(io.BytesIO(png)) as image:
            assert image.convert("RGBA").getpixel((0, 0))[3] == 0

    def test_rasterizer_failure(self, monkeypatch):
        def broken(markup, width, height):
            raise ValueError("cannot load image")

        monkeypatch.setattr(render, "_rasterize", broken)
        with pytest.raises(RenderError, match="Failed to load SVG image"):
            render_png('<svg xmlns="http://www.w3.org/2000/svg"/>', 2)

    def test_unknown_background(self, monkeypatch, transparent_png):
        monkeypatch.setattr(render, "_rasterize", lambda markup, w, h: transparent_png(w, h))
        with pytest.raises(RenderError):
            render_png('<svg xmlns="http://www.w3.org/2000/svg"/>', 1, "not-a-color")


class TestRasterOutput:
    """Test cases that run the real rasterizer."""

    def _pixels(self, png):
        with Image.open(io.BytesIO(png)) as image:
            return image.size, image.convert("RGBA").tobytes()

    def test_shifted_view_box_matches_anchored_equivalent(self):
        shifted = render_png(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="10 10 100 100">'
            '<rect x="10" y="10" width="50" height="50" fill="#ff0000"/></svg>',
            2,
        )
        anchored = render_png(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
            '<rect x="0" y="0" width="50" height="50" fill="#ff0000"/></svg>',
            2,
        )
        assert self._pixels(shifted) == self._pixels(anchored)
        with Image.open(io.BytesIO(shifted)) as image:
            pixels = image.convert("RGBA")
            assert pixels.getpixel((50, 50)) == (255, 0, 0, 255)
            assert pixels.getpixel((150, 150))[3] == 0

    @pytest.mark.parametrize("scale, expected", [(1, 100), (2, 200)])
    def test_transform_scale_output_size(self, scale, expected):
        png = render_png(
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 50 50"'
            ' style="transform: scale(2)"><circle cx="25" cy="25" r="20"/></svg>',
            scale,
        )
        with Image.open(io.BytesIO(png)) as image:
            assert image.size == (expected, expected)
