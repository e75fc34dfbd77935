"""Tests for label text rendering."""

import base64

import pytest
from PIL import ImageFont

from ptlabel.errors import RenderError
from ptlabel.render import LabelSpec, cap_height, load_face, measure_text, render_label


class TestRenderLabel:
    """Test canvas geometry and drawing."""

    def test_canvas_size(self):
        """Height comes from the spec, width is text width plus padding."""
        label = render_label(LabelSpec(text="Hello", canvas_height_px=64, font_size_pt=48))
        assert label.height == 64
        assert label.width == int(label.text_width + 40)
        assert label.image.mode == "L"

    def test_anchor_centers_capitals(self):
        """The baseline sits half a cap height below the middle."""
        label = render_label(LabelSpec(text="Hello", canvas_height_px=64, font_size_pt=32))
        x, y = label.anchor
        assert x == pytest.approx((label.text_width + 40) / 2)
        assert y == pytest.approx(64 / 2 + label.cap_height / 2)
        assert label.cap_height > 0

    def test_draws_black_text(self):
        """Some pixels are black, the corners stay white."""
        label = render_label(LabelSpec(text="HI", canvas_height_px=64, font_size_pt=32))
        low, high = label.image.getextrema()
        assert low < 128
        assert high == 255
        assert label.image.getpixel((0, 0)) == 255

    def test_empty_text(self):
        """Empty text yields a blank canvas of padding width."""
        label = render_label(LabelSpec(text="", canvas_height_px=64))
        assert label.text_width == 0
        assert (label.width, label.height) == (40, 64)
        assert label.image.getextrema() == (255, 255)

    def test_custom_padding(self):
        """Test a non-default padding."""
        label = render_label(LabelSpec(text="", canvas_height_px=32), padding_px=10)
        assert label.width == 10

    def test_larger_font_is_wider(self):
        """Text width grows with font size."""
        small = render_label(LabelSpec(text="Label", canvas_height_px=64, font_size_pt=16))
        large = render_label(LabelSpec(text="Label", canvas_height_px=64, font_size_pt=48))
        assert large.text_width > small.text_width

    def test_missing_font_file(self, tmp_path):
        """Test that an unreadable font raises RenderError."""
        spec = LabelSpec(text="x", canvas_height_px=64, font_path=str(tmp_path / "missing.ttf"))
        with pytest.raises(RenderError, match="Could not load font"):
            render_label(spec)

    def test_data_url(self):
        """Test the base64 PNG preview form."""
        label = render_label(LabelSpec(text="A", canvas_height_px=32))
        url = label.to_data_url()
        assert url.startswith("data:image/png;base64,")
        assert base64.b64decode(url.split(",", 1)[1])[:8] == b"\x89PNG\r\n\x1a\n"


class TestMetrics:
    """Test font loading and measurement helpers."""

    def test_default_face_is_freetype(self):
        """The built-in face supports sizing."""
        face = load_face(LabelSpec(text="", canvas_height_px=64, font_size_pt=20))
        assert isinstance(face, ImageFont.FreeTypeFont)
        assert face.size == 20

    def test_default_face_uses_basic_layout(self):
        """The built-in face lays out text like a font file does."""
        face = load_face(LabelSpec(text="", canvas_height_px=64, font_size_pt=20))
        assert face.layout_engine == ImageFont.Layout.BASIC
        assert face.size == 20

    def test_measure_text_matches_textlength(self):
        """Measurement is the advance width of the whole string."""
        face = load_face(LabelSpec(text="", canvas_height_px=64, font_size_pt=32))
        assert measure_text(face, "abc") == pytest.approx(face.getlength("abc"))
        assert measure_text(face, "") == 0

    def test_cap_height_scales(self):
        """Test that cap height grows with size."""
        small = load_face(LabelSpec(text="", canvas_height_px=64, font_size_pt=16))
        large = load_face(LabelSpec(text="", canvas_height_px=64, font_size_pt=64))
        assert cap_height(large) > cap_height(small) > 0
