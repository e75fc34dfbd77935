"""
Text rendering for label printing.

Renders a single line of text into a grayscale Pillow image sized to the
text and to the tape:
- width is the measured advance of the text plus fixed padding
- height is the canvas height derived from the tape width
- the baseline sits at height/2 + cap_height/2, which centers capitals
  optically regardless of descenders
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageDraw, ImageFont

from .errors import RenderError

logger = logging.getLogger(__name__)

PADDING_PX = 40
MEASURE_CANVAS_PX = 100


@dataclass(frozen=True)
class LabelSpec:
    """
    Input to the rendering pipeline.

    Attributes:
        text: Text to render, may be empty
        canvas_height_px: Height of the output image
        font_size_pt: Font size; pixel size equals point size
        font_path: TrueType/OpenType file, empty for the built-in face
    """

    text: str
    canvas_height_px: int
    font_size_pt: int = 32
    font_path: str = ""


@dataclass
class RenderedLabel:
    """A rendered label and the metrics used to lay it out."""

    image: Image.Image
    text_width: float
    cap_height: float
    anchor: Tuple[float, float]

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def to_png(self) -> bytes:
        buf = BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def to_data_url(self) -> str:
        """Base64 PNG data URL for embedding the preview in a page."""
        return "data:image/png;base64," + base64.b64encode(self.to_png()).decode("ascii")


def load_face(spec: LabelSpec) -> ImageFont.FreeTypeFont:
    """
    Load the font face for a label.

    Uses spec.font_path when set, otherwise Pillow's embedded default
    face. Basic layout keeps metrics identical across platforms.

    Raises:
        RenderError: If the font cannot be read or parsed
    """
    try:
        if spec.font_path:
            face = ImageFont.truetype(spec.font_path, spec.font_size_pt, layout_engine=ImageFont.Layout.BASIC)
        else:
            face = ImageFont.load_default(size=spec.font_size_pt)
    except (OSError, ValueError) as e:
        source = spec.font_path or "built-in font"
        raise RenderError(f"Could not load font {source}: {e}") from e

    if not isinstance(face, ImageFont.FreeTypeFont):
        raise RenderError("FreeType support is required to render labels")
    if face.layout_engine != ImageFont.Layout.BASIC:
        face = face.font_variant(layout_engine=ImageFont.Layout.BASIC)
    return face


def cap_height(face: ImageFont.FreeTypeFont) -> float:
    """Height of a capital letter above the baseline, in pixels."""
    top = face.getbbox("H", anchor="ls")[1]
    return float(-top)


def measure_text(face: ImageFont.FreeTypeFont, text: str) -> float:
    """Advance width of text, measured on a throwaway canvas."""
    scratch = ImageDraw.Draw(Image.new("L", (MEASURE_CANVAS_PX, MEASURE_CANVAS_PX), 255))
    return scratch.textlength(text, font=face)


def render_label(spec: LabelSpec, padding_px: int = PADDING_PX) -> RenderedLabel:
    """
    Render spec.text into a white canvas with black text.

    Empty text produces a blank canvas of padding width.

    Raises:
        RenderError: If the font cannot be loaded or the text measured
    """
    logger.debug("Rendering %r at %dpt, height %dpx", spec.text, spec.font_size_pt, spec.canvas_height_px)
    face = load_face(spec)

    try:
        text_width = measure_text(face, spec.text)
        caps = cap_height(face)
    except (OSError, ValueError) as e:
        raise RenderError(f"Could not measure text: {e}") from e

    full_width = text_width + padding_px
    anchor = (full_width / 2, spec.canvas_height_px / 2 + caps / 2)

    image = Image.new("L", (int(full_width), spec.canvas_height_px), 255)
    if spec.text:
        try:
            ImageDraw.Draw(image).text(anchor, spec.text, fill=0, font=face, anchor="ms")
        except (OSError, ValueError) as e:
            raise RenderError(f"Could not draw text: {e}") from e

    logger.debug("Rendered %dx%d, text width %.1f, cap height %.1f", image.width, image.height, text_width, caps)
    return RenderedLabel(image=image, text_width=text_width, cap_height=caps, anchor=anchor)
