"""
Raster Encoding for P-touch Printers.

Converts a rendered label into the printer's raster lines. The print head
has 128 pins, so each raster line is 16 bytes and covers one column of
the label image; the tape feeds along the label's x axis.
"""

from typing import Tuple

from PIL import Image

from .errors import RasterEncodingError
from .protocol import Commands

RASTER_HEIGHT_PX = 128
BYTES_PER_LINE = RASTER_HEIGHT_PX // 8

# Printable pins per tape width (mm); the rest of the head stays idle.
TAPE_PINS = {
    4: 24,
    6: 32,
    9: 50,
    12: 70,
    18: 112,
    24: 128,
}


def compose_strip(image: Image.Image, height: int = RASTER_HEIGHT_PX) -> Image.Image:
    """
    Center a rendered label vertically on a white strip of raster height.

    Labels taller than the strip are cropped evenly top and bottom.
    """
    strip = Image.new("L", (image.width, height), 255)
    strip.paste(image.convert("L"), (0, (height - image.height) // 2))
    return strip


def load_raw_image(image: Image.Image, tape_width_mm: int, threshold: int = 128) -> Tuple[bytes, int]:
    """
    Pack a raster strip into raw raster lines.

    Each image column becomes one raster line, MSB of the first byte is
    the top row. Black pixels are 1 (burn), white are 0.

    Args:
        image: Strip of exactly RASTER_HEIGHT_PX rows
        tape_width_mm: Width of the loaded tape
        threshold: Grayscale threshold for black/white conversion (0-255)

    Returns:
        (packed bytes, bytes per raster line)

    Raises:
        RasterEncodingError: If the tape width is unsupported or the strip
            has the wrong shape
    """
    if tape_width_mm not in TAPE_PINS:
        raise RasterEncodingError(f"Unsupported tape width: {tape_width_mm} mm")
    if image.height != RASTER_HEIGHT_PX:
        raise RasterEncodingError(f"Strip height must be {RASTER_HEIGHT_PX}px, got {image.height}px")
    if image.width == 0:
        raise RasterEncodingError("Cannot print an empty image")

    # In PIL "1" mode, 0 is black
    mono = image.convert("L").point(lambda x: 0 if x < threshold else 255, mode="1")
    pixels = mono.load()

    result = bytearray()
    for x in range(mono.width):
        line = bytearray(BYTES_PER_LINE)
        for y in range(RASTER_HEIGHT_PX):
            if pixels[x, y] == 0:
                line[y // 8] |= 0x80 >> (y % 8)
        result.extend(line)

    return bytes(result), BYTES_PER_LINE


def pack_bits(data: bytes) -> bytes:
    """
    TIFF PackBits run-length encoding.

    A header byte n in 0..127 is followed by n+1 literal bytes; a header
    in 129..255 (i.e. -127..-1) is followed by one byte repeated 257-n
    times.
    """
    out = bytearray()
    i = 0
    n = len(data)

    while i < n:
        run = 1
        while i + run < n and run < 128 and data[i + run] == data[i]:
            run += 1

        if run > 1:
            out.append(257 - run)
            out.append(data[i])
            i += run
            continue

        start = i
        i += 1
        while i < n and i - start < 128:
            if i + 1 < n and data[i] == data[i + 1]:
                break
            i += 1
        out.append(i - start - 1)
        out.extend(data[start:i])

    return bytes(out)


def compress_image(data: bytes, bytes_per_row: int) -> bytes:
    """
    Compress packed raster lines into transmit-ready commands.

    Blank lines become a single Z, others a G command with PackBits data.

    Raises:
        RasterEncodingError: If data is not a whole number of lines
    """
    if bytes_per_row <= 0 or len(data) % bytes_per_row != 0:
        raise RasterEncodingError(
            f"Raster data ({len(data)} bytes) is not a multiple of {bytes_per_row} bytes per line"
        )

    result = bytearray()
    for offset in range(0, len(data), bytes_per_row):
        line = data[offset:offset + bytes_per_row]
        if not any(line):
            result.extend(Commands.zero_raster_line())
        else:
            result.extend(Commands.raster_line(pack_bits(line)))

    return bytes(result)
