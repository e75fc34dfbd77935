"""
Brother P-touch Raster Command Builders.

This module builds the raw bytes of the P-touch raster command set.
Nothing here talks to a device; see device.py for that.

Command reference (PT-P700 family):
    Invalidate:         100 x 0x00
    Initialize:         ESC @
    Status request:     ESC i S
    Raster mode:        ESC i a 0x01
    Print information:  ESC i z n1..n10
    Various mode:       ESC i M n
    Advanced mode:      ESC i K n
    Margin (feed):      ESC i d n1 n2
    Compression:        M n
    Raster line:        G n1 n2 data
    Zero raster line:   Z
    Print:              FF
    Print with feed:    SUB
"""

import struct
from enum import IntEnum, IntFlag


ESC = 0x1B
INVALIDATE_LENGTH = 100


class CompressionMode(IntEnum):
    """Raster line compression modes."""
    NONE = 0x00
    TIFF = 0x02  # PackBits


class PrintInfoFlag(IntFlag):
    """Validity flags for the print information command (n1)."""
    MEDIA_KIND = 0x02
    MEDIA_WIDTH = 0x04
    MEDIA_LENGTH = 0x08
    PRIORITY_QUALITY = 0x40
    RECOVER = 0x80


class ModeFlag(IntFlag):
    """Various mode settings (ESC i M)."""
    AUTO_CUT = 0x40
    MIRROR = 0x80


class AdvancedModeFlag(IntFlag):
    """Advanced mode settings (ESC i K)."""
    HALF_CUT = 0x04
    NO_CHAIN = 0x08
    SPECIAL_TAPE = 0x10
    HIGH_RESOLUTION = 0x40
    NO_BUFFER_CLEARING = 0x80


class Commands:
    """Command builders for P-touch printers."""

    @staticmethod
    def invalidate() -> bytes:
        """Flush any partially received command."""
        return bytes(INVALIDATE_LENGTH)

    @staticmethod
    def initialize() -> bytes:
        """Reset the printer to its power-on state (ESC @)."""
        return bytes([ESC, 0x40])

    @staticmethod
    def status_request() -> bytes:
        """Ask for the 32-byte status reply (ESC i S)."""
        return bytes([ESC, 0x69, 0x53])

    @staticmethod
    def raster_mode() -> bytes:
        """Switch dynamic command mode to raster (ESC i a 1)."""
        return bytes([ESC, 0x69, 0x61, 0x01])

    @staticmethod
    def print_information(raster_lines: int, tape_width_mm: int, media_type: int = 0) -> bytes:
        """
        Announce the size of the upcoming page (ESC i z).

        Args:
            raster_lines: Number of raster lines that will follow
            tape_width_mm: Width of the loaded tape in millimeters
            media_type: Media type byte from the status reply (0 = unspecified)
        """
        flags = PrintInfoFlag.RECOVER | PrintInfoFlag.MEDIA_WIDTH
        if media_type:
            flags |= PrintInfoFlag.MEDIA_KIND
        return bytes([ESC, 0x69, 0x7A, int(flags), media_type & 0xFF, tape_width_mm & 0xFF, 0x00]) + struct.pack(
            "<IBB", raster_lines, 0x00, 0x00
        )

    @staticmethod
    def various_mode(auto_cut: bool, mirror: bool) -> bytes:
        """Set cut and mirror printing (ESC i M)."""
        value = ModeFlag(0)
        if auto_cut:
            value |= ModeFlag.AUTO_CUT
        if mirror:
            value |= ModeFlag.MIRROR
        return bytes([ESC, 0x69, 0x4D, int(value)])

    @staticmethod
    def advanced_mode(
        half_cut: bool,
        no_chain: bool,
        special_tape: bool,
        high_resolution: bool,
        no_buffer_clearing: bool,
    ) -> bytes:
        """Set chain printing, half cut and resolution (ESC i K)."""
        value = AdvancedModeFlag(0)
        if half_cut:
            value |= AdvancedModeFlag.HALF_CUT
        if no_chain:
            value |= AdvancedModeFlag.NO_CHAIN
        if special_tape:
            value |= AdvancedModeFlag.SPECIAL_TAPE
        if high_resolution:
            value |= AdvancedModeFlag.HIGH_RESOLUTION
        if no_buffer_clearing:
            value |= AdvancedModeFlag.NO_BUFFER_CLEARING
        return bytes([ESC, 0x69, 0x4B, int(value)])

    @staticmethod
    def margin(dots: int) -> bytes:
        """Set the feed amount in dots (ESC i d), little-endian."""
        return bytes([ESC, 0x69, 0x64]) + struct.pack("<H", dots)

    @staticmethod
    def compression(mode: CompressionMode) -> bytes:
        """Select raster line compression (M n)."""
        return bytes([0x4D, int(mode)])

    @staticmethod
    def raster_line(data: bytes) -> bytes:
        """Wrap one (possibly compressed) raster line (G n1 n2 data)."""
        return b"G" + struct.pack("<H", len(data)) + data

    @staticmethod
    def zero_raster_line() -> bytes:
        """A raster line with no black pixels (Z)."""
        return b"Z"

    @staticmethod
    def print_page() -> bytes:
        """Print without feeding (FF)."""
        return bytes([0x0C])

    @staticmethod
    def print_and_feed() -> bytes:
        """Print and eject the label (SUB)."""
        return bytes([0x1A])
