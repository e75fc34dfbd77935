"""
P-touch Device Handle.

PTouchDevice wraps an open Transport and issues the raster command set.
Each method sends one command and raises TransportError on failure; the
ordering of commands is the caller's business (see transmitter.py).
"""

import logging
from typing import Optional

from .connection import Transport, open_transport
from .errors import TransportError
from .protocol import Commands, CompressionMode
from .responses import STATUS_LENGTH, DeviceStatus

logger = logging.getLogger(__name__)


class PTouchDevice:
    """An open connection to a P-touch printer.

    The tape width given at open time is only used to frame the print
    information command; it is not negotiated with the printer.
    """

    def __init__(self, transport: Transport, tape_width_mm: int = 0, status_timeout: float = 2.0):
        self.transport = transport
        self.tape_width_mm = tape_width_mm
        self.status_timeout = status_timeout

    @classmethod
    def open(
        cls,
        address: str,
        tape_width_mm: int = 0,
        baudrate: int = 9600,
        status_timeout: float = 2.0,
    ) -> "PTouchDevice":
        """
        Open a printer by address.

        Args:
            address: "usb", "usb:VVVV:PPPP" or a serial device path
            tape_width_mm: Tape width for framing, 0 if not known yet
            baudrate: Serial baud rate (ignored for USB)
            status_timeout: Seconds to wait for a status reply

        Raises:
            TransportError: If the device cannot be opened
        """
        try:
            transport = open_transport(address, baudrate=baudrate, timeout=status_timeout)
        except ValueError as e:
            raise TransportError(str(e)) from e
        return cls(transport, tape_width_mm=tape_width_mm, status_timeout=status_timeout)

    def _send(self, name: str, data: bytes) -> None:
        logger.debug("TX %s: %s", name, data.hex() if len(data) < 32 else data[:32].hex() + "...")
        self.transport.write(data)

    def reset(self) -> None:
        """Invalidate any pending command and initialize the printer."""
        self._send("reset", Commands.invalidate() + Commands.initialize())

    def request_status(self) -> None:
        self._send("status_request", Commands.status_request())

    def read_status(self, timeout: Optional[float] = None) -> DeviceStatus:
        """
        Read one status reply.

        Raises:
            TransportError: On I/O failure, short read or malformed reply
        """
        data = self.transport.read(STATUS_LENGTH, self.status_timeout if timeout is None else timeout)
        logger.debug("RX status: %s", data.hex())
        if len(data) < STATUS_LENGTH:
            raise TransportError(f"Incomplete status reply ({len(data)} of {STATUS_LENGTH} bytes)")
        try:
            return DeviceStatus.parse(data)
        except ValueError as e:
            raise TransportError(f"Invalid status reply: {e}") from e

    def set_print_property(self, line_count: int, media_type: int = 0) -> None:
        self._send("print_information", Commands.print_information(line_count, self.tape_width_mm, media_type))

    def set_raster_mode(self) -> None:
        self._send("raster_mode", Commands.raster_mode())

    def set_feed_amount(self, dots: int) -> None:
        self._send("margin", Commands.margin(dots))

    def set_compression_mode_enabled(self, enabled: bool) -> None:
        mode = CompressionMode.TIFF if enabled else CompressionMode.NONE
        self._send("compression", Commands.compression(mode))

    def set_print_mode(self, auto_cut: bool, mirror: bool) -> None:
        self._send("various_mode", Commands.various_mode(auto_cut, mirror))

    def set_extended_mode(
        self,
        half_cut: bool,
        no_chain: bool,
        special_tape: bool,
        high_resolution: bool,
        no_buffer_clearing: bool,
    ) -> None:
        self._send(
            "advanced_mode",
            Commands.advanced_mode(half_cut, no_chain, special_tape, high_resolution, no_buffer_clearing),
        )

    def send_image(self, payload: bytes) -> None:
        """Send the already compressed raster lines."""
        self._send("raster_data", payload)

    def print_and_eject(self) -> None:
        self._send("print_and_feed", Commands.print_and_feed())

    def close(self) -> None:
        self.transport.close()

    @property
    def is_open(self) -> bool:
        return self.transport.is_open

    def __repr__(self):
        return f"PTouchDevice({self.transport!r}, tape_width_mm={self.tape_width_mm})"
