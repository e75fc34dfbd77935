"""
Raster Transmitter.

Sends one rendered label to the printer as a fixed sequence of commands.
The order is a protocol requirement:

    print information -> raster mode -> feed 0 -> compression on ->
    print mode -> advanced mode -> raster data -> print and eject

The first failing step aborts the send. Nothing is retried: a half-sent
raster stream leaves the printer in an unknown mode, so the session must
be reconnected before the next send.
"""

import asyncio
import logging
from enum import Enum

from .errors import NotReadyError, PrinterError, ProtocolSequenceError, TransportError
from .raster import RASTER_HEIGHT_PX, compose_strip, compress_image, load_raw_image
from .render import RenderedLabel

logger = logging.getLogger(__name__)


class SendStep(Enum):
    """Named steps of a raster send, in transmission order."""
    ENCODE = "encode"
    PRINT_PROPERTY = "print_property"
    RASTER_MODE = "raster_mode"
    FEED_AMOUNT = "feed_amount"
    COMPRESSION = "compression"
    PRINT_MODE = "print_mode"
    EXTENDED_MODE = "extended_mode"
    SEND_IMAGE = "send_image"
    PRINT_AND_EJECT = "print_and_eject"


class TransmitState(Enum):
    """Progress of the current send; each state means that step completed."""
    IDLE = "idle"
    ENCODED = "encoded"
    PROPERTY_SET = "property_set"
    RASTER_MODE = "raster_mode"
    FEED_SET = "feed_set"
    COMPRESSION_SET = "compression_set"
    PRINT_MODE_SET = "print_mode_set"
    EXTENDED_MODE_SET = "extended_mode_set"
    SENT = "sent"
    EJECTED = "ejected"


class RasterTransmitter:
    """
    Encodes and sends labels over a connected PrinterSession.

    The caller must hold the session lock for the duration of send().
    """

    def __init__(self, session, high_resolution: bool = True):
        self.session = session
        self.high_resolution = high_resolution
        self.state = TransmitState.IDLE

    def encode(self, label: RenderedLabel, tape_width_mm: int):
        """
        Compose the raster strip and compress it.

        Returns:
            (compressed payload, raster line count)
        """
        strip = compose_strip(label.image, RASTER_HEIGHT_PX)
        data, bytes_per_row = load_raw_image(strip, tape_width_mm)
        raster_lines = len(data) // bytes_per_row
        return compress_image(data, bytes_per_row), raster_lines

    async def send(self, label: RenderedLabel, tape_width_mm: int, chain_next: bool) -> None:
        """
        Send one label and eject it.

        Args:
            label: Rendered label to print
            tape_width_mm: Width of the loaded tape
            chain_next: Keep the tape uncut for a following label

        Raises:
            NotReadyError: If the session is not connected or no tape is loaded
            ProtocolSequenceError: If any step fails; .step names it
        """
        device = self.session.device
        if device is None or not self.session.is_connected:
            raise NotReadyError("Cannot print without printer")
        if tape_width_mm == 0:
            raise NotReadyError("Cannot print without tape detected")

        self.state = TransmitState.IDLE
        try:
            payload, raster_lines = self.encode(label, tape_width_mm)
        except PrinterError as e:
            raise ProtocolSequenceError(SendStep.ENCODE, e) from e
        self.state = TransmitState.ENCODED
        logger.debug("Encoded %d raster lines, %d bytes", raster_lines, len(payload))

        steps = [
            (SendStep.PRINT_PROPERTY, TransmitState.PROPERTY_SET, device.set_print_property, (raster_lines,)),
            (SendStep.RASTER_MODE, TransmitState.RASTER_MODE, device.set_raster_mode, ()),
            # Feed between labels is driven by eject, not by margin
            (SendStep.FEED_AMOUNT, TransmitState.FEED_SET, device.set_feed_amount, (0,)),
            (SendStep.COMPRESSION, TransmitState.COMPRESSION_SET, device.set_compression_mode_enabled, (True,)),
            (SendStep.PRINT_MODE, TransmitState.PRINT_MODE_SET, device.set_print_mode, (True, False)),
            (
                SendStep.EXTENDED_MODE,
                TransmitState.EXTENDED_MODE_SET,
                device.set_extended_mode,
                (False, not chain_next, False, self.high_resolution, False),
            ),
            (SendStep.SEND_IMAGE, TransmitState.SENT, device.send_image, (payload,)),
            (SendStep.PRINT_AND_EJECT, TransmitState.EJECTED, device.print_and_eject, ()),
        ]

        for step, done_state, command, args in steps:
            try:
                await asyncio.to_thread(command, *args)
            except TransportError as e:
                logger.error("Raster send failed at %s (after %s): %s", step.value, self.state.value, e)
                raise ProtocolSequenceError(step, e) from e
            self.state = done_state

        logger.debug("Label sent (chain_next=%s)", chain_next)
