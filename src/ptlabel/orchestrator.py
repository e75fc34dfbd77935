"""
High-Level Label Printing.

PrintOrchestrator runs print and preview requests against one
PrinterSession. A request holds the session lock from connect to the
last copy, so concurrent requests never interleave device commands.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

from .config import Settings
from .errors import (
    ConnectionError,
    DeviceFaultError,
    NotReadyError,
    PrinterError,
    ProtocolSequenceError,
    RenderError,
)
from .fonts import find_font
from .render import LabelSpec, RenderedLabel, render_label
from .responses import DeviceStatus
from .session import PrinterSession
from .transmitter import RasterTransmitter

logger = logging.getLogger(__name__)

FontResolver = Callable[[str], Optional[str]]
T = TypeVar("T")


@dataclass(frozen=True)
class LabelRequest:
    """
    What the user asked for.

    Attributes:
        text: Label text
        font: Font family name or path; empty for the built-in face
        font_size: Font size in points; None picks one from the tape width
    """
    text: str = ""
    font: str = ""
    font_size: Optional[int] = None


@dataclass(frozen=True)
class PrintJob:
    """Number of copies and whether to leave the last one uncut."""
    copies: int = 1
    chain: bool = False

    def __post_init__(self):
        if self.copies < 1:
            raise ValueError(f"copies must be >= 1 (got {self.copies})")


@dataclass
class PrintResult:
    copies_printed: int
    status: DeviceStatus
    label: RenderedLabel


@dataclass
class Preview:
    """Outcome of a preview request; errors are collected, not raised."""
    label: Optional[RenderedLabel]
    status: Optional[DeviceStatus]
    font_name: str
    font_size: int
    errors: List[PrinterError] = field(default_factory=list)

    @property
    def connected(self) -> bool:
        return self.status is not None and self.status.model != 0

    def to_data_url(self) -> Optional[str]:
        return self.label.to_data_url() if self.label is not None else None


def chain_flags(copies: int, chain: bool) -> List[bool]:
    """
    chain_next for each copy: every copy but the last stays uncut, the
    last one only when chaining into a later job was requested.
    """
    return [i != copies or chain for i in range(1, copies + 1)]


class PrintOrchestrator:
    """
    Coordinates session, rendering and transmission for label requests.

    Args:
        session: The printer session to drive
        settings: Sizing defaults; taken from the session when omitted
        font_resolver: Maps a font name to a file path, None if not found
        transmitter: Substitute transmitter (tests)
    """

    def __init__(
        self,
        session: PrinterSession,
        settings: Optional[Settings] = None,
        font_resolver: FontResolver = find_font,
        transmitter: Optional[RasterTransmitter] = None,
    ):
        self.session = session
        self.settings = settings or session.settings
        self.font_resolver = font_resolver
        self.transmitter = transmitter or RasterTransmitter(session, high_resolution=self.settings.high_resolution)

    async def _resolve_font(self, font: str):
        """Return (path, display name); unknown fonts fall back to the built-in face."""
        font = font.strip()
        if not font:
            return "", ""
        # Lookup may scan every font directory
        path = await asyncio.to_thread(self.font_resolver, font)
        if path is None:
            logger.warning("Font %r not found, using built-in font", font)
            return "", ""
        logger.debug("Found %r in %s", font, path)
        return path, Path(path).name

    def label_spec(self, request: LabelRequest, tape_width_mm: int, font_path: str = "") -> LabelSpec:
        """Build the rendering input for the given tape width (0 = unknown)."""
        return LabelSpec(
            text=request.text,
            canvas_height_px=self.settings.canvas_height_for(tape_width_mm),
            font_size_pt=self.settings.clamp_font_size(request.font_size, tape_width_mm),
            font_path=font_path,
        )

    def render(self, request: LabelRequest, tape_width_mm: int, font_path: str = "") -> RenderedLabel:
        spec = self.label_spec(request, tape_width_mm, font_path)
        return render_label(spec, padding_px=self.settings.padding_px)

    async def _run_locked(self, body: Callable[[asyncio.Event], Awaitable[T]]) -> T:
        """
        Run body(stop) with the session lock held until body returns.

        Cancelling the caller does not interrupt body. stop is set so a
        batch ends after the copy in flight. Once body returns the session
        is closed, then the cancellation propagates and the lock is released.
        """
        stop = asyncio.Event()
        async with self.session.locked():
            task = asyncio.ensure_future(body(stop))
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                stop.set()
                logger.warning("Request cancelled, waiting for the printer command in flight")
                await _finish(task)
                await self._close_quietly()
                raise

    async def _close_quietly(self) -> None:
        """Disconnect after a failed or cancelled request; the original outcome wins."""
        try:
            await self.session.disconnect()
        except ConnectionError as e:
            logger.warning("Ignoring close failure: %s", e)

    async def print_label(self, request: LabelRequest, job: PrintJob = PrintJob()) -> PrintResult:
        """
        Print job.copies copies of a label.

        The label is rendered once, at the tape width read inside the
        locked section, and reused for every copy. Cancelling the call
        lets the copy being sent finish, skips the rest and closes the
        connection.

        Raises:
            ConnectionError / StatusReadError: If the printer cannot be reached
            DeviceFaultError: If the printer reports an error
            NotReadyError: If no tape is loaded
            RenderError: If the label cannot be rendered
            ProtocolSequenceError: If a send fails; copy_index and
                copies_printed tell how far the batch got
        """
        font_path, _ = await self._resolve_font(request.font)

        async def body(stop: asyncio.Event) -> PrintResult:
            status = await self.session.connect()
            if not self.session.print_eligible:
                raise NotReadyError("Cannot print without tape detected")

            label = self.render(request, status.tape_width_mm, font_path)
            flags = chain_flags(job.copies, job.chain)
            logger.info("Printing %d copies of %r (chain=%s)", job.copies, request.text, job.chain)

            printed = 0
            for index, chain_next in enumerate(flags, 1):
                if stop.is_set():
                    logger.warning("Stopping after %d of %d copies", printed, job.copies)
                    break
                try:
                    if index > 1 and self.settings.refresh_between_copies:
                        await self.session.refresh_status()
                    await self.transmitter.send(label, status.tape_width_mm, chain_next)
                except PrinterError as e:
                    e.copy_index = index
                    e.copies_printed = printed
                    logger.error("Copy %d of %d failed: %s", index, job.copies, e)
                    if isinstance(e, ProtocolSequenceError):
                        await self._close_quietly()
                    raise
                printed += 1
                logger.debug("Printed copy %d of %d", index, job.copies)

            logger.info("Printed %d copies", printed)
            return PrintResult(copies_printed=printed, status=status, label=label)

        return await self._run_locked(body)

    async def preview(
        self, request: LabelRequest, connect: bool = True, tape_width_mm: Optional[int] = None
    ) -> Preview:
        """
        Render a label as it would be printed right now.

        Connection and device faults do not stop the preview. Without a
        status, tape_width_mm is used if given, else the fallback width.
        """
        font_path, font_name = await self._resolve_font(request.font)

        async def body(stop: asyncio.Event) -> Preview:
            errors: List[PrinterError] = []
            if connect:
                try:
                    await self.session.connect()
                except PrinterError as e:
                    logger.warning("Preview without printer: %s", e)
                    errors.append(e)
            status = self.session.status

            tape_width = status.tape_width_mm if status is not None else (tape_width_mm or 0)
            spec = self.label_spec(request, tape_width, font_path)
            try:
                label: Optional[RenderedLabel] = render_label(spec, padding_px=self.settings.padding_px)
            except RenderError as e:
                logger.warning("Preview render failed: %s", e)
                errors.append(e)
                label = None
            return Preview(label=label, status=status, font_name=font_name, font_size=spec.font_size_pt, errors=errors)

        return await self._run_locked(body)

    async def query_status(self) -> DeviceStatus:
        """
        Connect and return the current status, including fault codes.

        Raises:
            ConnectionError / StatusReadError: If the printer cannot be reached
        """

        async def body(stop: asyncio.Event) -> DeviceStatus:
            try:
                return await self.session.connect()
            except DeviceFaultError as e:
                return e.status

        return await self._run_locked(body)


async def _finish(task: asyncio.Future) -> None:
    """Wait for task to complete, ignoring further cancellation."""
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            continue
    if not task.cancelled() and task.exception() is not None:
        logger.error("Cancelled request failed: %s", task.exception())
