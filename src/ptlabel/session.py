"""
Printer Session.

One PrinterSession owns the connection to the physical printer. Opening
is a two-phase dance:

    probe()   open at tape width 0, read status
    commit()  reopen at the tape width the status reported

The transport frames print data by tape width, so the second open is
required once the width is known. Every state change happens with the
session lock held; callers take it with ``async with session.locked()``.
"""

import asyncio
import contextlib
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Optional

from .config import Settings
from .device import PTouchDevice
from .errors import (
    ConnectionError,
    DeviceFaultError,
    SessionBusyError,
    StatusReadError,
    TransportError,
)
from .responses import DeviceStatus

logger = logging.getLogger(__name__)

Opener = Callable[[str, int], PTouchDevice]


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    PROBING = "probing"
    RECONNECTING = "reconnecting"
    READY = "ready"


class PrinterSession:
    """
    Exclusive handle to one physical printer.

    Args:
        address: Default printer address used by probe()/connect()
        settings: Timeouts and serial parameters
        opener: Callable (address, tape_width_mm) -> PTouchDevice, for
            substituting the transport in tests
    """

    def __init__(
        self,
        address: Optional[str] = None,
        settings: Optional[Settings] = None,
        opener: Optional[Opener] = None,
    ):
        self.settings = settings or Settings()
        self.address = address or self.settings.address
        self._opener = opener or self._default_opener
        self._lock = asyncio.Lock()
        self._device: Optional[PTouchDevice] = None
        self._status: Optional[DeviceStatus] = None
        self._state = SessionState.DISCONNECTED

    def _default_opener(self, address: str, tape_width_mm: int) -> PTouchDevice:
        return PTouchDevice.open(
            address,
            tape_width_mm,
            baudrate=self.settings.baudrate,
            status_timeout=self.settings.status_timeout,
        )

    # --- Locking ---

    @contextlib.asynccontextmanager
    async def locked(self, timeout: Optional[float] = None) -> AsyncIterator["PrinterSession"]:
        """
        Hold the session lock for the duration of the block.

        Blocks indefinitely unless a timeout is given.

        Raises:
            SessionBusyError: If the timeout expires first
        """
        if timeout is None:
            await self._lock.acquire()
        else:
            try:
                await asyncio.wait_for(self._lock.acquire(), timeout)
            except asyncio.TimeoutError as e:
                raise SessionBusyError(f"Printer busy for more than {timeout}s") from e
        try:
            yield self
        finally:
            self._lock.release()

    def _require_lock(self) -> None:
        if not self._lock.locked():
            raise RuntimeError("Printer session lock must be held")

    async def _io(self, func, *args):
        return await asyncio.to_thread(func, *args)

    # --- State ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> Optional[DeviceStatus]:
        """Last status read, or None when disconnected."""
        return self._status

    @property
    def device(self) -> Optional[PTouchDevice]:
        return self._device

    @property
    def is_connected(self) -> bool:
        return self._device is not None and self._state is not SessionState.DISCONNECTED

    @property
    def faulted(self) -> bool:
        return self._state is SessionState.READY and self._status is not None and self._status.has_fault

    @property
    def print_eligible(self) -> bool:
        """Connected, tape loaded and no fault code set."""
        return (
            self._state is SessionState.READY
            and self._status is not None
            and self._status.has_tape
            and not self._status.has_fault
        )

    # --- Operations ---

    async def probe(self, address: Optional[str] = None) -> DeviceStatus:
        """
        Open at unknown tape width (reusing an open handle) and read status.

        Raises:
            ConnectionError: If the transport cannot be opened
            StatusReadError: If the status cannot be requested or read
        """
        self._require_lock()
        address = address or self.address
        if not address:
            raise ConnectionError("No printer address configured")
        self.address = address

        self._state = SessionState.PROBING
        opened = self._device is None
        if opened:
            logger.info("Opening printer at %s", address)
            try:
                self._device = await self._io(self._opener, address, 0)
            except TransportError as e:
                await self._drop()
                raise ConnectionError(f"Failed to open printer at {address}: {e}") from e
        else:
            logger.debug("Reusing open connection to %s", address)

        return await self._read_status(reset=opened)

    async def commit(self, tape_width_mm: int) -> None:
        """
        Close the provisional connection and reopen at the known tape width.

        Raises:
            ConnectionError: If closing or reopening fails
        """
        self._require_lock()
        if self._device is None or self.address is None:
            raise ConnectionError("Cannot commit without a probed connection")

        self._state = SessionState.RECONNECTING
        logger.debug("Reopening %s at tape width %d mm", self.address, tape_width_mm)
        try:
            await self._io(self._device.close)
            self._device = None
            self._device = await self._io(self._opener, self.address, tape_width_mm)
        except TransportError as e:
            await self._drop()
            raise ConnectionError(f"Failed to reopen printer at {self.address}: {e}") from e
        self._state = SessionState.READY

    async def connect(self, address: Optional[str] = None) -> DeviceStatus:
        """
        Probe, reopen at the discovered tape width and check for faults.

        Raises:
            ConnectionError: If opening or reopening fails
            StatusReadError: If the status cannot be read
            DeviceFaultError: If the printer reports an error; the session
                stays connected but is not print-eligible
        """
        status = await self.probe(address)
        await self.commit(status.tape_width_mm)
        logger.info(
            "Connected to %s: %s, tape %d mm", self.address, status.model_name, status.tape_width_mm
        )
        self._check_faults(status)
        return status

    async def refresh_status(self) -> DeviceStatus:
        """
        Re-read status on the open connection without reopening.

        Raises:
            StatusReadError: If not connected or the status cannot be read
            DeviceFaultError: If the printer reports an error
        """
        self._require_lock()
        if self._device is None:
            raise StatusReadError("Cannot refresh status without a connection")
        state = self._state
        status = await self._read_status()
        self._state = state
        self._check_faults(status)
        return status

    async def disconnect(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        self._require_lock()
        device = self._device
        self._device = None
        self._status = None
        self._state = SessionState.DISCONNECTED
        if device is None:
            return
        try:
            await self._io(device.close)
        except TransportError as e:
            raise ConnectionError(f"Failed to close printer: {e}") from e
        logger.info("Disconnected from %s", self.address)

    async def aclose(self) -> None:
        async with self.locked():
            await self.disconnect()

    async def __aenter__(self) -> "PrinterSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- Internals ---

    async def _read_status(self, reset: bool = False) -> DeviceStatus:
        try:
            if reset:
                await self._io(self._device.reset)
            await self._io(self._device.request_status)
            status = await self._io(self._device.read_status)
        except TransportError as e:
            await self._drop()
            raise StatusReadError(f"Failed to read printer status: {e}") from e
        self._status = status
        logger.debug("Status: %r", status)
        return status

    def _check_faults(self, status: DeviceStatus) -> None:
        if status.has_fault:
            error = DeviceFaultError(status)
            logger.warning("Printer reports a fault: %s", error)
            raise error

    async def _drop(self) -> None:
        """Close whatever is open after an I/O failure; the original error wins."""
        device = self._device
        self._device = None
        self._status = None
        self._state = SessionState.DISCONNECTED
        if device is not None:
            try:
                await self._io(device.close)
            except TransportError as e:
                logger.debug("Ignoring close failure after I/O error: %s", e)

    def __repr__(self):
        return f"PrinterSession({self.address!r}, state={self._state.value})"
