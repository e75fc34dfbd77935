"""
Exception hierarchy for the label printer.

Low-level code (transports, raster packing) raises TransportError and
RasterEncodingError. The session and transmitter translate those into the
kinds callers act on: ConnectionError, StatusReadError, DeviceFaultError,
RenderError, ProtocolSequenceError and NotReadyError.
"""

from typing import Optional


# --- Exception Classes ---


class PrinterError(Exception):
    """Base exception for all printer errors.

    Attributes:
        copy_index: 1-based index of the copy being printed when the error
            happened, if it happened inside a batch.
        copies_printed: Number of copies fully sent before the error.
    """

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.copy_index: Optional[int] = None
        self.copies_printed: Optional[int] = None


class TransportError(PrinterError):
    """Raw byte I/O with the device failed."""

    pass


class ConnectionError(PrinterError):
    """Error opening or closing the connection to the printer."""

    pass


class StatusReadError(ConnectionError):
    """Status request or reply failed after the transport was opened."""

    pass


class DeviceFaultError(PrinterError):
    """The printer reported a nonzero error code in a valid status reply."""

    def __init__(self, status):
        self.status = status
        self.error1 = status.error1
        self.error2 = status.error2
        super().__init__(self._describe())

    def _describe(self) -> str:
        names = self.status.error_descriptions()
        parts = []
        if self.error1:
            parts.append(f"Printer error1 state: {self.error1} ({', '.join(names['error1'])})")
        if self.error2:
            parts.append(
                f"Printer error2 state: {self.error2} ({', '.join(names['error2'])}). "
                "Press the power button once to clear"
            )
        return "; ".join(parts)


class RenderError(PrinterError):
    """Font loading or text measurement failed."""

    pass


class RasterEncodingError(PrinterError):
    """A rendered label could not be packed into raster lines."""

    pass


class ProtocolSequenceError(PrinterError):
    """A raster command failed part way through a send.

    The device is left in an indeterminate mode; the session has to be
    reconnected before anything else is sent.
    """

    def __init__(self, step, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        name = getattr(step, "value", step)
        message = f"Raster send failed at step '{name}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class NotReadyError(PrinterError):
    """Printing was refused before any device I/O (no tape, not connected)."""

    pass


class SessionBusyError(PrinterError):
    """The session lock could not be acquired within the requested timeout."""

    pass
