"""Brother P-touch Label Printer Driver for Linux/macOS."""

__version__ = "0.1.0"

from .errors import (
    PrinterError,
    ConnectionError,
    StatusReadError,
    DeviceFaultError,
    RenderError,
    ProtocolSequenceError,
    NotReadyError,
    TransportError,
    RasterEncodingError,
    SessionBusyError,
)
from .config import Settings, load_settings, save_settings
from .connection import SerialTransport, UsbTransport, open_transport
from .device import PTouchDevice
from .responses import DeviceStatus
from .render import LabelSpec, RenderedLabel, render_label
from .session import PrinterSession, SessionState
from .transmitter import RasterTransmitter, SendStep, TransmitState
from .orchestrator import LabelRequest, PrintJob, PrintResult, Preview, PrintOrchestrator, chain_flags

__all__ = [
    "PrinterError",
    "ConnectionError",
    "StatusReadError",
    "DeviceFaultError",
    "RenderError",
    "ProtocolSequenceError",
    "NotReadyError",
    "TransportError",
    "RasterEncodingError",
    "SessionBusyError",
    "Settings",
    "load_settings",
    "save_settings",
    "SerialTransport",
    "UsbTransport",
    "open_transport",
    "PTouchDevice",
    "DeviceStatus",
    "LabelSpec",
    "RenderedLabel",
    "render_label",
    "PrinterSession",
    "SessionState",
    "RasterTransmitter",
    "SendStep",
    "TransmitState",
    "LabelRequest",
    "PrintJob",
    "PrintResult",
    "Preview",
    "PrintOrchestrator",
    "chain_flags",
]
