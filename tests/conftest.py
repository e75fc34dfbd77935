"""
Pytest configuration for ptlabel tests.

Provides an in-memory fake printer for session, transmitter and
orchestrator tests, plus fixtures and command-line options for hardware
tests.
"""

import contextvars
import logging
import time
from collections import Counter

import pytest
import pytest_asyncio

from ptlabel import PrinterSession
from ptlabel.errors import ConnectionError, TransportError
from ptlabel.responses import STATUS_HEADER, STATUS_LENGTH, DeviceStatus

# Tags every recorded device call with the request that made it.
# asyncio.to_thread copies the context, so the tag survives the hop.
current_request = contextvars.ContextVar("current_request", default=None)


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--address",
        action="store",
        default=None,
        help="Printer address for hardware tests (usb or a serial device)",
    )


def make_status_bytes(model=0x67, tape_width_mm=12, error1=0, error2=0, media_type=0x01):
    """Build a well-formed 32-byte status reply."""
    data = bytearray(STATUS_LENGTH)
    data[0:3] = STATUS_HEADER
    data[3] = 0x30
    data[4] = model
    data[8] = error1
    data[9] = error2
    data[10] = tape_width_mm
    data[11] = media_type
    return bytes(data)


def make_status(**kwargs):
    return DeviceStatus.parse(make_status_bytes(**kwargs))


class FakeDevice:
    """Stands in for PTouchDevice; every call is recorded on the printer."""

    def __init__(self, printer, address, tape_width_mm):
        self.printer = printer
        self.address = address
        self.tape_width_mm = tape_width_mm
        self.closed = False

    def _record(self, name, *args):
        printer = self.printer
        printer.calls.append((current_request.get(), name, args))
        printer.counts[name] += 1
        delay = printer.delays.get(name)
        if delay:
            time.sleep(delay)
        fail_at = printer.failures.get(name)
        if fail_at is not None and printer.counts[name] == fail_at:
            raise TransportError(f"{name} failed")

    def reset(self):
        self._record("reset")

    def request_status(self):
        self._record("request_status")

    def read_status(self, timeout=None):
        self._record("read_status")
        statuses = self.printer.statuses
        return statuses.pop(0) if len(statuses) > 1 else statuses[0]

    def set_print_property(self, line_count, media_type=0):
        self._record("set_print_property", line_count)

    def set_raster_mode(self):
        self._record("set_raster_mode")

    def set_feed_amount(self, dots):
        self._record("set_feed_amount", dots)

    def set_compression_mode_enabled(self, enabled):
        self._record("set_compression_mode_enabled", enabled)

    def set_print_mode(self, auto_cut, mirror):
        self._record("set_print_mode", auto_cut, mirror)

    def set_extended_mode(self, half_cut, no_chain, special_tape, high_resolution, no_buffer_clearing):
        self._record("set_extended_mode", half_cut, no_chain, special_tape, high_resolution, no_buffer_clearing)

    def send_image(self, payload):
        self._record("send_image", len(payload))

    def print_and_eject(self):
        self._record("print_and_eject")

    def close(self):
        self._record("close")
        self.closed = True

    @property
    def is_open(self):
        return not self.closed


class FakePrinter:
    """
    In-memory printer behind a PrinterSession opener.

    Attributes:
        statuses: Status replies, consumed in order; the last one repeats
        failures: Call name -> 1-based call number that raises TransportError
        delays: Call name -> seconds the call blocks its worker thread
        open_error: Raised by open() when set
        opens: (address, tape_width_mm) of every open
        calls: (request tag, call name, args) of every device call
    """

    def __init__(self, status=None):
        self.statuses = [status or make_status()]
        self.failures = {}
        self.delays = {}
        self.open_error = None
        self.opens = []
        self.calls = []
        self.counts = Counter()
        self.devices = []

    def open(self, address, tape_width_mm):
        self.opens.append((address, tape_width_mm))
        if self.open_error is not None:
            raise self.open_error
        device = FakeDevice(self, address, tape_width_mm)
        self.devices.append(device)
        return device

    def names(self, request=None):
        """Call names in order, optionally only those of one request."""
        return [name for tag, name, _ in self.calls if request is None or tag == request]

    def args(self, name):
        return [args for _, call, args in self.calls if call == name]


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() so caplog sees package records."""
    yield
    logger = logging.getLogger("ptlabel")
    logger.handlers = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_printer():
    return FakePrinter()


@pytest.fixture
def session(fake_printer):
    """A session wired to the fake printer."""
    return PrinterSession("usb", opener=fake_printer.open)


@pytest.fixture
def printer_address(request):
    """Get the printer address from command line."""
    address = request.config.getoption("--address")
    if address is None:
        pytest.skip("No printer address provided (use --address=usb or --address=/dev/rfcomm0)")
    return address


@pytest_asyncio.fixture
async def connected_session(printer_address):
    """Provide a session connected to real hardware."""
    session = PrinterSession(printer_address)
    try:
        async with session.locked():
            await session.connect()
    except ConnectionError as e:
        pytest.skip(f"Could not connect to printer at {printer_address}: {e}")

    yield session

    await session.aclose()
