"""
Byte Transports for P-touch Printers.

Serial ports (including Bluetooth rfcomm devices) go through pyserial,
USB printers through pyusb. Both expose the same small Transport
interface; library exceptions are re-raised as TransportError.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import serial
import usb.core
import usb.util

from .errors import TransportError

logger = logging.getLogger(__name__)

BROTHER_VENDOR_ID = 0x04F9
USB_ADDRESS_PATTERN = re.compile(r"^usb(?::([0-9A-Fa-f]{4}):([0-9A-Fa-f]{4}))?$", re.IGNORECASE)


@dataclass
class Address:
    """A parsed printer address.

    Attributes:
        kind: "usb" or "serial"
        port: Serial device path (serial only)
        vendor_id: USB vendor id (usb only)
        product_id: USB product id, or None to take the first Brother device
    """
    kind: str
    port: Optional[str] = None
    vendor_id: int = BROTHER_VENDOR_ID
    product_id: Optional[int] = None

    def __str__(self) -> str:
        if self.kind == "usb":
            if self.product_id is None:
                return "usb"
            return f"usb:{self.vendor_id:04x}:{self.product_id:04x}"
        return str(self.port)


def parse_address(address: str) -> Address:
    """
    Parse a printer address string.

    Accepts "usb", "usb:VVVV:PPPP" (hex vendor/product ids) or a serial
    device path such as /dev/rfcomm0 or COM3.

    Raises:
        ValueError: If the address is empty
    """
    address = (address or "").strip()
    if not address:
        raise ValueError("Printer address is empty")

    match = USB_ADDRESS_PATTERN.match(address)
    if match:
        if match.group(1):
            return Address(
                kind="usb",
                vendor_id=int(match.group(1), 16),
                product_id=int(match.group(2), 16),
            )
        return Address(kind="usb")
    return Address(kind="serial", port=address)


class Transport(ABC):
    """Abstract byte transport to a printer."""

    @abstractmethod
    def open(self) -> None:
        """Open the underlying device."""

    @abstractmethod
    def close(self) -> None:
        """Close the underlying device. Safe to call when already closed."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of data."""

    @abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """Read up to size bytes, returning early on timeout."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Check if the device is open."""


class SerialTransport(Transport):
    """Serial port transport (USB-serial adapters, Bluetooth rfcomm)."""

    def __init__(self, port: str, baudrate: int = 9600, timeout: float = 2.0):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._serial: Optional[serial.Serial] = None

    def open(self) -> None:
        try:
            self._serial = serial.Serial(self.port, self.baudrate, timeout=self.timeout)
        except (serial.SerialException, OSError) as e:
            self._serial = None
            raise TransportError(f"Failed to open {self.port}: {e}") from e

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to close {self.port}: {e}") from e
        finally:
            self._serial = None

    def write(self, data: bytes) -> None:
        if self._serial is None:
            raise TransportError("Not connected")
        try:
            self._serial.write(data)
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to send data: {e}") from e

    def read(self, size: int, timeout: float) -> bytes:
        if self._serial is None:
            raise TransportError("Not connected")
        try:
            self._serial.timeout = timeout
            return bytes(self._serial.read(size))
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to read data: {e}") from e

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def __repr__(self):
        return f"SerialTransport({self.port}@{self.baudrate})"


class UsbTransport(Transport):
    """USB printer-class transport."""

    # Pause between empty bulk reads while waiting for a status reply
    POLL_INTERVAL = 0.05

    def __init__(self, vendor_id: int = BROTHER_VENDOR_ID, product_id: Optional[int] = None):
        self.vendor_id = vendor_id
        self.product_id = product_id
        self._device = None
        self._endpoint_in = None
        self._endpoint_out = None
        self._detached_kernel_driver = False

    def _find(self):
        if self.product_id is not None:
            return usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id)
        return usb.core.find(idVendor=self.vendor_id)

    def open(self) -> None:
        try:
            device = self._find()
            if device is None:
                raise TransportError(f"No USB printer found for {self!r}")

            try:
                if device.is_kernel_driver_active(0):
                    device.detach_kernel_driver(0)
                    self._detached_kernel_driver = True
            except (usb.core.USBError, NotImplementedError):
                # Not supported on every platform; claiming may still work
                logger.debug("Could not detach kernel driver for %r", self)

            try:
                device.set_configuration()
            except usb.core.USBError:
                logger.debug("USB device already configured")

            intf = device.get_active_configuration()[(0, 0)]
            self._endpoint_out = usb.util.find_descriptor(
                intf,
                custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress) == usb.util.ENDPOINT_OUT,
            )
            self._endpoint_in = usb.util.find_descriptor(
                intf,
                custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress) == usb.util.ENDPOINT_IN,
            )
            if self._endpoint_out is None or self._endpoint_in is None:
                raise TransportError("Could not find USB bulk endpoints")
            self._device = device
        except usb.core.USBError as e:
            self._device = None
            raise TransportError(f"Failed to open {self!r}: {e}") from e

    def close(self) -> None:
        if self._device is None:
            return
        try:
            usb.util.dispose_resources(self._device)
            if self._detached_kernel_driver:
                try:
                    self._device.attach_kernel_driver(0)
                except (usb.core.USBError, NotImplementedError):
                    logger.debug("Could not reattach kernel driver for %r", self)
        except usb.core.USBError as e:
            raise TransportError(f"Failed to release {self!r}: {e}") from e
        finally:
            self._detached_kernel_driver = False
            self._device = None
            self._endpoint_in = None
            self._endpoint_out = None

    def write(self, data: bytes) -> None:
        if self._endpoint_out is None:
            raise TransportError("Not connected")
        try:
            self._endpoint_out.write(data)
        except usb.core.USBError as e:
            raise TransportError(f"Failed to send data: {e}") from e

    def read(self, size: int, timeout: float) -> bytes:
        if self._endpoint_in is None:
            raise TransportError("Not connected")

        result = bytearray()
        deadline = time.monotonic() + timeout
        while len(result) < size and time.monotonic() < deadline:
            try:
                chunk = self._endpoint_in.read(size - len(result), timeout=int(timeout * 1000))
            except usb.core.USBTimeoutError:
                break
            except usb.core.USBError as e:
                raise TransportError(f"Failed to read data: {e}") from e
            if chunk:
                result.extend(chunk)
            else:
                time.sleep(self.POLL_INTERVAL)
        return bytes(result)

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def __repr__(self):
        product = "*" if self.product_id is None else f"{self.product_id:04x}"
        return f"UsbTransport({self.vendor_id:04x}:{product})"


def open_transport(address: str, baudrate: int = 9600, timeout: float = 2.0) -> Transport:
    """
    Create and open the transport for an address string.

    Raises:
        ValueError: If the address is empty
        TransportError: If the device cannot be opened
    """
    parsed = parse_address(address)
    if parsed.kind == "usb":
        transport: Transport = UsbTransport(parsed.vendor_id, parsed.product_id)
    else:
        transport = SerialTransport(parsed.port, baudrate=baudrate, timeout=timeout)
    transport.open()
    logger.debug("Opened %r", transport)
    return transport
