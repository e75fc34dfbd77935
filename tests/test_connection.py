"""Tests for serial and USB transports."""

from unittest.mock import MagicMock

import pytest
import serial
import usb.core

from ptlabel.connection import (
    BROTHER_VENDOR_ID,
    SerialTransport,
    UsbTransport,
    open_transport,
    parse_address,
)
from ptlabel.errors import TransportError


class TestParseAddress:
    """Test address strings."""

    def test_plain_usb(self):
        """Bare usb means any Brother device."""
        address = parse_address("usb")
        assert address.kind == "usb"
        assert address.vendor_id == BROTHER_VENDOR_ID
        assert address.product_id is None
        assert str(address) == "usb"

    def test_usb_with_ids(self):
        """Test explicit vendor and product ids."""
        address = parse_address("USB:04F9:2061")
        assert address.kind == "usb"
        assert address.vendor_id == 0x04F9
        assert address.product_id == 0x2061
        assert str(address) == "usb:04f9:2061"

    def test_serial_path(self):
        """Anything else is a serial device."""
        address = parse_address("/dev/rfcomm0")
        assert address.kind == "serial"
        assert address.port == "/dev/rfcomm0"

    def test_empty(self):
        """Test that an empty address is rejected."""
        with pytest.raises(ValueError, match="empty"):
            parse_address("  ")


class TestSerialTransport:
    """Test the pyserial transport."""

    def test_open_write_read(self, mocker):
        """Data goes through the serial port."""
        port = MagicMock()
        port.read.return_value = b"\x80\x20"
        serial_cls = mocker.patch("ptlabel.connection.serial.Serial", return_value=port)

        transport = SerialTransport("/dev/ttyUSB0", baudrate=115200, timeout=1.0)
        transport.open()
        serial_cls.assert_called_once_with("/dev/ttyUSB0", 115200, timeout=1.0)

        transport.write(b"\x1b\x40")
        port.write.assert_called_once_with(b"\x1b\x40")
        port.flush.assert_called_once()

        assert transport.read(32, 0.5) == b"\x80\x20"
        assert port.timeout == 0.5

    def test_open_failure(self, mocker):
        """Test that SerialException becomes TransportError."""
        mocker.patch("ptlabel.connection.serial.Serial", side_effect=serial.SerialException("busy"))
        transport = SerialTransport("/dev/ttyUSB0")
        with pytest.raises(TransportError, match="Failed to open"):
            transport.open()
        assert not transport.is_open

    def test_write_when_closed(self):
        """Test that writing without a port fails."""
        with pytest.raises(TransportError, match="Not connected"):
            SerialTransport("/dev/ttyUSB0").write(b"x")

    def test_close_is_idempotent(self, mocker):
        """Closing twice only closes the port once."""
        port = MagicMock()
        mocker.patch("ptlabel.connection.serial.Serial", return_value=port)
        transport = SerialTransport("/dev/ttyUSB0")
        transport.open()
        transport.close()
        transport.close()
        port.close.assert_called_once()
        assert not transport.is_open


class TestUsbTransport:
    """Test the pyusb transport."""

    def test_no_device(self, mocker):
        """Test that a missing printer raises TransportError."""
        mocker.patch("ptlabel.connection.usb.core.find", return_value=None)
        with pytest.raises(TransportError, match="No USB printer found"):
            UsbTransport().open()

    def test_find_by_product(self, mocker):
        """A product id narrows the search."""
        find = mocker.patch("ptlabel.connection.usb.core.find", return_value=None)
        with pytest.raises(TransportError):
            UsbTransport(product_id=0x2061).open()
        find.assert_called_once_with(idVendor=BROTHER_VENDOR_ID, idProduct=0x2061)

    @pytest.fixture
    def usb_device(self, mocker):
        """A USB printer with both bulk endpoints."""
        device = MagicMock()
        mocker.patch("ptlabel.connection.usb.core.find", return_value=device)
        mocker.patch("ptlabel.connection.usb.util.find_descriptor", return_value=MagicMock())
        mocker.patch("ptlabel.connection.usb.util.dispose_resources")
        return device

    def test_close_reattaches_kernel_driver(self, usb_device):
        """A kernel driver detached on open is given back on close."""
        usb_device.is_kernel_driver_active.return_value = True
        transport = UsbTransport()
        transport.open()
        usb_device.detach_kernel_driver.assert_called_once_with(0)

        transport.close()
        usb_device.attach_kernel_driver.assert_called_once_with(0)
        assert not transport.is_open

        transport.close()
        usb_device.attach_kernel_driver.assert_called_once_with(0)

    def test_close_leaves_driver_alone(self, usb_device):
        """Nothing is reattached when no driver was detached."""
        usb_device.is_kernel_driver_active.return_value = False
        transport = UsbTransport()
        transport.open()
        transport.close()
        usb_device.attach_kernel_driver.assert_not_called()

    def test_reattach_failure_still_closes(self, usb_device):
        """Test that a failed reattach does not fail the close."""
        usb_device.is_kernel_driver_active.return_value = True
        usb_device.attach_kernel_driver.side_effect = usb.core.USBError("busy")
        transport = UsbTransport()
        transport.open()
        transport.close()
        assert not transport.is_open

    def test_read_collects_chunks(self):
        """Reads continue until the requested size arrives."""
        transport = UsbTransport()
        transport._endpoint_in = MagicMock()
        transport._endpoint_in.read.side_effect = [b"\x80\x20\x42", bytes(29)]
        assert len(transport.read(32, 1.0)) == 32

    def test_read_timeout_returns_partial(self):
        """Test that a USB timeout ends the read early."""
        transport = UsbTransport()
        transport._endpoint_in = MagicMock()
        transport._endpoint_in.read.side_effect = [b"\x80", usb.core.USBTimeoutError("timeout")]
        assert transport.read(32, 1.0) == b"\x80"

    def test_write_error(self):
        """Test that USB errors become TransportError."""
        transport = UsbTransport()
        transport._endpoint_out = MagicMock()
        transport._endpoint_out.write.side_effect = usb.core.USBError("pipe")
        with pytest.raises(TransportError, match="Failed to send"):
            transport.write(b"x")


class TestOpenTransport:
    """Test transport selection by address."""

    def test_serial(self, mocker):
        """Test that paths open a serial transport."""
        mocker.patch("ptlabel.connection.serial.Serial", return_value=MagicMock())
        transport = open_transport("/dev/rfcomm0", baudrate=9600)
        assert isinstance(transport, SerialTransport)
        assert transport.port == "/dev/rfcomm0"

    def test_usb(self, mocker):
        """Test that usb addresses open a USB transport."""
        opened = mocker.patch.object(UsbTransport, "open")
        transport = open_transport("usb:04f9:2061")
        assert isinstance(transport, UsbTransport)
        assert transport.product_id == 0x2061
        opened.assert_called_once()
