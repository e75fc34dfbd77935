"""Tests for status reply parsing."""

import pytest

from ptlabel.responses import DeviceStatus

from conftest import make_status_bytes


class TestParse:
    """Test DeviceStatus.parse."""

    def test_parse_fields(self):
        """Model, width and error bytes come from fixed offsets."""
        status = DeviceStatus.parse(make_status_bytes(model=0x68, tape_width_mm=24, error1=0x01, error2=0x10))
        assert status.model == 0x68
        assert status.tape_width_mm == 24
        assert status.error1 == 0x01
        assert status.error2 == 0x10
        assert status.media_type == 0x01
        assert len(status.raw_data) == 32

    def test_rejects_short_reply(self):
        """Test that a truncated reply is rejected."""
        with pytest.raises(ValueError, match="32 bytes"):
            DeviceStatus.parse(make_status_bytes()[:20])

    def test_rejects_bad_header(self):
        """Test that a reply without the print head mark is rejected."""
        data = bytearray(make_status_bytes())
        data[0] = 0x00
        with pytest.raises(ValueError, match="header"):
            DeviceStatus.parse(bytes(data))


class TestDerivedProperties:
    """Test fault, tape and model helpers."""

    def test_healthy_status(self):
        """No error bits and a tape loaded."""
        status = DeviceStatus.parse(make_status_bytes())
        assert not status.has_fault
        assert status.has_tape
        assert status.model_name == "PT-P700"

    def test_no_tape(self):
        """A zero width means no tape."""
        assert not DeviceStatus.parse(make_status_bytes(tape_width_mm=0)).has_tape

    def test_either_error_byte_is_a_fault(self):
        """Test error1 and error2 independently."""
        assert DeviceStatus.parse(make_status_bytes(error1=0x04)).has_fault
        assert DeviceStatus.parse(make_status_bytes(error2=0x01)).has_fault

    def test_default_status_is_disconnected(self):
        """A blank status has no model."""
        status = DeviceStatus()
        assert status.model_name == "unknown"
        assert not status.has_tape

    def test_unknown_model_name(self):
        """Unlisted model codes are shown in hex."""
        assert DeviceStatus(model=0x71).model_name == "model 0x71"

    def test_error_descriptions(self):
        """Bits are named per error byte."""
        status = DeviceStatus.parse(make_status_bytes(error1=0x05, error2=0x10))
        assert status.error_descriptions() == {
            "error1": ["no media", "cutter jam"],
            "error2": ["cover open"],
        }

    def test_to_dict(self):
        """Test the dictionary form used for JSON output."""
        data = DeviceStatus.parse(make_status_bytes(tape_width_mm=9)).to_dict()
        assert data["model_name"] == "PT-P700"
        assert data["tape_width_mm"] == 9
        assert "raw_data" not in data
