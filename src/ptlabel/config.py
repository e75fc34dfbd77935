"""
Settings for the label printer.

Settings are read from a JSON file:
1) $PTLABEL_CONFIG_PATH
2) $XDG_CONFIG_HOME/ptlabel/config.json
3) ~/.config/ptlabel/config.json

A missing file means defaults. The sizing constants follow the printer's
128-pin head: label height scales linearly with tape width up to 24 mm.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def default_config_path() -> str:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "ptlabel" / "config.json")
    return str(Path.home() / ".config" / "ptlabel" / "config.json")


def get_config_path() -> str:
    """Return the config path honoring the PTLABEL_CONFIG_PATH override."""
    return os.environ.get("PTLABEL_CONFIG_PATH", default_config_path())


@dataclass
class Settings:
    """
    Attributes:
        address: Default printer address ("usb" or a serial device path)
        baudrate: Serial baud rate
        status_timeout: Seconds to wait for a status reply
        max_font_size: Requested font sizes are clamped to this
        default_font_size: Font size when no tape width is known
        font_size_per_mm: Default font size per millimeter of tape
        font_size_overrides: Default font size for specific tape widths
        margin_scale_px: Canvas height for the widest tape
        max_tape_width_mm: Widest supported tape
        fallback_tape_width_mm: Tape width assumed when none is detected
        padding_px: Horizontal padding added to the text width
        high_resolution: Request high-resolution printing
        refresh_between_copies: Re-read status before each copy after the first
    """

    address: Optional[str] = None
    baudrate: int = 9600
    status_timeout: float = 2.0
    max_font_size: int = 240
    default_font_size: int = 32
    font_size_per_mm: int = 4
    font_size_overrides: Dict[int, int] = field(default_factory=lambda: {9: 32, 12: 48})
    margin_scale_px: int = 128
    max_tape_width_mm: int = 24
    fallback_tape_width_mm: int = 12
    padding_px: int = 40
    high_resolution: bool = True
    refresh_between_copies: bool = False

    def font_size_for(self, tape_width_mm: int) -> int:
        """Default font size for a tape width (0 = unknown)."""
        if not tape_width_mm:
            return self.default_font_size
        if tape_width_mm in self.font_size_overrides:
            return self.font_size_overrides[tape_width_mm]
        return self.font_size_per_mm * tape_width_mm

    def canvas_height_for(self, tape_width_mm: int) -> int:
        """Label canvas height in pixels, assuming the fallback width when 0."""
        width = tape_width_mm or self.fallback_tape_width_mm
        return self.margin_scale_px * width // self.max_tape_width_mm

    def clamp_font_size(self, size: Optional[int], tape_width_mm: int = 0) -> int:
        """Default missing or non-positive sizes and cap at max_font_size."""
        if size is None or size < 1:
            size = self.font_size_for(tape_width_mm)
        return min(size, self.max_font_size)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            values[key] = value
        if "font_size_overrides" in values:
            # JSON object keys are always strings
            values["font_size_overrides"] = {int(k): int(v) for k, v in values["font_size_overrides"].items()}
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["font_size_overrides"] = {str(k): v for k, v in self.font_size_overrides.items()}
        return data


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings, returning defaults if the file does not exist.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        ValueError if the file does not contain a JSON object.
        OSError for I/O errors other than a missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        logger.debug("No config at %s, using defaults", cfg_path)
        return Settings()
    with cfg_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {cfg_path} must contain a JSON object")
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Optional[str] = None) -> None:
    """
    Save settings, creating parent directories as needed.

    Writes atomically through a temporary file and os.replace().
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


__all__ = ["Settings", "default_config_path", "get_config_path", "load_settings", "save_settings"]
