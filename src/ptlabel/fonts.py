"""
Host font discovery.

Finds TrueType/OpenType files in the usual system font directories and
matches user-supplied family names against them.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

FONT_EXTS = {".ttf", ".otf"}


@dataclass(frozen=True)
class FontInfo:
    """A font file and the names it reports."""
    path: str
    family: str
    style: str

    @property
    def full_name(self) -> str:
        if not self.style or self.style.lower() == "regular":
            return self.family
        return f"{self.family} {self.style}"


def font_dirs() -> List[Path]:
    """Standard font directories for the current platform."""
    home = Path.home()
    if sys.platform == "darwin":
        return [Path("/System/Library/Fonts"), Path("/Library/Fonts"), home / "Library" / "Fonts"]
    if sys.platform.startswith("win"):
        windir = os.environ.get("WINDIR", r"C:\Windows")
        return [Path(windir) / "Fonts"]

    xdg = os.environ.get("XDG_DATA_HOME")
    data_home = Path(xdg) if xdg else home / ".local" / "share"
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        data_home / "fonts",
        home / ".fonts",
    ]


def _iter_font_files(dirs: Iterable[Path]) -> Iterable[Path]:
    for base in dirs:
        if not base.is_dir():
            continue
        for path in base.rglob("*"):
            if path.suffix.lower() in FONT_EXTS and path.is_file():
                yield path


def scan_fonts(dirs: Optional[Iterable[Path]] = None) -> List[FontInfo]:
    """Read family/style names of every font file found. Unreadable files are skipped."""
    found = []
    for path in _iter_font_files(font_dirs() if dirs is None else dirs):
        try:
            family, style = ImageFont.truetype(str(path), 10).getname()
        except OSError as e:
            logger.debug("Skipping unreadable font %s: %s", path, e)
            continue
        if family:
            found.append(FontInfo(path=str(path), family=family, style=style or ""))
    return found


@functools.lru_cache(maxsize=None)
def system_fonts() -> Tuple[FontInfo, ...]:
    """
    Fonts in the standard directories, scanned once per process.

    Call system_fonts.cache_clear() after installing new fonts.
    """
    fonts = tuple(scan_fonts())
    logger.debug("Found %d system fonts", len(fonts))
    return fonts


def _fonts_in(dirs: Optional[Iterable[Path]]) -> Iterable[FontInfo]:
    return system_fonts() if dirs is None else scan_fonts(dirs)


def list_fonts(dirs: Optional[Iterable[Path]] = None) -> List[str]:
    """Sorted, de-duplicated family names of the installed fonts."""
    return sorted({info.family for info in _fonts_in(dirs)})


def find_font(name: str, dirs: Optional[Iterable[Path]] = None) -> Optional[str]:
    """
    Resolve a font name or path to a font file.

    Match order: an existing file path, exact full name ("DejaVu Sans Bold"),
    exact family (regular style preferred), file stem, then family prefix.
    Comparison is case-insensitive.

    Returns:
        Path of the matching font file, or None if nothing matches
    """
    name = (name or "").strip()
    if not name:
        return None
    if Path(name).suffix.lower() in FONT_EXTS and Path(name).is_file():
        return name

    wanted = name.lower()
    fonts = sorted(_fonts_in(dirs), key=lambda f: (f.style.lower() != "regular", f.path))

    for matches in (
        lambda f: f.full_name.lower() == wanted,
        lambda f: f.family.lower() == wanted,
        lambda f: Path(f.path).stem.lower() == wanted,
        lambda f: f.family.lower().startswith(wanted),
    ):
        for info in fonts:
            if matches(info):
                return info.path
    return None


__all__ = ["FontInfo", "find_font", "font_dirs", "list_fonts", "scan_fonts", "system_fonts"]
