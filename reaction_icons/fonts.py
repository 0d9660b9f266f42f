"""
Font registry resolving CSS-style font family lists to Pillow fonts.

A family string such as ``'"Noto Sans JP", sans-serif'`` is tried face by
face. Each face maps to candidate font files; registered files win over the
system font directories Pillow searches on its own. When nothing loads, the
Pillow default font is used so rendering can continue with fallback glyphs.
"""

import logging
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Set, Tuple, Union

from PIL import ImageFont

from .constants import DECORATIVE_FONTS

logger = logging.getLogger(__name__)

FontHandle = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

GENERIC_FAMILIES = {
    "sans-serif": "DejaVuSans",
    "serif": "DejaVuSerif",
    "monospace": "DejaVuSansMono",
    "cursive": "DejaVuSans",
    "fantasy": "DejaVuSans",
    "system-ui": "DejaVuSans",
}

# Generic fallbacks use the DejaVu naming for italic faces
DEJAVU_SUFFIXES = {
    ("normal", "normal"): "",
    ("bold", "normal"): "-Bold",
    ("normal", "italic"): "-Oblique",
    ("bold", "italic"): "-BoldOblique",
}


def is_decorative_font(font_family: str) -> bool:
    return any(face in font_family for face in DECORATIVE_FONTS)


def resolve_font_weight(font_family: str, weight: str = "bold") -> str:
    """Map a requested weight to the face weight actually used for a family."""
    if weight == "bold":
        if "M PLUS" in font_family or "M+" in font_family:
            return "900"
        if is_decorative_font(font_family):
            return "normal"
    return weight


def parse_font_family(font_family: str) -> List[str]:
    """Split a CSS font family list into bare face names."""
    faces = []
    for part in font_family.split(","):
        face = part.strip().strip("'\"").strip()
        if face:
            faces.append(face)
    return faces


def _weight_suffixes(weight: str, style: str) -> List[str]:
    italic = "Italic" if style == "italic" else ""
    if weight in ("900", "black"):
        names = ["Black", "ExtraBold", "Bold"]
    elif weight in ("bold", "700", "800"):
        names = ["Bold"]
    else:
        return [f"-{italic or 'Regular'}"]
    return [f"-{name}{italic}" for name in names]


class FontRegistry:
    """Resolves and caches Pillow font handles."""

    def __init__(self, search_dirs: Optional[List[Path]] = None):
        self.search_dirs = list(search_dirs or [])
        self._registered: Dict[str, List[Path]] = {}
        self._cache: Dict[Tuple[str, int, str, str], FontHandle] = {}
        self._failed: Set[str] = set()
        self._lock = RLock()

    def register_font(self, face: str, path: Union[str, Path]) -> None:
        """Register a font file for a face name; later registrations are tried first."""
        with self._lock:
            self._registered.setdefault(face.lower(), []).insert(0, Path(path))
            self._cache.clear()

    def candidates(self, face: str, weight: str, style: str) -> List[str]:
        """Candidate file names or paths for one face, most specific first."""
        result = [str(path) for path in self._registered.get(face.lower(), [])]
        generic = GENERIC_FAMILIES.get(face.lower())
        if generic:
            bold = "bold" if weight not in ("normal", "400", "regular") else "normal"
            result.append(f"{generic}{DEJAVU_SUFFIXES[(bold, style)]}.ttf")
            return result

        compact = face.replace(" ", "")
        for suffix in _weight_suffixes(weight, style):
            for extension in (".ttf", ".otf"):
                file_name = f"{compact}{suffix}{extension}"
                result.extend(str(directory / file_name) for directory in self.search_dirs)
                result.append(file_name)
        result.append(f"{compact}.ttf")
        return result

    def get_font(
        self,
        font_family: str,
        size: float,
        weight: str = "bold",
        style: str = "normal",
    ) -> FontHandle:
        """Return a font for the first loadable face in ``font_family``."""
        pixel_size = max(1, int(round(size)))
        key = (font_family, pixel_size, weight, style)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        font = None
        for face in parse_font_family(font_family) + ["sans-serif"]:
            for candidate in self.candidates(face, weight, style):
                try:
                    font = ImageFont.truetype(candidate, pixel_size)
                    break
                except OSError:
                    continue
            if font is not None:
                break

        if font is None:
            if font_family not in self._failed:
                logger.warning(f"No font file found for {font_family!r}, using Pillow default font")
                self._failed.add(font_family)
            font = ImageFont.load_default(size=pixel_size)

        with self._lock:
            self._cache[key] = font
        return font

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._failed.clear()
