"""
Drawing surfaces: named, addressable RGBA rasters with a 2D drawing context.
"""

from typing import Any, Optional, Tuple

from PIL import Image, ImageDraw

from .errors import CanvasContextUnavailable
from .imaging import parse_color


class Surface:
    """An in-memory RGBA bitmap plus the per-surface preview counters."""

    def __init__(self, name: str = "surface", width: int = 128, height: int = 128):
        self.name = name
        self.width = width
        self.height = height
        self.image: Optional[Image.Image] = self._allocate(width, height)
        # Preview loop state, owned by the surface manager
        self.frame = 0
        self.last_time: Optional[float] = None
        self.handle: Any = None
        self.active = True

    def _allocate(self, width: int, height: int) -> Image.Image:
        try:
            return Image.new("RGBA", (width, height), (0, 0, 0, 0))
        except (ValueError, MemoryError) as exc:
            raise CanvasContextUnavailable(f"Cannot allocate {width}x{height} surface {self.name!r}", exc) from exc

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def require_image(self) -> Image.Image:
        if self.image is None:
            raise CanvasContextUnavailable(f"Surface {self.name!r} has been released")
        return self.image

    def context(self) -> ImageDraw.ImageDraw:
        """Return a blending 2D drawing context for the surface."""
        return ImageDraw.Draw(self.require_image(), "RGBA")

    def resize(self, width: int, height: int) -> None:
        """Reallocate the bitmap when the size changes. Contents are discarded."""
        if self.image is not None and (width, height) == self.size:
            return
        self.image = self._allocate(width, height)
        self.width, self.height = width, height

    def clear(self, box: Optional[Tuple[int, int, int, int]] = None) -> None:
        """Clear ``box`` (default: the whole surface) to transparent."""
        image = self.require_image()
        box = box or (0, 0, self.width, self.height)
        image.paste((0, 0, 0, 0), box)

    def fill(self, color: str) -> None:
        self.require_image().paste(parse_color(color), (0, 0, self.width, self.height))

    def draw(self, image: Image.Image, offset: Tuple[int, int] = (0, 0)) -> None:
        """Alpha-composite ``image`` onto the surface."""
        self.require_image().alpha_composite(image.convert("RGBA"), dest=offset)

    def snapshot(self) -> Image.Image:
        return self.require_image().copy()

    def release(self) -> None:
        self.active = False
        self.image = None

    def __repr__(self) -> str:
        return f"Surface(name={self.name!r}, size={self.width}x{self.height})"
