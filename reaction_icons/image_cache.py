"""
Decoded image cache for embedded image payloads.

Entries are keyed by the payload string. Inserts opportunistically drop
entries older than the TTL, then trim the lowest
``access_count / max(1, seconds_since_access)`` scores until the cache is back
at capacity.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .constants import DEFAULT_ENGINE_CONFIG
from .errors import ResourceLoadError

logger = logging.getLogger(__name__)

OPTIMIZED_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}
MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


@dataclass(frozen=True)
class OptimizedImage:
    data: bytes
    data_uri: str
    width: int
    height: int
    original_size: int
    optimized_size: int

    @property
    def compression_ratio(self) -> float:
        if self.original_size == 0:
            return 0.0
        return 1 - self.optimized_size / self.original_size


@dataclass
class CacheEntry:
    image: Image.Image
    last_access: float
    access_count: int = 1
    payload_size: int = 0
    optimized: Dict[Tuple[int, int, int, str], OptimizedImage] = field(default_factory=dict)

    def score(self, now: float) -> float:
        return self.access_count / max(1.0, now - self.last_access)


def payload_bytes(payload: str) -> bytes:
    """Decode a data URI or bare base64 string into raw bytes."""
    encoded = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ResourceLoadError("Image payload is not valid base64", exc) from exc


def load_image_from_bytes(image_data: bytes) -> Image.Image:
    """Load an image from bytes and convert to RGBA."""
    try:
        image = Image.open(BytesIO(image_data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ResourceLoadError("Image payload could not be decoded", exc) from exc
    return image.convert("RGBA")


def decode_image_payload(payload: str) -> Image.Image:
    return load_image_from_bytes(payload_bytes(payload))


def calculate_optimal_dimensions(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Fit within the bounds keeping aspect ratio, never upscaling."""
    aspect_ratio = width / height
    new_width, new_height = float(width), float(height)
    if new_width > max_width:
        new_width = max_width
        new_height = new_width / aspect_ratio
    if new_height > max_height:
        new_height = max_height
        new_width = new_height * aspect_ratio
    return max(1, int(round(new_width))), max(1, int(round(new_height)))


class ImageCache:
    """Bounded, score-evicted cache of decoded images."""

    def __init__(
        self,
        capacity: int = DEFAULT_ENGINE_CONFIG.cache_capacity,
        ttl: float = DEFAULT_ENGINE_CONFIG.cache_ttl,
        clock: Callable[[], float] = time.monotonic,
        decoder: Callable[[str], Image.Image] = decode_image_payload,
    ):
        self.capacity = capacity
        self.ttl = ttl
        self._clock = clock
        self._decoder = decoder
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, payload: str) -> bool:
        return payload in self._entries

    def entry(self, payload: str) -> Optional[CacheEntry]:
        return self._entries.get(payload)

    def get(self, payload: str) -> Image.Image:
        """
        Return the decoded image for ``payload``, decoding on first use.

        Raises:
            ResourceLoadError: The payload could not be decoded.
        """
        now = self._clock()
        entry = self._entries.get(payload)
        if entry is not None:
            entry.access_count += 1
            entry.last_access = now
            return entry.image

        image = self._decoder(payload)
        self._entries[payload] = CacheEntry(image=image, last_access=now, payload_size=len(payload))
        self.evict(protect=payload)
        return image

    def evict(self, protect: Optional[str] = None) -> List[str]:
        """Drop expired entries, then the lowest scores beyond capacity."""
        now = self._clock()
        evicted = [
            key for key, entry in self._entries.items()
            if key != protect and now - entry.last_access > self.ttl
        ]
        for key in evicted:
            del self._entries[key]

        overflow = len(self._entries) - self.capacity
        if overflow > 0:
            ranked = sorted(
                (key for key in self._entries if key != protect),
                key=lambda key: self._entries[key].score(now),
            )
            for key in ranked[:overflow]:
                del self._entries[key]
                evicted.append(key)

        if evicted:
            logger.debug(f"Evicted {len(evicted)} cached image(s), {len(self._entries)} remaining")
        return evicted

    def get_optimized(
        self,
        payload: str,
        width: int,
        height: int,
        quality: int = 80,
        fmt: str = "png",
    ) -> OptimizedImage:
        """Return (and cache) a resized, re-encoded variant of the image."""
        if fmt not in OPTIMIZED_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}. Use one of {', '.join(OPTIMIZED_FORMATS)}.")
        image = self.get(payload)
        entry = self._entries.get(payload)
        key = (width, height, quality, fmt)
        if entry is not None and key in entry.optimized:
            return entry.optimized[key]

        variant = optimize_image(image, width, height, quality, fmt, original_size=len(payload_bytes(payload)))
        if entry is not None:
            entry.optimized[key] = variant
        return variant

    def clear(self) -> None:
        self._entries.clear()


def optimize_image(
    image: Image.Image,
    max_width: int,
    max_height: int,
    quality: int = 80,
    fmt: str = "png",
    original_size: int = 0,
) -> OptimizedImage:
    """Draw ``image`` scaled into an offscreen image and re-encode it."""
    size = calculate_optimal_dimensions(image.width, image.height, max_width, max_height)
    scaled = image.resize(size, Image.Resampling.LANCZOS)

    output = BytesIO()
    if fmt == "jpeg":
        flattened = Image.new("RGB", scaled.size, (255, 255, 255))
        flattened.paste(scaled, (0, 0), scaled)
        flattened.save(output, format="JPEG", quality=quality, optimize=True)
    elif fmt == "webp":
        scaled.save(output, format="WEBP", quality=quality)
    else:
        scaled.save(output, format="PNG", optimize=True)

    data = output.getvalue()
    encoded = base64.b64encode(data).decode("ascii")
    return OptimizedImage(
        data=data,
        data_uri=f"data:{MIME_TYPES[fmt]};base64,{encoded}",
        width=size[0],
        height=size[1],
        original_size=original_size,
        optimized_size=len(data),
    )
