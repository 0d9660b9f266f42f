"""
GIF encoder used by both the background worker and the synchronous fallback.

Frames are added one by one and ``render`` emits exactly one ``finished``
(with the encoded bytes) or ``error`` (with a reason) event.
"""

import logging
from io import BytesIO
from typing import Callable, Dict, List, Sequence, Union

from PIL import Image

from .constants import DEFAULT_ENGINE_CONFIG
from .settings import MAX_GIF_QUALITY, MIN_GIF_QUALITY
from .surface import Surface

logger = logging.getLogger(__name__)

MAX_PALETTE_COLORS = 256
MIN_PALETTE_COLORS = 32

FrameSource = Union[Image.Image, Surface, bytes]


def quality_to_colors(quality: int) -> int:
    """
    Map GIF quality (1-30, lower = finer sampling, larger file) to a palette size.
    """
    quality = max(MIN_GIF_QUALITY, min(MAX_GIF_QUALITY, int(quality)))
    span = MAX_PALETTE_COLORS - MIN_PALETTE_COLORS
    steps = MAX_GIF_QUALITY - MIN_GIF_QUALITY
    return int(round(MAX_PALETTE_COLORS - (quality - MIN_GIF_QUALITY) * span / steps))


def encode_gif(
    frames: Sequence[Image.Image],
    durations: Sequence[int],
    quality: int = 10,
    loop: int = 0,
) -> bytes:
    """
    Encode opaque frames into an animated GIF.

    Args:
        frames: RGB or RGBA frames of identical size
        durations: Per-frame delay in milliseconds
        quality: 1 (finest) to 30 (coarsest)
        loop: How many times to loop the animation (0 = infinite)

    Returns:
        The generated GIF as bytes
    """
    if not frames:
        raise ValueError("No frames provided to encode GIF.")

    colors = quality_to_colors(quality)
    palette_frames = [
        frame.convert("RGB").convert(
            "P", palette=Image.Palette.ADAPTIVE, colors=colors, dither=Image.Dither.NONE
        )
        for frame in frames
    ]
    first_frame, *additional_frames = palette_frames

    output = BytesIO()
    first_frame.save(
        output,
        format="GIF",
        save_all=True,
        append_images=additional_frames,
        duration=list(durations),
        loop=loop,
        disposal=2,
    )
    return output.getvalue()


class GifEncoder:
    """Incremental encoder with ``finished``/``error`` callbacks."""

    def __init__(
        self,
        width: int,
        height: int,
        quality: int = 10,
        loop: int = DEFAULT_ENGINE_CONFIG.loop,
        max_bytes: int = DEFAULT_ENGINE_CONFIG.max_output_bytes,
        quality_step: int = DEFAULT_ENGINE_CONFIG.quality_step,
    ):
        self.width = width
        self.height = height
        self.quality = quality
        self.loop = loop
        self.max_bytes = max_bytes
        self.quality_step = quality_step
        self.frames: List[Image.Image] = []
        self.delays: List[int] = []
        self._callbacks: Dict[str, List[Callable]] = {"finished": [], "error": []}
        self._settled = False

    def on(self, event: str, callback: Callable) -> None:
        if event not in self._callbacks:
            raise ValueError(f"Unknown encoder event: {event}")
        self._callbacks[event].append(callback)

    def add_frame(self, source: FrameSource, delay_ms: int) -> None:
        """Add a frame from an image, a surface or raw RGBA bytes."""
        if isinstance(source, Surface):
            image = source.snapshot()
        elif isinstance(source, (bytes, bytearray)):
            if len(source) != self.width * self.height * 4:
                raise ValueError(f"Frame buffer has {len(source)} bytes, expected {self.width * self.height * 4}")
            image = Image.frombytes("RGBA", (self.width, self.height), bytes(source))
        else:
            image = source.copy()
        if image.size != (self.width, self.height):
            raise ValueError(f"Frame size {image.size} does not match {self.width}x{self.height}")
        self.frames.append(image)
        self.delays.append(delay_ms)

    def _emit(self, event: str, payload) -> None:
        if self._settled:
            return
        self._settled = True
        for callback in self._callbacks[event]:
            callback(payload)

    def render(self) -> None:
        try:
            data = self._encode_within_budget()
        except (ValueError, OSError) as exc:
            self._emit("error", str(exc))
            return
        self._emit("finished", data)

    def _encode_within_budget(self) -> bytes:
        quality = self.quality
        data = encode_gif(self.frames, self.delays, quality, self.loop)
        while len(data) > self.max_bytes and quality < MAX_GIF_QUALITY:
            quality = min(MAX_GIF_QUALITY, quality + self.quality_step)
            data = encode_gif(self.frames, self.delays, quality, self.loop)
        if len(data) > self.max_bytes:
            logger.warning(f"GIF is {len(data)} bytes, over the {self.max_bytes} byte budget at quality {quality}")
        return data
