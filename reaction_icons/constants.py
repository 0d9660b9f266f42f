"""
Canvas, animation and encoding constants shared across the rendering engine.
"""

from dataclasses import dataclass
from typing import Tuple

CANVAS_SIZE = 128
CANVAS_SIZES = (64, 128)

# Text box padding and base font size, as a fraction of the canvas
DECORATIVE_FONT_PADDING_RATIO = 0.1
NORMAL_FONT_PADDING_RATIO = 0.02
DECORATIVE_FONT_SIZE_RATIO = 0.6
NORMAL_FONT_SIZE_RATIO = 0.8
DECORATIVE_LINE_HEIGHT_RATIO = 1.1
NORMAL_LINE_HEIGHT_RATIO = 0.9
DECORATIVE_SCALE_LIMIT = 0.9
DECORATIVE_FONTS: Tuple[str, ...] = ("Pacifico", "Caveat")

DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_SECONDARY_COLOR = "#FFD700"

DEFAULT_AMPLITUDE = 50
BOUNCE_HEIGHT_FACTOR = 19.2
PULSE_SCALE_RANGE = 0.2
SLIDE_DISTANCE_FACTOR = 29.44
GLOW_BLUR_MAX = 30
GLOW_BLUR_MIN = 5
RAINBOW_HUE_FULL = 360
BLINK_FREQUENCY = 4
HSL_SATURATION = 100
HSL_LIGHTNESS = 50

# Offsets from the animation math are expressed at this canvas size
REFERENCE_CANVAS_SIZE = 128

SPEED_LABELS: Tuple[Tuple[float, str], ...] = (
    (20, "ultra-fast"),
    (30, "fast"),
    (40, "normal"),
    (60, "slow"),
    (float("inf"), "ultra-slow"),
)


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for frame generation, encoding and caching."""

    default_frame_count: int = 30
    default_speed_ms: int = 33
    min_delay_ms: int = 30
    delay_precision_ms: int = 10
    worker_timeout: float = 30.0
    shutdown_timeout: float = 5.0
    max_output_bytes: int = 128 * 1024
    quality_step: int = 5
    loop: int = 0
    cache_capacity: int = 50
    cache_ttl: float = 300.0


DEFAULT_ENGINE_CONFIG = EngineConfig()


def speed_label(delay_ms: float) -> str:
    """Return a human label for an animation delay."""
    for max_ms, label in SPEED_LABELS:
        if delay_ms <= max_ms:
            return label
    return SPEED_LABELS[-1][1]


def frames_per_second(delay_ms: float) -> float:
    """Frames per second for a delay in milliseconds, rounded to one decimal."""
    if delay_ms <= 0:
        raise ValueError("Delay must be positive")
    return round(1000 / delay_ms, 1)
