"""
Pure animation math.

Every function here maps (animation kind, progress, amplitude) to a value or a
transform and never touches a drawing surface, so previews and exports
evaluate identical transforms for the same frame.
"""

import math
from dataclasses import dataclass, replace
from typing import Optional, Union

from .constants import (
    BLINK_FREQUENCY,
    BOUNCE_HEIGHT_FACTOR,
    DEFAULT_AMPLITUDE,
    DEFAULT_SECONDARY_COLOR,
    GLOW_BLUR_MAX,
    GLOW_BLUR_MIN,
    HSL_LIGHTNESS,
    HSL_SATURATION,
    PULSE_SCALE_RANGE,
    RAINBOW_HUE_FULL,
    SLIDE_DISTANCE_FACTOR,
)
from .settings import IconSettings

FULL_ROTATION = math.pi * 2


@dataclass(frozen=True)
class AnimationTransform:
    """Per-frame transform. Offsets are in pixels at the 128 px reference canvas."""

    translate_x: float = 0.0
    translate_y: float = 0.0
    rotate_radians: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    alpha: float = 1.0
    shadow_blur: float = 0.0
    shadow_color: Optional[str] = None
    hue_degrees: Optional[float] = None

    @property
    def is_geometric_identity(self) -> bool:
        return (
            self.translate_x == 0
            and self.translate_y == 0
            and self.rotate_radians == 0
            and self.scale_x == 1
            and self.scale_y == 1
        )


IDENTITY = AnimationTransform()


def amplitude_factor(amplitude: Optional[float]) -> float:
    """Amplitude (0-100) as a factor; ``None`` means the default amplitude."""
    if amplitude is None:
        amplitude = DEFAULT_AMPLITUDE
    return amplitude / 100


def calculate_animation_value(
    kind: str,
    progress: float,
    amplitude: Optional[float] = DEFAULT_AMPLITUDE,
) -> Union[float, bool]:
    """Raw animation value for ``kind`` at ``progress`` in [0, 1)."""
    factor = amplitude_factor(amplitude)
    angle = progress * FULL_ROTATION

    if kind == "bounce":
        return abs(math.sin(angle)) * BOUNCE_HEIGHT_FACTOR * factor
    if kind == "pulse":
        return 1 + math.sin(angle) * PULSE_SCALE_RANGE * factor
    if kind == "slide":
        return math.sin(angle) * SLIDE_DISTANCE_FACTOR * factor
    if kind == "fade":
        return (math.sin(angle) + 1) / 2
    if kind == "rotate":
        return angle
    if kind == "glow":
        return abs(math.sin(angle)) * GLOW_BLUR_MAX + GLOW_BLUR_MIN
    if kind == "rainbow":
        return progress * RAINBOW_HUE_FULL
    if kind == "blink":
        return math.sin(angle * BLINK_FREQUENCY) > 0
    return 0


def text_transform(
    kind: str,
    progress: float,
    amplitude: Optional[float] = DEFAULT_AMPLITUDE,
    secondary_color: Optional[str] = None,
) -> AnimationTransform:
    """Transform applied to the text layer for one frame."""
    if kind == "bounce":
        return AnimationTransform(translate_y=-calculate_animation_value("bounce", progress, amplitude))
    if kind == "pulse":
        scale = calculate_animation_value("pulse", progress, amplitude)
        return AnimationTransform(scale_x=scale, scale_y=scale)
    if kind == "rotate":
        return AnimationTransform(rotate_radians=calculate_animation_value("rotate", progress))
    if kind == "slide":
        return AnimationTransform(translate_x=calculate_animation_value("slide", progress, amplitude))
    if kind == "fade":
        return AnimationTransform(alpha=calculate_animation_value("fade", progress))
    if kind == "glow":
        return AnimationTransform(
            shadow_blur=calculate_animation_value("glow", progress),
            shadow_color=secondary_color or DEFAULT_SECONDARY_COLOR,
        )
    if kind == "rainbow":
        return AnimationTransform(hue_degrees=calculate_animation_value("rainbow", progress))
    return IDENTITY


def image_transform(
    kind: str,
    progress: float,
    amplitude: Optional[float] = DEFAULT_AMPLITUDE,
    base_alpha: float = 1.0,
) -> AnimationTransform:
    """Transform applied to the image layer around the image's own center."""
    if kind == "fade":
        return AnimationTransform(alpha=base_alpha * calculate_animation_value("fade", progress))
    if kind in ("rotate", "bounce", "pulse", "slide"):
        return replace(text_transform(kind, progress, amplitude), alpha=base_alpha)
    return AnimationTransform(alpha=base_alpha)


def rainbow_color(hue: float) -> str:
    return f"hsl({hue:g}, {HSL_SATURATION}%, {HSL_LIGHTNESS}%)"


def is_blink_on(progress: float) -> bool:
    return bool(calculate_animation_value("blink", progress))


def resolve_text_colors(settings: IconSettings, progress: float) -> IconSettings:
    """
    Apply rainbow/blink color overrides for one frame.

    Returns ``settings`` itself when nothing changes so callers can compare by
    identity.
    """
    kind = settings.animation.animation
    if kind == "rainbow":
        hue = calculate_animation_value("rainbow", progress)
        basic = replace(settings.basic, text_color_type="solid", font_color=rainbow_color(hue))
        return replace(settings, basic=basic)
    if kind == "blink" and is_blink_on(progress):
        color = settings.animation.secondary_color or DEFAULT_SECONDARY_COLOR
        basic = replace(settings.basic, text_color_type="solid", font_color=color)
        return replace(settings, basic=basic)
    return settings


def resolve_delay(requested_ms: float, minimum: int = 30, precision: int = 10) -> int:
    """Round a frame delay to the GIF timing grid with a floor of ``minimum`` ms."""
    rounded = int(math.floor(requested_ms / precision + 0.5)) * precision
    return max(minimum, rounded)
