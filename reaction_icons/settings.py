"""
Icon settings model.

Settings are immutable and grouped into four categories. A flat view with the
camelCase keys used by the editor UI is provided for compatibility, and
``update`` is the single reducer through which a new settings value is derived
from an old one.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from PIL import ImageColor

from .constants import CANVAS_SIZES, DEFAULT_BACKGROUND_COLOR, DEFAULT_SECONDARY_COLOR

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 30
MIN_FONT_SIZE = 10
MAX_FONT_SIZE = 200
MIN_GIF_QUALITY = 1
MAX_GIF_QUALITY = 30
MIN_GIF_FRAMES = 5
MAX_GIF_FRAMES = 60

TEXT_ANIMATIONS = (
    "none", "bounce", "pulse", "rotate", "slide", "fade", "glow",
    "rainbow", "blink", "confetti", "confetti-cannon", "stars", "snow",
)
IMAGE_ANIMATIONS = ("none", "rotate", "bounce", "pulse", "slide", "fade")
COLOR_TYPES = ("solid", "gradient")
GRADIENT_DIRECTIONS = ("horizontal", "vertical", "diagonal")
BACKGROUND_TYPES = ("transparent", "solid")
IMAGE_LAYERS = ("back", "front")
FONT_STYLES = ("normal", "italic")


@dataclass(frozen=True)
class BasicSettings:
    text: str = "OK"
    font_size: int = 60
    font_family: str = '"Noto Sans JP", sans-serif'
    font_color: str = "#FF6B6B"
    text_color_type: str = "solid"
    gradient_color1: str = "#4ECDC4"
    gradient_color2: str = "#45B7D1"
    gradient_direction: str = "vertical"
    background_type: str = "transparent"
    background_color: str = DEFAULT_BACKGROUND_COLOR
    font_weight: str = "bold"
    font_style: str = "normal"
    text_line_through: bool = False


@dataclass(frozen=True)
class AnimationSettings:
    animation: str = "none"
    animation_speed: int = 20
    animation_amplitude: int = 50
    secondary_color: str = DEFAULT_SECONDARY_COLOR


@dataclass(frozen=True)
class ImageSettings:
    image_data: Optional[str] = None
    image_x: float = 50
    image_y: float = 50
    image_size: float = 50
    image_opacity: float = 100
    image_position: str = "back"
    image_animation: str = "none"
    image_animation_amplitude: int = 50


@dataclass(frozen=True)
class OptimizationSettings:
    canvas_size: int = 128
    png_quality: int = 85
    gif_quality: int = 20
    gif_frames: int = 30


@dataclass(frozen=True)
class IconSettings:
    """Complete, immutable description of one icon."""

    basic: BasicSettings = field(default_factory=BasicSettings)
    animation: AnimationSettings = field(default_factory=AnimationSettings)
    image: ImageSettings = field(default_factory=ImageSettings)
    optimization: OptimizationSettings = field(default_factory=OptimizationSettings)

    @property
    def canvas_size(self) -> int:
        return self.optimization.canvas_size


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str

    def __str__(self) -> str:
        return self.message


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _build_flat_keys() -> Dict[str, Tuple[str, str]]:
    keys: Dict[str, Tuple[str, str]] = {}
    for category in fields(IconSettings):
        for item in fields(category.default_factory):  # type: ignore[misc]
            keys[_to_camel(item.name)] = (category.name, item.name)
    return keys


# camelCase flat key -> (category attribute, field name)
FLAT_KEYS: Dict[str, Tuple[str, str]] = _build_flat_keys()


def create_default_settings() -> IconSettings:
    return IconSettings()


def to_flat(settings: IconSettings) -> Dict[str, Any]:
    """Flatten categorized settings into the editor's camelCase view."""
    return {
        flat_key: getattr(getattr(settings, category), name)
        for flat_key, (category, name) in FLAT_KEYS.items()
    }


def from_flat(partial: Mapping[str, Any]) -> IconSettings:
    """Build settings from a (possibly partial) flat view; unset keys take defaults."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for key, value in partial.items():
        target = FLAT_KEYS.get(key)
        if target is None:
            logger.debug(f"Ignoring unknown settings key {key!r}")
            continue
        category, name = target
        grouped.setdefault(category, {})[name] = value

    defaults = create_default_settings()
    return IconSettings(**{
        category.name: replace(getattr(defaults, category.name), **grouped.get(category.name, {}))
        for category in fields(IconSettings)
    })


def update(settings: IconSettings, key: str, value: Any) -> IconSettings:
    """Return a copy of ``settings`` with one flat key changed."""
    target = FLAT_KEYS.get(key)
    if target is None:
        raise KeyError(f"Unknown settings key: {key}")
    category, name = target
    section = replace(getattr(settings, category), **{name: value})
    return replace(settings, **{category: section})


def has_animation(settings: IconSettings) -> bool:
    """True when the text is animated or an attached image has its own animation."""
    text_animated = settings.animation.animation not in ("", "none")
    image_animated = bool(settings.image.image_data) and settings.image.image_animation not in ("", "none")
    return text_animated or image_animated


def _check_range(errors: List[ValidationError], name: str, value: Any, low: float, high: float, label: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not low <= value <= high:
        errors.append(ValidationError(name, f"{label} must be between {low:g} and {high:g}"))


def _check_choice(errors: List[ValidationError], name: str, value: Any, choices: Tuple[str, ...], label: str) -> None:
    if value not in choices:
        errors.append(ValidationError(name, f"{label} must be one of: {', '.join(choices)}"))


def _check_color(errors: List[ValidationError], name: str, value: Any, label: str) -> None:
    if isinstance(value, str) and value.lower() == "transparent":
        return
    try:
        ImageColor.getrgb(value)
    except (ValueError, TypeError, AttributeError):
        errors.append(ValidationError(name, f"{label} must be a hex, named, rgb() or hsl() color"))


def validate(settings: IconSettings) -> List[ValidationError]:
    """
    Validate settings without raising.

    Returns:
        Zero or more validation errors. Any error blocks generation.
    """
    errors: List[ValidationError] = []
    basic = settings.basic
    anim = settings.animation
    image = settings.image
    opt = settings.optimization

    text = basic.text if isinstance(basic.text, str) else ""
    if not text.strip():
        errors.append(ValidationError("text", "Text is required"))
    elif len(text) > MAX_TEXT_LENGTH:
        errors.append(ValidationError("text", f"Text must be at most {MAX_TEXT_LENGTH} characters"))

    _check_range(errors, "fontSize", basic.font_size, MIN_FONT_SIZE, MAX_FONT_SIZE, "Font size")
    if opt.canvas_size not in CANVAS_SIZES:
        errors.append(ValidationError("canvasSize", "Canvas size must be either 64 or 128"))

    _check_choice(errors, "textColorType", basic.text_color_type, COLOR_TYPES, "Text color type")
    _check_choice(errors, "gradientDirection", basic.gradient_direction, GRADIENT_DIRECTIONS, "Gradient direction")
    _check_choice(errors, "backgroundType", basic.background_type, BACKGROUND_TYPES, "Background type")
    _check_choice(errors, "fontStyle", basic.font_style, FONT_STYLES, "Font style")
    _check_color(errors, "fontColor", basic.font_color, "Font color")
    _check_color(errors, "gradientColor1", basic.gradient_color1, "Gradient start color")
    _check_color(errors, "gradientColor2", basic.gradient_color2, "Gradient end color")
    _check_color(errors, "backgroundColor", basic.background_color, "Background color")

    _check_choice(errors, "animation", anim.animation, TEXT_ANIMATIONS, "Animation")
    _check_range(errors, "animationSpeed", anim.animation_speed, 1, 10_000, "Animation speed")
    _check_range(errors, "animationAmplitude", anim.animation_amplitude, 0, 100, "Animation amplitude")
    _check_color(errors, "secondaryColor", anim.secondary_color, "Secondary color")

    if image.image_data is not None and not isinstance(image.image_data, str):
        errors.append(ValidationError("imageData", "Image data must be a data URI or base64 string"))
    _check_range(errors, "imageX", image.image_x, 0, 100, "Image X position")
    _check_range(errors, "imageY", image.image_y, 0, 100, "Image Y position")
    _check_range(errors, "imageSize", image.image_size, 0, 100, "Image size")
    _check_range(errors, "imageOpacity", image.image_opacity, 0, 100, "Image opacity")
    _check_choice(errors, "imagePosition", image.image_position, IMAGE_LAYERS, "Image layer")
    _check_choice(errors, "imageAnimation", image.image_animation, IMAGE_ANIMATIONS, "Image animation")
    _check_range(errors, "imageAnimationAmplitude", image.image_animation_amplitude, 0, 100, "Image animation amplitude")

    _check_range(errors, "pngQuality", opt.png_quality, 0, 100, "PNG quality")
    _check_range(errors, "gifQuality", opt.gif_quality, MIN_GIF_QUALITY, MAX_GIF_QUALITY, "GIF quality")
    _check_range(errors, "gifFrames", opt.gif_frames, MIN_GIF_FRAMES, MAX_GIF_FRAMES, "GIF frame count")
    return errors
