"""
Frame compositor - one frame per the fixed layering contract.

Layers, back to front:
    1. background (when animated, solid, or forced for GIF output)
    2. image layer when it sits behind the text
    3. particle overlay for particle animations
    4. text, with its animation transform and per-frame color
    5. image layer when it sits in front of the text
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageFilter

from .animation import IDENTITY, AnimationTransform, image_transform, resolve_text_colors, text_transform
from .constants import REFERENCE_CANVAS_SIZE
from .errors import ResourceLoadError
from .fonts import FontRegistry
from .image_cache import ImageCache
from .imaging import apply_transform, composite_centered, parse_color
from .particles import PARTICLE_KINDS, draw_particles, generate_particles
from .settings import IconSettings, has_animation
from .text_layout import render_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    index: int
    total: int

    @property
    def progress(self) -> float:
        return self.index / self.total if self.total else 0.0


STATIC_FRAME = Frame(0, 1)


class FrameCompositor:
    """Composes frames from settings using a shared image cache and font registry."""

    def __init__(self, image_cache: Optional[ImageCache] = None, fonts: Optional[FontRegistry] = None):
        self.image_cache = image_cache if image_cache is not None else ImageCache()
        self.fonts = fonts if fonts is not None else FontRegistry()

    def compose(
        self,
        settings: IconSettings,
        frame: Frame = STATIC_FRAME,
        target: Optional[Image.Image] = None,
        animated: bool = True,
        force_background: bool = False,
    ) -> Image.Image:
        """
        Draw one frame.

        Args:
            settings: Icon settings.
            frame: Frame index and total; progress is index / total.
            target: RGBA image to draw into. A new transparent canvas is used if omitted.
            animated: False renders the static degenerate case with no transforms.
            force_background: Always fill the background (GIF has no alpha).

        Returns:
            The composed RGBA image (``target`` when given).
        """
        size = settings.canvas_size
        canvas = target if target is not None else Image.new("RGBA", (size, size), (0, 0, 0, 0))
        progress = frame.progress if animated else 0.0

        if force_background or has_animation(settings) or settings.basic.background_type == "solid":
            canvas.paste(parse_color(settings.basic.background_color), (0, 0, canvas.width, canvas.height))

        if settings.image.image_data and settings.image.image_position == "back":
            self.draw_image_layer(canvas, settings, progress, animated)

        kind = settings.animation.animation
        if animated and kind in PARTICLE_KINDS:
            field = generate_particles(
                kind, progress, settings.animation.animation_amplitude, size, settings.animation.secondary_color
            )
            draw_particles(canvas, field)

        self.draw_text_layer(canvas, settings, progress, animated)

        if settings.image.image_data and settings.image.image_position == "front":
            self.draw_image_layer(canvas, settings, progress, animated)
        return canvas

    def compose_static(self, settings: IconSettings, target: Optional[Image.Image] = None) -> Image.Image:
        return self.compose(settings, STATIC_FRAME, target=target, animated=False)

    def draw_text_layer(self, canvas: Image.Image, settings: IconSettings, progress: float, animated: bool) -> None:
        size = settings.canvas_size
        anim = settings.animation
        if animated:
            transform = text_transform(anim.animation, progress, anim.animation_amplitude, anim.secondary_color)
            text_settings = resolve_text_colors(settings, progress)
        else:
            transform = IDENTITY
            text_settings = settings

        layer = render_text(text_settings, size, self.fonts)
        layer = apply_transform(layer, transform, (size / 2, size / 2), size / REFERENCE_CANVAS_SIZE)
        if transform.shadow_blur > 0:
            canvas.alpha_composite(self._glow(layer, transform, size))
        canvas.alpha_composite(layer)

    def _glow(self, layer: Image.Image, transform: AnimationTransform, size: int) -> Image.Image:
        shadow = Image.new("RGBA", layer.size, parse_color(transform.shadow_color or "#FFD700"))
        shadow.putalpha(layer.getchannel("A"))
        radius = transform.shadow_blur * size / REFERENCE_CANVAS_SIZE / 2
        return shadow.filter(ImageFilter.GaussianBlur(radius))

    def draw_image_layer(self, canvas: Image.Image, settings: IconSettings, progress: float, animated: bool) -> None:
        """Draw the attached image; an image that fails to load is omitted."""
        image_settings = settings.image
        try:
            source = self.image_cache.get(image_settings.image_data)
        except ResourceLoadError as exc:
            logger.warning(f"Skipping image layer: {exc.message}")
            return

        size = settings.canvas_size
        max_size = size * image_settings.image_size / 100
        scale = min(max_size / source.width, max_size / source.height)
        width, height = int(round(source.width * scale)), int(round(source.height * scale))
        if width < 1 or height < 1:
            return

        center = (size * image_settings.image_x / 100, size * image_settings.image_y / 100)
        layer = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        composite_centered(layer, source.resize((width, height), Image.Resampling.LANCZOS), center)

        base_alpha = image_settings.image_opacity / 100
        if animated:
            transform = image_transform(
                image_settings.image_animation, progress, image_settings.image_animation_amplitude, base_alpha
            )
        else:
            transform = AnimationTransform(alpha=base_alpha)
        canvas.alpha_composite(apply_transform(layer, transform, center, size / REFERENCE_CANVAS_SIZE))
