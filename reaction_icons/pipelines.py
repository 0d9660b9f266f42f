"""
Interchangeable rendering strategies used by the surface manager.

Every pipeline draws one frame onto a ``Surface`` through the shared
``FrameCompositor``; they differ in background handling, resource warm-up and
how much of the layering contract they run.
"""

import logging
from dataclasses import replace
from typing import Dict, Optional

from .compositor import Frame, FrameCompositor
from .errors import ResourceLoadError
from .fonts import is_decorative_font, resolve_font_weight
from .settings import IconSettings, has_animation
from .surface import Surface
from .text_layout import calculate_font_size

logger = logging.getLogger(__name__)

PRELOAD_FONT_SIZES = (12, 16, 20, 24, 32, 48)


class RenderingPipeline:
    """Base strategy: ``prepare`` warms caches, ``render`` draws, ``cleanup`` releases."""

    name = "base"

    def __init__(self, compositor: FrameCompositor):
        self.compositor = compositor

    def prepare(self, settings: IconSettings) -> None:
        basic = settings.basic
        decorative = is_decorative_font(basic.font_family)
        weight = resolve_font_weight(basic.font_family, basic.font_weight)
        self.compositor.fonts.get_font(
            basic.font_family, calculate_font_size(settings.canvas_size, decorative), weight, basic.font_style
        )
        self._preload_image(settings)

    def _preload_image(self, settings: IconSettings) -> None:
        if not settings.image.image_data:
            return
        try:
            self.compositor.image_cache.get(settings.image.image_data)
        except ResourceLoadError as exc:
            logger.warning(f"{self.name} pipeline could not preload image: {exc.message}")

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        pass


class StaticRenderingPipeline(RenderingPipeline):
    name = "static"

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        surface.clear()
        self.compositor.compose_static(settings, target=surface.require_image())


class AnimationRenderingPipeline(RenderingPipeline):
    """Animated preview frames; the background is always filled."""

    name = "animation"

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        surface.clear()
        self.compositor.compose(
            settings, frame or Frame(0, settings.optimization.gif_frames), target=surface.require_image(),
            force_background=True,
        )


class HighQualityRenderingPipeline(RenderingPipeline):
    """Export rendering. Keeps transparency for static frames and warms fonts at several sizes."""

    name = "high-quality"

    def prepare(self, settings: IconSettings) -> None:
        basic = settings.basic
        weight = resolve_font_weight(basic.font_family, basic.font_weight)
        for size in PRELOAD_FONT_SIZES:
            self.compositor.fonts.get_font(basic.font_family, size, weight, basic.font_style)
        super().prepare(settings)

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        surface.clear()
        if frame is None:
            self.compositor.compose_static(settings, target=surface.require_image())
        else:
            self.compositor.compose(settings, frame, target=surface.require_image())


class DebugRenderingPipeline(RenderingPipeline):
    """Normal rendering plus a frame label and a red border."""

    name = "debug"

    def prepare(self, settings: IconSettings) -> None:
        logger.debug(f"Debug pipeline preparing: {settings}")
        super().prepare(settings)

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        surface.clear()
        image = surface.require_image()
        if frame is None:
            self.compositor.compose_static(settings, target=image)
            label, color = "Static Render", (0, 255, 0, 178)
        else:
            self.compositor.compose(settings, frame, target=image, force_background=True)
            label, color = f"Frame: {frame.index}/{frame.total}", (255, 0, 0, 178)

        draw = surface.context()
        draw.text((5, 3), label, fill=color)
        draw.rectangle((1, 1, surface.width - 2, surface.height - 2), outline=(255, 0, 0, 255), width=2)

    def cleanup(self) -> None:
        logger.debug("Debug pipeline cleanup completed")


class OptimizedRenderingPipeline(RenderingPipeline):
    """Cheap preview: filled background and text only, no image, particles or transforms."""

    name = "optimized"

    def prepare(self, settings: IconSettings) -> None:
        basic = settings.basic
        self.compositor.fonts.get_font(basic.font_family, 16, "bold", basic.font_style)

    def render(self, surface: Surface, settings: IconSettings, frame: Optional[Frame] = None) -> None:
        text_only = replace(
            settings,
            animation=replace(settings.animation, animation="none"),
            image=replace(settings.image, image_data=None),
        )
        surface.clear()
        self.compositor.compose(text_only, target=surface.require_image(), animated=False, force_background=True)


def default_pipelines(compositor: FrameCompositor) -> Dict[str, RenderingPipeline]:
    pipelines = (
        StaticRenderingPipeline(compositor),
        AnimationRenderingPipeline(compositor),
        HighQualityRenderingPipeline(compositor),
        DebugRenderingPipeline(compositor),
        OptimizedRenderingPipeline(compositor),
    )
    return {pipeline.name: pipeline for pipeline in pipelines}


def select_pipeline(settings: IconSettings, context: str) -> str:
    """
    Choose a pipeline name for a rendering context.

    Args:
        settings: Icon settings.
        context: "preview", "export" or "debug".
    """
    if context == "export":
        return "high-quality"
    if context == "debug":
        return "debug"
    if context == "preview" and (has_animation(settings) or settings.image.image_data):
        return "optimized"
    return "static"
