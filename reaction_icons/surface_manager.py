"""
Surface lifecycle manager.

Keeps a registry of named surfaces and rendering pipelines and runs the live
preview loop. Each surface owns its own frame counter and timing state; the
loop ticks through an injectable scheduler and only redraws once the frame
delay has elapsed.
"""

import logging
from typing import Callable, Dict, Optional

from PIL import Image

from .compositor import Frame, FrameCompositor
from .constants import DEFAULT_ENGINE_CONFIG, EngineConfig
from .errors import EngineError
from .pipelines import RenderingPipeline, default_pipelines
from .scheduling import TICK_INTERVAL_MS, EventLoopScheduler, Scheduler
from .settings import IconSettings, has_animation
from .surface import Surface

logger = logging.getLogger(__name__)


class SurfaceManager:
    def __init__(
        self,
        compositor: Optional[FrameCompositor] = None,
        scheduler: Optional[Scheduler] = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        pipelines: Optional[Dict[str, RenderingPipeline]] = None,
    ):
        self.compositor = compositor if compositor is not None else FrameCompositor()
        self.scheduler: Scheduler = scheduler if scheduler is not None else EventLoopScheduler()
        self.config = config
        self.surfaces: Dict[str, Surface] = {}
        self.pipelines: Dict[str, RenderingPipeline] = (
            pipelines if pipelines is not None else default_pipelines(self.compositor)
        )

    # -- registry -----------------------------------------------------------

    def create_surface(self, name: str, width: int = 128, height: int = 128) -> Surface:
        """Create and register a surface, replacing any existing one with the same name."""
        if name in self.surfaces:
            self.remove_surface(name)
        surface = Surface(name, width, height)
        self.surfaces[name] = surface
        return surface

    def get_surface(self, name: str) -> Optional[Surface]:
        return self.surfaces.get(name)

    def register_pipeline(self, name: str, pipeline: RenderingPipeline) -> None:
        self.pipelines[name] = pipeline

    def _require(self, surface_name: str, pipeline_name: str):
        surface = self.surfaces.get(surface_name)
        if surface is None:
            raise KeyError(f"Unknown surface: {surface_name}")
        pipeline = self.pipelines.get(pipeline_name)
        if pipeline is None:
            raise KeyError(f"Unknown pipeline: {pipeline_name}")
        return surface, pipeline

    # -- rendering ----------------------------------------------------------

    def render_static(self, surface_name: str, settings: IconSettings, pipeline_name: str = "static") -> Surface:
        surface, pipeline = self._require(surface_name, pipeline_name)
        self.stop_animation(surface_name)
        pipeline.prepare(settings)
        surface.clear()
        pipeline.render(surface, settings)
        return surface

    def preview_delay(self, settings: IconSettings) -> float:
        requested = settings.animation.animation_speed or self.config.default_speed_ms
        return max(self.config.min_delay_ms, requested)

    def start_animation(
        self,
        surface_name: str,
        settings: IconSettings,
        frame_count: Optional[int] = None,
        pipeline_name: str = "animation",
    ) -> Surface:
        """
        Start the preview loop on a surface, stopping any loop already running there.

        Settings without text or image animation are drawn once with the static pipeline.
        """
        surface, pipeline = self._require(surface_name, pipeline_name)
        self.stop_animation(surface_name)
        if not has_animation(settings):
            return self.render_static(surface_name, settings)

        pipeline.prepare(settings)
        count = frame_count or settings.optimization.gif_frames or self.config.default_frame_count
        pipeline.render(surface, settings, Frame(0, count))

        def advance(frame: int) -> None:
            pipeline.render(surface, settings, Frame(frame, count))

        self._run_loop(surface, self.preview_delay(settings), count, advance)
        return surface

    def start_mirror(
        self,
        source_name: str,
        target_name: str,
        delay_ms: float,
        frame_count: int = DEFAULT_ENGINE_CONFIG.default_frame_count,
    ) -> Surface:
        """
        Keep ``target`` showing a scaled copy of ``source``.

        The mirror runs its own loop and counters, so either surface can be stopped
        without affecting the other.
        """
        target = self.surfaces.get(target_name)
        if target is None or source_name not in self.surfaces:
            raise KeyError(f"Unknown surface: {target_name if target is None else source_name}")
        self.stop_animation(target_name)
        self.render_scaled(source_name, target_name)
        self._run_loop(
            target, max(self.config.min_delay_ms, delay_ms), frame_count,
            lambda frame: self.render_scaled(source_name, target_name),
        )
        return target

    def _run_loop(self, surface: Surface, delay: float, frame_count: int, on_advance: Callable[[int], None]) -> None:
        surface.active = True
        surface.frame = 0
        surface.last_time = None

        def tick() -> None:
            if not surface.active or surface.handle is None:
                return
            now = self.scheduler.now()
            if surface.last_time is None:
                surface.last_time = now
            if now - surface.last_time >= delay:
                surface.frame = (surface.frame + 1) % frame_count
                try:
                    on_advance(surface.frame)
                except (EngineError, KeyError) as exc:
                    logger.warning(f"Preview on {surface.name!r} stopped: {exc}")
                    self._halt(surface)
                    return
                surface.last_time = now
            surface.handle = self.scheduler.call_later(TICK_INTERVAL_MS, tick)

        surface.handle = self.scheduler.call_later(TICK_INTERVAL_MS, tick)

    def render_scaled(self, source_name: str, target_name: str, scale: Optional[float] = None) -> Surface:
        """Draw ``source`` onto ``target`` scaled down (by default to fit the target)."""
        source = self.surfaces.get(source_name)
        target = self.surfaces.get(target_name)
        if source is None or target is None:
            raise KeyError(f"Source or target surface not found: {source_name}, {target_name}")
        if scale is None:
            scale = min(target.width / source.width, target.height / source.height)
        width = max(1, int(round(source.width * scale)))
        height = max(1, int(round(source.height * scale)))
        target.clear()
        target.draw(source.snapshot().resize((width, height), Image.Resampling.LANCZOS))
        return target

    # -- lifecycle ----------------------------------------------------------

    def _halt(self, surface: Surface) -> None:
        if surface.handle is not None:
            self.scheduler.cancel(surface.handle)
        surface.handle = None
        surface.last_time = None
        surface.frame = 0

    def stop_animation(self, surface_name: str) -> None:
        surface = self.surfaces.get(surface_name)
        if surface is not None:
            self._halt(surface)

    def is_animating(self, surface_name: str) -> bool:
        surface = self.surfaces.get(surface_name)
        return surface is not None and surface.handle is not None

    def remove_surface(self, surface_name: str) -> None:
        surface = self.surfaces.get(surface_name)
        if surface is None:
            return
        self._halt(surface)
        surface.release()
        for pipeline in self.pipelines.values():
            pipeline.cleanup()
        del self.surfaces[surface_name]

    def stop_all(self) -> None:
        for surface in self.surfaces.values():
            self._halt(surface)

    def cleanup(self) -> None:
        self.stop_all()
        for surface in self.surfaces.values():
            surface.release()
        self.surfaces.clear()
        for pipeline in self.pipelines.values():
            pipeline.cleanup()

    def debug_info(self) -> Dict[str, object]:
        return {
            "surface_count": len(self.surfaces),
            "pipeline_count": len(self.pipelines),
            "active_animations": [name for name, surface in self.surfaces.items() if surface.handle is not None],
            "surfaces": list(self.surfaces),
        }
