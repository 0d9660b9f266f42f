"""
Public generation API.

``IconEngine`` wires one image cache, font registry, compositor, static
pipeline and encoding orchestrator together. Every public coroutine returns a
``Result``; engine errors are logged here and nowhere else on the way out.
"""

import base64
import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from .compositor import FrameCompositor
from .constants import DEFAULT_ENGINE_CONFIG, EngineConfig
from .errors import EncodingError, EngineError, Err, FileGenerationError, InvalidSettings, Ok, Result
from .fonts import FontRegistry
from .gif_encoder import GifEncoder
from .image_cache import ImageCache
from .orchestrator import EncodingOrchestrator, ProgressCallback
from .settings import IconSettings, has_animation, validate
from .static_pipeline import StaticPipeline
from .surface import Surface
from .worker import GifWorker

logger = logging.getLogger(__name__)

FILE_PREFIX = "reaction-icon"

# (data, file name, mime type)
Saver = Callable[[bytes, str, str], None]


def output_extension(settings: IconSettings) -> str:
    return "gif" if has_animation(settings) else "png"


def download_filename(settings: IconSettings, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{FILE_PREFIX}-{timestamp_ms}.{output_extension(settings)}"


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """Split a base64 data URI into its bytes and mime type."""
    header, _, encoded = data_uri.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Expected a base64 data URI")
    mime_type = header[len("data:"):].split(";", 1)[0]
    return base64.b64decode(encoded), mime_type


class IconEngine:
    """Renders icon settings to PNG or GIF data URIs."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        image_cache: Optional[ImageCache] = None,
        fonts: Optional[FontRegistry] = None,
        worker_factory: Callable[[], GifWorker] = GifWorker,
        encoder_factory: Callable[..., GifEncoder] = GifEncoder,
    ):
        self.config = config
        self.image_cache = image_cache if image_cache is not None else ImageCache(config.cache_capacity, config.cache_ttl)
        self.fonts = fonts if fonts is not None else FontRegistry()
        self.compositor = FrameCompositor(self.image_cache, self.fonts)
        self.static_pipeline = StaticPipeline(self.compositor)
        self.orchestrator = EncodingOrchestrator(self.compositor, config, worker_factory, encoder_factory)

    async def _render(
        self,
        settings: IconSettings,
        surface: Optional[Surface],
        on_progress: Optional[ProgressCallback],
    ) -> str:
        errors = validate(settings)
        if errors:
            raise InvalidSettings([str(error) for error in errors])
        if has_animation(settings):
            return await self.orchestrator.generate(settings, on_progress)
        try:
            return self.static_pipeline.render(settings, surface)
        except (ValueError, OSError) as exc:
            raise EncodingError(f"Static render failed: {exc}", exc) from exc

    async def generate(
        self,
        settings: IconSettings,
        surface: Optional[Surface] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "Result[str]":
        """
        Render settings to a data URI.

        Static settings produce ``data:image/png``; settings with text or image
        animation produce ``data:image/gif``. Progress is reported for GIF jobs only.
        """
        try:
            data_uri = await self._render(settings, surface, on_progress)
        except EngineError as exc:
            self._log_error(exc)
            return Err(exc)
        return Ok(data_uri)

    async def download_request(
        self,
        settings: IconSettings,
        saver: Saver,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "Result[str]":
        """
        Generate the icon and hand its bytes to ``saver``.

        Returns:
            ``Ok(file_name)`` or ``Err(FileGenerationError)`` wrapping the underlying error.
        """
        result = await self.generate(settings, on_progress=on_progress)
        if not result.is_ok():
            cause = result.error
            return Err(FileGenerationError(f"Failed to generate file: {cause.message}", cause))

        file_name = download_filename(settings)
        try:
            data, mime_type = decode_data_uri(result.unwrap())
            saver(data, file_name, mime_type)
        except (OSError, ValueError) as exc:
            error = FileGenerationError(f"Failed to save {file_name}: {exc}", exc)
            self._log_error(error)
            return Err(error)
        logger.info(f"Saved {file_name} ({len(data)} bytes)")
        return Ok(file_name)

    async def generate_batch(self, batch: Sequence[IconSettings]) -> "Result[List[str]]":
        """Generate each settings value in order, stopping at the first error."""
        outputs: List[str] = []
        for settings in batch:
            result = await self.generate(settings)
            if not result.is_ok():
                return result
            outputs.append(result.unwrap())
        return Ok(outputs)

    def _log_error(self, error: EngineError) -> None:
        if isinstance(error, InvalidSettings):
            logger.warning(f"Invalid settings: {error.message}")
        else:
            logger.error(f"{error.kind.value}: {error.message}")

    def close(self) -> None:
        """Cancel outstanding GIF jobs and stop the background worker."""
        self.orchestrator.shutdown()
