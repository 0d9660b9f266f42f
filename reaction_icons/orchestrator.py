"""
Encoding orchestrator.

Frames are rendered on the event loop thread, then handed to the background
``GifWorker`` as immutable RGBA buffers. Jobs run strictly one at a time in
submission order. When the worker fails, errors or times out the same job is
re-encoded synchronously with ``GifEncoder``.
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

from .animation import resolve_delay
from .compositor import Frame, FrameCompositor
from .constants import DEFAULT_ENGINE_CONFIG, EngineConfig
from .errors import EncodingError, JobCancelled, NoValidFrames, WorkerError
from .gif_encoder import GifEncoder
from .settings import IconSettings, to_flat
from .static_pipeline import to_data_uri
from .worker import GifWorker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

# Seconds between checks for a terminated worker thread to exit
RETIRED_POLL_INTERVAL = 0.01


class JobState(Enum):
    QUEUED = "queued"
    RENDERING = "rendering"
    ENCODING = "encoding"
    FALLBACK = "fallback"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class EncodingJob:
    id: str
    settings: IconSettings
    frame_count: int
    delay: int
    quality: int
    future: "asyncio.Future[str]"
    on_progress: Optional[ProgressCallback] = None
    state: JobState = JobState.QUEUED
    used_fallback: bool = False

    @property
    def width(self) -> int:
        return self.settings.canvas_size

    @property
    def height(self) -> int:
        return self.settings.canvas_size

    def report(self, message: str, percent: int) -> None:
        if self.on_progress is not None:
            self.on_progress(message, percent)


def render_frames(compositor: FrameCompositor, settings: IconSettings, frame_count: int) -> List[bytes]:
    """
    Render every frame as an RGBA byte buffer with the background always filled.

    A frame that fails to render is kept as an empty buffer so frame indices stay
    aligned with progress.
    """
    frames: List[bytes] = []
    for index in range(frame_count):
        try:
            image = compositor.compose(settings, Frame(index, frame_count), force_background=True)
            frames.append(image.tobytes())
        except (ValueError, OSError) as exc:
            logger.warning(f"Frame {index + 1}/{frame_count} failed to render: {exc}")
            frames.append(b"")
    return frames


class EncodingOrchestrator:
    """Queues GIF jobs and runs them one at a time on the background worker."""

    def __init__(
        self,
        compositor: FrameCompositor,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        worker_factory: Callable[[], GifWorker] = GifWorker,
        encoder_factory: Callable[..., GifEncoder] = GifEncoder,
    ):
        self.compositor = compositor
        self.config = config
        self.worker_factory = worker_factory
        self.encoder_factory = encoder_factory
        self._worker: Optional[GifWorker] = None
        self._retired: List[GifWorker] = []
        self._queue: Deque[EncodingJob] = deque()
        self._current: Optional[EncodingJob] = None
        self._current_task: Optional[asyncio.Task] = None
        self._runner: Optional[asyncio.Task] = None
        self._ids = itertools.count(1)

    # -- public API ---------------------------------------------------------

    def submit(self, settings: IconSettings, on_progress: Optional[ProgressCallback] = None) -> EncodingJob:
        """Queue a job; its ``future`` resolves to a GIF data URI."""
        loop = asyncio.get_running_loop()
        job = EncodingJob(
            id=f"gif-{next(self._ids)}",
            settings=settings,
            frame_count=settings.optimization.gif_frames or self.config.default_frame_count,
            delay=resolve_delay(
                settings.animation.animation_speed or self.config.default_speed_ms,
                self.config.min_delay_ms,
                self.config.delay_precision_ms,
            ),
            quality=settings.optimization.gif_quality,
            future=loop.create_future(),
            on_progress=on_progress,
        )
        self._queue.append(job)
        logger.debug(f"Queued {job.id} ({job.frame_count} frames, {job.delay}ms)")
        if self._runner is None or self._runner.done():
            self._runner = loop.create_task(self._drain())
        return job

    async def generate(self, settings: IconSettings, on_progress: Optional[ProgressCallback] = None) -> str:
        """
        Render and encode an animated GIF.

        Returns:
            A ``data:image/gif;base64,...`` URI.

        Raises:
            NoValidFrames: Every frame failed to render.
            EncodingError: The worker and the synchronous fallback both failed.
            JobCancelled: The job was cancelled before it finished.
        """
        job = self.submit(settings, on_progress)
        return await asyncio.shield(job.future)

    def cancel(self, job_id: str) -> bool:
        """Cancel a queued or running job. Returns False for unknown ids."""
        for job in self._queue:
            if job.id == job_id:
                self._queue.remove(job)
                self._settle_cancelled(job)
                return True
        if self._current is not None and self._current.id == job_id:
            self._settle_cancelled(self._current)
            self._terminate_worker()
            if self._current_task is not None:
                self._current_task.cancel()
            return True
        return False

    def cancel_all(self) -> int:
        """Cancel every queued job and the running one; returns how many were cancelled."""
        ids = [job.id for job in self._queue]
        if self._current is not None:
            ids.append(self._current.id)
        return sum(1 for job_id in ids if self.cancel(job_id))

    def status(self) -> Dict[str, object]:
        return {
            "is_ready": self._worker is not None and self._worker.is_alive,
            "has_current_task": self._current is not None,
            "current_task": self._current.id if self._current is not None else None,
            "queue_size": len(self._queue),
        }

    def shutdown(self) -> None:
        """Cancel every job, stop the worker and wait for its thread to exit."""
        self.cancel_all()
        self._terminate_worker()
        for worker in self._retired:
            if not worker.join(self.config.shutdown_timeout):
                logger.warning(f"Worker {worker.name} still running after {self.config.shutdown_timeout:g}s")
        self._retired = [worker for worker in self._retired if worker.is_running]

    # -- internals ----------------------------------------------------------

    def _settle_cancelled(self, job: EncodingJob) -> None:
        job.state = JobState.CANCELLED
        if not job.future.done():
            job.future.set_exception(JobCancelled(f"Job {job.id} was cancelled"))
        logger.info(f"Cancelled {job.id}")

    def _terminate_worker(self) -> None:
        if self._worker is not None:
            self._worker.terminate()
            self._retired.append(self._worker)
            self._worker = None

    async def _reap_retired(self) -> None:
        """Wait for terminated workers to exit so at most one worker thread ever runs."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.worker_timeout
        while self._retired:
            if not self._retired[0].is_running:
                self._retired.pop(0)
                continue
            if loop.time() >= deadline:
                raise WorkerError(f"Previous worker still running after {self.config.worker_timeout:g}s")
            await asyncio.sleep(RETIRED_POLL_INTERVAL)

    async def _ensure_worker(self) -> GifWorker:
        await self._reap_retired()
        if self._worker is None:
            try:
                self._worker = self.worker_factory()
            except (RuntimeError, OSError) as exc:
                raise WorkerError(f"Worker unavailable: {exc}", exc) from exc
        return self._worker

    async def _drain(self) -> None:
        while self._queue:
            job = self._queue.popleft()
            self._current = job
            self._current_task = asyncio.get_running_loop().create_task(self._run(job))
            try:
                await asyncio.wait({self._current_task})
                task = self._current_task
                if task.cancelled() or job.future.done():
                    continue
                error = task.exception()
                if error is None:
                    job.state = JobState.COMPLETE
                    job.future.set_result(task.result())
                else:
                    job.state = JobState.FAILED
                    job.future.set_exception(error)
            finally:
                self._current = None
                self._current_task = None

    async def _run(self, job: EncodingJob) -> str:
        job.state = JobState.RENDERING
        frames = render_frames(self.compositor, job.settings, job.frame_count)
        if not any(frames):
            raise NoValidFrames(f"No valid frames rendered for {job.id}")

        job.state = JobState.ENCODING
        try:
            data = await self._encode_with_worker(job, frames)
        except WorkerError as exc:
            logger.warning(f"Worker failed for {job.id}, falling back to main-thread encoding: {exc.message}")
            self._terminate_worker()
            job.state = JobState.FALLBACK
            job.used_fallback = True
            data = self._encode_fallback(job)
        job.report("Complete", 100)
        return to_data_uri(data, "image/gif")

    async def _encode_with_worker(self, job: EncodingJob, frames: List[bytes]) -> bytes:
        loop = asyncio.get_running_loop()
        worker = await self._ensure_worker()
        replies: "asyncio.Queue[dict]" = asyncio.Queue()
        request = {
            "kind": "generateGIF",
            "settings": to_flat(job.settings),
            "frames": frames,
            "width": job.width,
            "height": job.height,
            "delay": job.delay,
            "quality": job.quality,
        }
        try:
            worker.post(request, lambda message: loop.call_soon_threadsafe(replies.put_nowait, message))
        except RuntimeError as exc:
            raise WorkerError(f"Worker unavailable: {exc}", exc) from exc

        deadline = loop.time() + self.config.worker_timeout
        while True:
            remaining = deadline - loop.time()
            try:
                message = await asyncio.wait_for(replies.get(), max(remaining, 0))
            except asyncio.TimeoutError as exc:
                raise WorkerError(f"Worker timed out after {self.config.worker_timeout:g}s", exc) from exc
            kind = message.get("kind")
            data = message.get("data") or {}
            if kind == "progress":
                job.report(data.get("message", ""), int(data.get("percent", 0)))
            elif kind == "complete":
                return data["bytes"]
            elif kind == "error":
                raise WorkerError(data.get("message", "Unknown worker error"))
            else:
                logger.debug(f"Ignoring worker message {kind!r}")

    def _encode_fallback(self, job: EncodingJob) -> bytes:
        """Render and encode on the calling thread with the same frame logic as the worker path."""
        frames = render_frames(self.compositor, job.settings, job.frame_count)
        encoder = self.encoder_factory(job.width, job.height, quality=job.quality)
        outcome: Dict[str, object] = {}
        encoder.on("finished", lambda data: outcome.setdefault("data", data))
        encoder.on("error", lambda reason: outcome.setdefault("error", reason))

        for index, frame in enumerate(frames):
            if not frame:
                continue
            encoder.add_frame(frame, job.delay)
            job.report(f"Encoding frame {index + 1}/{len(frames)}", int(90 * (index + 1) / len(frames)))
        if not encoder.frames:
            raise NoValidFrames(f"No valid frames rendered for {job.id}")

        encoder.render()
        if "error" in outcome:
            raise EncodingError(f"GIF encoding failed: {outcome['error']}")
        data = outcome.get("data")
        if not isinstance(data, bytes):
            raise EncodingError("GIF encoder finished without output")
        return data
