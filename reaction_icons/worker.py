"""
Background GIF worker.

Runs the encoder on a dedicated thread and talks to its owner through
messages only. Requests are dictionaries of the form::

    {"kind": "generateGIF", "settings": {...flat settings...},
     "frames": [bytes, ...], "width": 128, "height": 128,
     "delay": 30, "quality": 20}

and every reply is one of::

    {"kind": "progress", "data": {"message": str, "percent": int}}
    {"kind": "complete", "data": {"bytes": bytes, "mime_type": "image/gif"}}
    {"kind": "error", "data": {"message": str}}

Exceptions never leave the worker thread; they are reported as ``error``
replies.
"""

import logging
import queue
import threading
from typing import Callable, Optional, Tuple

from .gif_encoder import GifEncoder

logger = logging.getLogger(__name__)

Reply = Callable[[dict], None]


def progress_message(message: str, percent: int) -> dict:
    return {"kind": "progress", "data": {"message": message, "percent": percent}}


def error_message(message: str) -> dict:
    return {"kind": "error", "data": {"message": message}}


class GifWorker:
    """A single encoding thread fed by a request queue."""

    def __init__(self, encoder_factory: Callable[..., GifEncoder] = GifEncoder, name: str = "gif-worker"):
        self.encoder_factory = encoder_factory
        self.name = name
        self._inbox: "queue.Queue[Optional[Tuple[dict, Reply]]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._terminated = threading.Event()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._terminated.is_set()

    @property
    def is_running(self) -> bool:
        """True while the thread exists, including a terminated thread still finishing a render."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._terminated.is_set():
            raise RuntimeError(f"Worker {self.name} has been terminated")
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def post(self, message: dict, reply: Reply) -> None:
        """Queue a request; replies are delivered through ``reply`` from the worker thread."""
        self.start()
        self._inbox.put((message, reply))

    def terminate(self) -> None:
        """Stop the thread and discard any in-flight job's replies."""
        self._terminated.set()
        self._inbox.put(None)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to exit. Returns False if it is still running after ``timeout``."""
        if self._thread is not None:
            self._thread.join(timeout)
        return not self.is_running

    def _send(self, reply: Reply, message: dict) -> None:
        if self._terminated.is_set():
            return
        try:
            reply(message)
        except RuntimeError as exc:
            # The receiving event loop has gone away
            logger.debug(f"Dropping worker reply: {exc}")

    def _run(self) -> None:
        while not self._terminated.is_set():
            item = self._inbox.get()
            if item is None:
                break
            message, reply = item
            try:
                self._handle(message, reply)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Worker request failed", exc_info=True)
                self._send(reply, error_message(f"Worker error: {exc}"))

    def _handle(self, message: dict, reply: Reply) -> None:
        if message.get("kind") != "generateGIF":
            self._send(reply, error_message(f"Unknown request kind: {message.get('kind')!r}"))
            return

        frames = message["frames"]
        delay = message["delay"]
        encoder = self.encoder_factory(message["width"], message["height"], quality=message["quality"])
        encoder.on("finished", lambda data: self._send(
            reply, {"kind": "complete", "data": {"bytes": data, "mime_type": "image/gif"}}
        ))
        encoder.on("error", lambda reason: self._send(reply, error_message(f"Encoding failed: {reason}")))

        self._send(reply, progress_message("Preparing frames", 0))
        total = len(frames)
        for index, frame in enumerate(frames):
            if self._terminated.is_set():
                return
            if not frame:
                continue
            encoder.add_frame(frame, delay)
            self._send(reply, progress_message(f"Adding frame {index + 1}/{total}", int(80 * (index + 1) / total)))

        self._send(reply, progress_message("Encoding GIF", 90))
        encoder.render()
