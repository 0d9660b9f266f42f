"""
Error taxonomy and the Result type returned at the engine boundary.

Code inside the engine raises the typed exceptions below. The public API
(``IconEngine``) converts them to ``Err`` values so callers always receive a
single typed error object instead of an exception.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(Enum):
    INVALID_SETTINGS = "invalid_settings"
    CANVAS_CONTEXT_UNAVAILABLE = "canvas_context_unavailable"
    RESOURCE_LOAD = "resource_load"
    WORKER = "worker"
    NO_VALID_FRAMES = "no_valid_frames"
    ENCODING = "encoding"
    FILE_GENERATION = "file_generation"
    CANCELLED = "cancelled"


class EngineError(Exception):
    """Base class for every error the engine reports."""

    kind: ErrorKind = ErrorKind.ENCODING

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class InvalidSettings(EngineError):
    """Settings failed validation; generation is refused."""

    kind = ErrorKind.INVALID_SETTINGS

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Invalid settings")
        self.errors = list(errors)


class CanvasContextUnavailable(EngineError):
    kind = ErrorKind.CANVAS_CONTEXT_UNAVAILABLE


class ResourceLoadError(EngineError):
    """A font or image could not be loaded. Rendering continues without it."""

    kind = ErrorKind.RESOURCE_LOAD


class WorkerError(EngineError):
    """The background worker failed, errored or timed out."""

    kind = ErrorKind.WORKER


class NoValidFrames(EngineError):
    kind = ErrorKind.NO_VALID_FRAMES


class EncodingError(EngineError):
    kind = ErrorKind.ENCODING


class JobCancelled(EngineError):
    kind = ErrorKind.CANCELLED


class FileGenerationError(EngineError):
    """Wraps any other engine error for the download API."""

    kind = ErrorKind.FILE_GENERATION


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))


@dataclass(frozen=True)
class Err:
    error: EngineError

    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, fn: Callable) -> "Err":
        return self


Result = Union[Ok[T], Err]


def try_catch(fn: Callable[[], T]) -> "Result[T]":
    """Run ``fn`` and turn a raised ``EngineError`` into an ``Err``."""
    try:
        return Ok(fn())
    except EngineError as exc:
        return Err(exc)
