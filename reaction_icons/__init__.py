"""
Reaction icon rendering engine.
Renders text/image icon settings to PNG or animated GIF data URIs, with a
background encoding worker and a live preview surface manager.
"""

from .constants import EngineConfig, DEFAULT_ENGINE_CONFIG
from .errors import (
    ErrorKind,
    EngineError,
    InvalidSettings,
    CanvasContextUnavailable,
    ResourceLoadError,
    WorkerError,
    NoValidFrames,
    EncodingError,
    FileGenerationError,
    JobCancelled,
    Ok,
    Err,
    Result,
)
from .settings import (
    IconSettings,
    BasicSettings,
    AnimationSettings,
    ImageSettings,
    OptimizationSettings,
    create_default_settings,
    to_flat,
    from_flat,
    update,
    validate,
    has_animation,
)
from .animation import resolve_delay
from .compositor import Frame, FrameCompositor
from .surface import Surface
from .static_pipeline import StaticPipeline
from .orchestrator import EncodingOrchestrator
from .surface_manager import SurfaceManager
from .engine import IconEngine

__all__ = [
    "EngineConfig",
    "DEFAULT_ENGINE_CONFIG",
    "ErrorKind",
    "EngineError",
    "InvalidSettings",
    "CanvasContextUnavailable",
    "ResourceLoadError",
    "WorkerError",
    "NoValidFrames",
    "EncodingError",
    "FileGenerationError",
    "JobCancelled",
    "Ok",
    "Err",
    "Result",
    "IconSettings",
    "BasicSettings",
    "AnimationSettings",
    "ImageSettings",
    "OptimizationSettings",
    "create_default_settings",
    "to_flat",
    "from_flat",
    "update",
    "validate",
    "has_animation",
    "resolve_delay",
    "Frame",
    "FrameCompositor",
    "Surface",
    "StaticPipeline",
    "EncodingOrchestrator",
    "SurfaceManager",
    "IconEngine",
]
