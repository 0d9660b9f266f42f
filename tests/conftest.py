"""
Pytest fixtures for reaction_icons tests.

Every fixture builds fresh engine components so no cache, worker or surface
state leaks between tests.
"""

import pytest
from PIL import Image

from reaction_icons.compositor import FrameCompositor
from reaction_icons.fonts import FontRegistry
from reaction_icons.image_cache import ImageCache
from reaction_icons.scheduling import ManualScheduler
from reaction_icons.settings import create_default_settings


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def image_cache(clock) -> ImageCache:
    return ImageCache(capacity=50, ttl=300, clock=clock)


@pytest.fixture(scope="session")
def fonts() -> FontRegistry:
    """Font handles are immutable, so one registry is shared by the session."""
    return FontRegistry()


@pytest.fixture
def compositor(image_cache, fonts) -> FrameCompositor:
    return FrameCompositor(image_cache, fonts)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def default_settings():
    return create_default_settings()


@pytest.fixture
def solid_image() -> Image.Image:
    return Image.new("RGBA", (40, 20), (0, 0, 255, 255))
