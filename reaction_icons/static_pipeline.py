"""
Static output pipeline: one composition at progress 0, encoded as a PNG data URI.
"""

import base64
from io import BytesIO
from typing import Optional

from PIL import Image

from .compositor import FrameCompositor
from .settings import IconSettings
from .surface import Surface


def encode_png(image: Image.Image) -> bytes:
    output = BytesIO()
    image.save(output, format="PNG", optimize=True)
    return output.getvalue()


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def encode_png_data_uri(image: Image.Image) -> str:
    return to_data_uri(encode_png(image), "image/png")


class StaticPipeline:
    """Renders settings once onto a surface and returns a PNG data URI."""

    def __init__(self, compositor: FrameCompositor):
        self.compositor = compositor

    def render(self, settings: IconSettings, surface: Optional[Surface] = None) -> str:
        """
        Raises:
            CanvasContextUnavailable: The surface cannot provide a drawing context.
        """
        size = settings.canvas_size
        if surface is None:
            surface = Surface("static-output", size, size)
        surface.resize(size, size)
        surface.context()
        surface.clear((0, 0, size, size))
        self.compositor.compose_static(settings, target=surface.require_image())
        return encode_png_data_uri(surface.require_image())
