"""
Pillow helpers shared by the compositor layers: color parsing, centered
compositing and canvas-style affine transforms.
"""

import math
from typing import Tuple

from PIL import Image, ImageColor

from .animation import AnimationTransform

Matrix = Tuple[float, float, float, float, float, float]


def parse_color(color_text: str) -> Tuple[int, int, int, int]:
    """Parse a color string into RGBA tuple. Returns (0,0,0,0) for 'transparent'."""
    if color_text.lower() == 'transparent':
        return (0, 0, 0, 0)
    try:
        color = ImageColor.getrgb(color_text)
        if len(color) == 3:
            return (*color, 255)
        return color
    except Exception as exc:
        raise ValueError(f"Invalid color: {color_text}. Use hex (#FFFFFF), color name, hsl(), or 'transparent'.") from exc


def composite_at(target: Image.Image, source: Image.Image, offset: Tuple[int, int]) -> None:
    """Alpha-composite ``source`` onto ``target`` at ``offset``, clipping at the edges."""
    x, y = offset
    left, top = max(0, -x), max(0, -y)
    right = min(source.width, target.width - x)
    bottom = min(source.height, target.height - y)
    if right <= left or bottom <= top:
        return
    visible = source.crop((left, top, right, bottom))
    target.alpha_composite(visible, dest=(x + left, y + top))


def composite_centered(target: Image.Image, source: Image.Image, center: Tuple[float, float]) -> None:
    offset = (
        int(round(center[0] - source.width / 2)),
        int(round(center[1] - source.height / 2)),
    )
    composite_at(target, source, offset)


def multiply_alpha(image: Image.Image, factor: float) -> Image.Image:
    """Return a copy of an RGBA image with its alpha channel scaled by ``factor``."""
    if factor >= 1:
        return image
    result = image.copy()
    alpha = result.getchannel("A").point(lambda value: int(round(value * max(0.0, factor))))
    result.putalpha(alpha)
    return result


def transform_matrix(transform: AnimationTransform, center: Tuple[float, float], pixel_scale: float = 1.0) -> Matrix:
    """
    Forward affine matrix for translate, then rotate/scale about ``center``.

    Matches the canvas order translate(t); translate(c); rotate; scale;
    translate(-c). Translations are multiplied by ``pixel_scale``.
    """
    cx, cy = center
    cos_a = math.cos(transform.rotate_radians)
    sin_a = math.sin(transform.rotate_radians)
    a = cos_a * transform.scale_x
    b = -sin_a * transform.scale_y
    d = sin_a * transform.scale_x
    e = cos_a * transform.scale_y
    c = cx - a * cx - b * cy + transform.translate_x * pixel_scale
    f = cy - d * cx - e * cy + transform.translate_y * pixel_scale
    return (a, b, c, d, e, f)


def invert_matrix(matrix: Matrix) -> Matrix:
    a, b, c, d, e, f = matrix
    det = a * e - b * d
    if det == 0:
        raise ValueError("Transform is not invertible")
    ia, ib = e / det, -b / det
    id_, ie = -d / det, a / det
    return (ia, ib, -(ia * c + ib * f), id_, ie, -(id_ * c + ie * f))


def apply_transform(
    layer: Image.Image,
    transform: AnimationTransform,
    center: Tuple[float, float],
    pixel_scale: float = 1.0,
) -> Image.Image:
    """Apply the geometric and alpha parts of ``transform`` to a full-canvas layer."""
    result = layer
    if not transform.is_geometric_identity:
        inverse = invert_matrix(transform_matrix(transform, center, pixel_scale))
        result = layer.transform(
            layer.size,
            Image.Transform.AFFINE,
            inverse,
            resample=Image.Resampling.BICUBIC,
            fillcolor=(0, 0, 0, 0),
        )
    return multiply_alpha(result, transform.alpha)
