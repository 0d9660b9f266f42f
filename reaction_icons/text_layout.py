"""
Multi-line text fitting and fill resolution.

The text block is measured at a base font size derived from the canvas, then
stretched independently along each axis so it fills the padded box. The fill
is a solid color or a two-stop linear gradient across the measured block.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw

from .constants import (
    DECORATIVE_FONT_PADDING_RATIO,
    DECORATIVE_FONT_SIZE_RATIO,
    DECORATIVE_LINE_HEIGHT_RATIO,
    DECORATIVE_SCALE_LIMIT,
    DEFAULT_SECONDARY_COLOR,
    NORMAL_FONT_PADDING_RATIO,
    NORMAL_FONT_SIZE_RATIO,
    NORMAL_LINE_HEIGHT_RATIO,
)
from .fonts import FontRegistry, is_decorative_font, resolve_font_weight
from .imaging import composite_centered, parse_color
from .settings import IconSettings

STRIKE_WIDTH_RATIO = 0.06
STRIKE_OFFSET_RATIO = 0.05


@dataclass(frozen=True)
class TextLayout:
    lines: Tuple[str, ...]
    line_widths: Tuple[float, ...]
    line_offsets: Tuple[float, ...]
    base_font_size: float
    line_height: float
    max_line_width: float
    total_height: float
    padding: float
    scale_x: float
    scale_y: float
    decorative: bool


@dataclass(frozen=True)
class TextFill:
    """Resolved text fill: one color, or two gradient stops and a direction."""

    colors: Tuple[Tuple[int, int, int, int], ...]
    direction: Optional[str] = None

    @property
    def is_gradient(self) -> bool:
        return len(self.colors) > 1


def split_lines(text: str) -> List[str]:
    """Split on newlines and drop blank lines."""
    return [line for line in text.split("\n") if line.strip()]


def calculate_padding(canvas_size: int, decorative: bool) -> float:
    ratio = DECORATIVE_FONT_PADDING_RATIO if decorative else NORMAL_FONT_PADDING_RATIO
    return canvas_size * ratio


def calculate_font_size(canvas_size: int, decorative: bool) -> float:
    ratio = DECORATIVE_FONT_SIZE_RATIO if decorative else NORMAL_FONT_SIZE_RATIO
    return canvas_size * ratio


def layout_text(text: str, font_family: str, canvas_size: int, font) -> Optional[TextLayout]:
    """
    Measure ``text`` with ``font`` and compute the fit for a square canvas.

    Returns:
        The layout, or None when there is no visible line to draw.
    """
    lines = split_lines(text)
    if not lines:
        return None

    decorative = is_decorative_font(font_family)
    padding = calculate_padding(canvas_size, decorative)
    max_width = canvas_size - padding * 2
    max_height = canvas_size - padding * 2
    base_font_size = calculate_font_size(canvas_size, decorative)

    line_widths = tuple(float(font.getlength(line)) for line in lines)
    max_line_width = max(line_widths)
    line_height = base_font_size * (DECORATIVE_LINE_HEIGHT_RATIO if decorative else NORMAL_LINE_HEIGHT_RATIO)
    total_height = line_height * len(lines)

    scale_x = max_width / max_line_width if max_line_width > 0 else 1.0
    scale_y = max_height / total_height if total_height > 0 else 1.0
    if decorative:
        scale_x = min(scale_x, DECORATIVE_SCALE_LIMIT)
        scale_y = min(scale_y, DECORATIVE_SCALE_LIMIT)

    line_gap = line_height - base_font_size
    actual_height = base_font_size * len(lines) + line_gap * (len(lines) - 1)
    start_y = -(actual_height / 2) + base_font_size / 2
    offsets = tuple(start_y + index * line_height for index in range(len(lines)))

    return TextLayout(
        lines=tuple(lines),
        line_widths=line_widths,
        line_offsets=offsets,
        base_font_size=base_font_size,
        line_height=line_height,
        max_line_width=max_line_width,
        total_height=total_height,
        padding=padding,
        scale_x=scale_x,
        scale_y=scale_y,
        decorative=decorative,
    )


def resolve_fill(settings: IconSettings) -> TextFill:
    """Solid font color, or gradient stops with secondary/fallback defaults."""
    basic = settings.basic
    if basic.text_color_type == "gradient":
        start = basic.gradient_color1 or basic.font_color
        end = basic.gradient_color2 or settings.animation.secondary_color or DEFAULT_SECONDARY_COLOR
        return TextFill(colors=(parse_color(start), parse_color(end)), direction=basic.gradient_direction)
    return TextFill(colors=(parse_color(basic.font_color),))


def _ramp(length: int, start: float, extent: float) -> List[int]:
    if extent <= 0:
        return [0] * length
    return [int(round(255 * min(1.0, max(0.0, (i + 0.5 - start) / extent)))) for i in range(length)]


def gradient_mask(size: Tuple[int, int], layout: TextLayout, direction: Optional[str]) -> Image.Image:
    """Blend mask (0 = first stop, 255 = second stop) across the measured text block."""
    width, height = size
    horizontal = Image.new("L", (width, 1))
    horizontal.putdata(_ramp(width, width / 2 - layout.max_line_width / 2, layout.max_line_width))
    horizontal = horizontal.resize(size, Image.Resampling.NEAREST)

    vertical = Image.new("L", (1, height))
    vertical.putdata(_ramp(height, height / 2 - layout.total_height / 2, layout.total_height))
    vertical = vertical.resize(size, Image.Resampling.NEAREST)

    if direction == "horizontal":
        return horizontal
    if direction == "diagonal":
        return Image.blend(horizontal, vertical, 0.5)
    return vertical


def fill_image(fill: TextFill, size: Tuple[int, int], layout: TextLayout) -> Image.Image:
    first = Image.new("RGBA", size, fill.colors[0])
    if not fill.is_gradient:
        return first
    second = Image.new("RGBA", size, fill.colors[1])
    return Image.composite(second, first, gradient_mask(size, layout, fill.direction))


def render_text(
    settings: IconSettings,
    canvas_size: int,
    fonts: FontRegistry,
) -> Image.Image:
    """
    Draw the text block for one frame onto a transparent canvas-sized layer.

    The strike-through, when enabled, is drawn into the same coverage mask as
    the glyphs so it always takes the resolved fill.
    """
    layer = Image.new("RGBA", (canvas_size, canvas_size), (0, 0, 0, 0))
    basic = settings.basic
    decorative = is_decorative_font(basic.font_family)
    weight = resolve_font_weight(basic.font_family, basic.font_weight)
    font = fonts.get_font(basic.font_family, calculate_font_size(canvas_size, decorative), weight, basic.font_style)

    layout = layout_text(basic.text, basic.font_family, canvas_size, font)
    if layout is None:
        return layer

    margin = layout.base_font_size * 0.5
    block_width = int(math.ceil(layout.max_line_width + margin * 2))
    block_height = int(math.ceil(max(layout.total_height, layout.line_offsets[-1] * 2 + layout.base_font_size) + margin * 2))
    center_x, center_y = block_width / 2, block_height / 2

    mask = Image.new("L", (block_width, block_height), 0)
    draw = ImageDraw.Draw(mask)
    strike_width = max(1, int(round(layout.base_font_size * STRIKE_WIDTH_RATIO)))
    for line, width, offset in zip(layout.lines, layout.line_widths, layout.line_offsets):
        y = center_y + offset
        draw.text((center_x, y), line, fill=255, font=font, anchor="mm")
        if basic.text_line_through:
            strike_y = y - layout.base_font_size * STRIKE_OFFSET_RATIO
            draw.line([(center_x - width / 2, strike_y), (center_x + width / 2, strike_y)], fill=255, width=strike_width)

    block = fill_image(resolve_fill(settings), (block_width, block_height), layout)
    block.putalpha(ImageChops.multiply(block.getchannel("A"), mask))

    scaled_size = (
        max(1, int(round(block_width * layout.scale_x))),
        max(1, int(round(block_height * layout.scale_y))),
    )
    block = block.resize(scaled_size, Image.Resampling.LANCZOS)
    composite_centered(layer, block, (canvas_size / 2, canvas_size / 2))
    return layer
