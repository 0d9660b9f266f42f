"""Tests for text layout, fill resolution and text rendering."""

import pytest
from PIL import ImageChops

from reaction_icons.fonts import (
    FontRegistry,
    is_decorative_font,
    parse_font_family,
    resolve_font_weight,
)
from reaction_icons.settings import from_flat
from reaction_icons.text_layout import (
    calculate_font_size,
    calculate_padding,
    gradient_mask,
    layout_text,
    render_text,
    resolve_fill,
    split_lines,
)

PACIFICO = "'Pacifico', cursive"
NOTO = '"Noto Sans JP", sans-serif'


class TestSplitLines:
    def test_drops_blank_lines(self):
        assert split_lines("A\n\n  \nB") == ["A", "B"]

    def test_blank_text(self):
        assert split_lines(" \n ") == []


class TestRatios:
    def test_padding(self):
        assert calculate_padding(128, decorative=False) == pytest.approx(2.56)
        assert calculate_padding(128, decorative=True) == pytest.approx(12.8)

    def test_font_size(self):
        assert calculate_font_size(128, decorative=False) == pytest.approx(102.4)
        assert calculate_font_size(64, decorative=True) == pytest.approx(38.4)


class TestFonts:
    def test_decorative_detection(self):
        assert is_decorative_font(PACIFICO)
        assert is_decorative_font('"Caveat", cursive')
        assert not is_decorative_font(NOTO)

    def test_weight_mapping(self):
        assert resolve_font_weight('"M PLUS Rounded 1c", sans-serif') == "900"
        assert resolve_font_weight(PACIFICO) == "normal"
        assert resolve_font_weight(NOTO) == "bold"
        assert resolve_font_weight(NOTO, "normal") == "normal"

    def test_parse_family(self):
        assert parse_font_family(NOTO) == ["Noto Sans JP", "sans-serif"]

    def test_missing_font_falls_back(self):
        registry = FontRegistry()
        font = registry.get_font('"No Such Face"', 20)
        assert font.getlength("OK") > 0

    def test_fonts_are_cached(self, fonts):
        assert fonts.get_font(NOTO, 40) is fonts.get_font(NOTO, 40)

    def test_registered_font_tried_first(self, tmp_path):
        registry = FontRegistry()
        older, newer = tmp_path / "older.ttf", tmp_path / "newer.ttf"
        registry.register_font("Noto Sans JP", older)
        registry.register_font("noto sans jp", str(newer))
        candidates = registry.candidates("NOTO SANS JP", "bold", "normal")
        assert candidates[:2] == [str(newer), str(older)]
        assert "NotoSansJP-Bold.ttf" in candidates

    def test_registering_clears_cache(self, tmp_path):
        registry = FontRegistry()
        before = registry.get_font(NOTO, 24)
        registry.register_font("Noto Sans JP", tmp_path / "missing.ttf")
        assert registry.get_font(NOTO, 24) is not before


class TestLayoutText:
    """Tests for layout_text."""

    def test_none_for_blank_text(self, fonts):
        font = fonts.get_font(NOTO, calculate_font_size(128, False))
        assert layout_text("\n  ", NOTO, 128, font) is None

    def test_fills_padded_box(self, fonts):
        font = fonts.get_font(NOTO, calculate_font_size(128, False))
        layout = layout_text("OK", NOTO, 128, font)
        assert layout is not None
        assert layout.max_line_width * layout.scale_x == pytest.approx(128 - 2 * 2.56)
        assert layout.total_height * layout.scale_y == pytest.approx(128 - 2 * 2.56)

    def test_multiline_offsets_centered(self, fonts):
        font = fonts.get_font(NOTO, calculate_font_size(128, False))
        layout = layout_text("A\nB\nC", NOTO, 128, font)
        assert len(layout.lines) == 3
        assert layout.line_offsets[1] == pytest.approx(0)
        assert layout.line_offsets[0] == pytest.approx(-layout.line_offsets[2])

    def test_decorative_scale_clamped(self, fonts):
        font = fonts.get_font(PACIFICO, calculate_font_size(128, True), "normal")
        layout = layout_text("i", PACIFICO, 128, font)
        assert layout.decorative
        assert layout.scale_x <= 0.9
        assert layout.scale_y <= 0.9


class TestResolveFill:
    def test_solid(self):
        fill = resolve_fill(from_flat({"fontColor": "#FF0000"}))
        assert fill.colors == ((255, 0, 0, 255),)
        assert not fill.is_gradient

    def test_gradient(self):
        fill = resolve_fill(from_flat({
            "textColorType": "gradient",
            "gradientColor1": "#FF0000",
            "gradientColor2": "#0000FF",
            "gradientDirection": "horizontal",
        }))
        assert fill.colors == ((255, 0, 0, 255), (0, 0, 255, 255))
        assert fill.direction == "horizontal"

    def test_second_stop_falls_back_to_secondary(self):
        fill = resolve_fill(from_flat({
            "textColorType": "gradient",
            "gradientColor2": "",
            "secondaryColor": "#00FF00",
        }))
        assert fill.colors[1] == (0, 255, 0, 255)

    def test_second_stop_fixed_fallback(self):
        fill = resolve_fill(from_flat({
            "textColorType": "gradient",
            "gradientColor2": "",
            "secondaryColor": "",
        }))
        assert fill.colors[1] == (255, 215, 0, 255)


class TestGradientMask:
    def test_horizontal_varies_along_x(self, fonts):
        font = fonts.get_font(NOTO, calculate_font_size(128, False))
        layout = layout_text("OK", NOTO, 128, font)
        size = (int(layout.max_line_width) + 20, int(layout.total_height) + 20)
        mask = gradient_mask(size, layout, "horizontal")
        assert mask.getpixel((0, 5)) == 0
        assert mask.getpixel((size[0] - 1, 5)) == 255
        assert mask.getpixel((5, 0)) == mask.getpixel((5, size[1] - 1))

    def test_vertical_varies_along_y(self, fonts):
        font = fonts.get_font(NOTO, calculate_font_size(128, False))
        layout = layout_text("OK", NOTO, 128, font)
        size = (int(layout.max_line_width) + 20, int(layout.total_height) + 20)
        mask = gradient_mask(size, layout, "vertical")
        assert mask.getpixel((5, 0)) == 0
        assert mask.getpixel((5, size[1] - 1)) == 255


class TestRenderText:
    """Tests for render_text."""

    def test_canvas_sized_layer(self, fonts):
        layer = render_text(from_flat({"text": "OK"}), 64, fonts)
        assert layer.size == (64, 64)
        assert layer.mode == "RGBA"
        assert layer.getbbox() is not None

    def test_blank_text_is_transparent(self, fonts):
        layer = render_text(from_flat({"text": " "}), 128, fonts)
        assert layer.getbbox() is None

    def test_strike_through_changes_output(self, fonts):
        plain = render_text(from_flat({"text": "OK"}), 128, fonts)
        struck = render_text(from_flat({"text": "OK", "textLineThrough": True}), 128, fonts)
        assert ImageChops.difference(plain, struck).getbbox() is not None

    def test_deterministic(self, fonts):
        settings = from_flat({"text": "やった", "textColorType": "gradient", "gradientDirection": "diagonal"})
        first = render_text(settings, 128, fonts)
        second = render_text(settings, 128, fonts)
        assert first.tobytes() == second.tobytes()

    def test_text_uses_fill_color(self, fonts):
        layer = render_text(from_flat({"text": "OK", "fontColor": "#00FF00"}), 128, fonts)
        opaque = [pixel for pixel in layer.getdata() if pixel[3] == 255]
        assert opaque
        assert all(pixel[0] <= 2 and pixel[1] >= 253 and pixel[2] <= 2 for pixel in opaque)
