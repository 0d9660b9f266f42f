"""Tests for the frame compositor's layering contract."""

import base64
from io import BytesIO

import pytest
from PIL import Image, ImageChops

from reaction_icons.compositor import STATIC_FRAME, Frame
from reaction_icons.settings import from_flat


def create_image_payload(width: int = 40, height: int = 40, color=(0, 0, 255, 255)) -> str:
    buffer = BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def differs(first: Image.Image, second: Image.Image) -> bool:
    return ImageChops.difference(first, second).getbbox() is not None


class TestFrame:
    def test_progress(self):
        assert Frame(15, 30).progress == 0.5
        assert STATIC_FRAME.progress == 0.0

    def test_zero_total(self):
        assert Frame(0, 0).progress == 0.0


class TestBackground:
    """Background fill rules."""

    def test_transparent_static_keeps_corners_clear(self, compositor):
        image = compositor.compose_static(from_flat({"text": "OK"}))
        assert image.getpixel((0, 0))[3] == 0

    def test_solid_background_filled(self, compositor):
        image = compositor.compose_static(from_flat({"backgroundType": "solid", "backgroundColor": "#102030"}))
        assert image.getpixel((0, 0)) == (16, 32, 48, 255)

    def test_animation_fills_background(self, compositor):
        settings = from_flat({"animation": "bounce", "backgroundColor": "#102030"})
        image = compositor.compose(settings, Frame(3, 30))
        assert image.getpixel((0, 0)) == (16, 32, 48, 255)

    def test_forced_background(self, compositor):
        image = compositor.compose(from_flat({"backgroundColor": "#FFFFFF"}), Frame(0, 30), force_background=True)
        assert image.getpixel((0, 0)) == (255, 255, 255, 255)


class TestDeterminism:
    @pytest.mark.parametrize("animation", ["bounce", "rotate", "glow", "rainbow", "confetti", "confetti-cannon"])
    def test_same_frame_same_pixels(self, compositor, animation):
        settings = from_flat({"text": "OK", "animation": animation})
        first = compositor.compose(settings, Frame(7, 30))
        second = compositor.compose(settings, Frame(7, 30))
        assert first.tobytes() == second.tobytes()

    def test_frames_differ_over_time(self, compositor):
        settings = from_flat({"text": "OK", "animation": "slide"})
        assert differs(compositor.compose(settings, Frame(0, 30)), compositor.compose(settings, Frame(7, 30)))


class TestLayers:
    """Tests for the layer order and static degenerate case."""

    def test_static_ignores_animation(self, compositor):
        settings = from_flat({"text": "OK", "animation": "bounce", "backgroundType": "solid"})
        plain = from_flat({"text": "OK", "backgroundType": "solid"})
        assert compositor.compose_static(settings).tobytes() == compositor.compose_static(plain).tobytes()

    def test_particles_only_when_animated(self, compositor):
        settings = from_flat({"text": "OK", "animation": "confetti", "backgroundType": "solid"})
        static = compositor.compose_static(settings)
        animated = compositor.compose(settings, Frame(0, 30))
        assert differs(static, animated)

    def test_image_in_front_covers_text(self, compositor):
        payload = create_image_payload(64, 64, (0, 0, 255, 255))
        base = {"text": "OK", "fontColor": "#FF0000", "imageData": payload, "imageSize": 100}
        front = compositor.compose_static(from_flat({**base, "imagePosition": "front"}))
        back = compositor.compose_static(from_flat({**base, "imagePosition": "back"}))
        assert front.getcolors() == [(128 * 128, (0, 0, 255, 255))]
        assert differs(front, back)

    def test_image_position_and_size(self, compositor):
        payload = create_image_payload(10, 10, (0, 255, 0, 255))
        settings = from_flat({
            "text": " ", "imageData": payload, "imageX": 25, "imageY": 25, "imageSize": 20,
        })
        image = compositor.compose_static(settings)
        assert image.getpixel((32, 32)) == (0, 255, 0, 255)
        assert image.getpixel((96, 96))[3] == 0

    def test_image_opacity(self, compositor):
        payload = create_image_payload(10, 10, (0, 255, 0, 255))
        settings = from_flat({"text": " ", "imageData": payload, "imageOpacity": 50})
        alpha = compositor.compose_static(settings).getpixel((64, 64))[3]
        assert alpha == pytest.approx(128, abs=1)

    def test_broken_image_is_skipped(self, compositor):
        settings = from_flat({"text": "OK", "imageData": "data:image/png;base64,bm90IGFuIGltYWdl"})
        image = compositor.compose_static(settings)
        assert image.getbbox() is not None

    def test_target_is_drawn_into(self, compositor):
        target = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
        result = compositor.compose_static(from_flat({"text": "OK", "canvasSize": 64}), target=target)
        assert result is target
        assert target.getbbox() is not None
