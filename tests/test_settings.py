"""Tests for the icon settings model."""

from dataclasses import FrozenInstanceError

import pytest

from reaction_icons.settings import (
    FLAT_KEYS,
    IconSettings,
    create_default_settings,
    from_flat,
    has_animation,
    to_flat,
    update,
    validate,
)


def error_fields(settings: IconSettings) -> set:
    return {error.field for error in validate(settings)}


class TestDefaults:
    """Tests for default settings."""

    def test_default_values(self) -> None:
        settings = create_default_settings()
        assert settings.basic.text == "OK"
        assert settings.basic.background_type == "transparent"
        assert settings.animation.animation == "none"
        assert settings.animation.secondary_color == "#FFD700"
        assert settings.optimization.canvas_size == 128
        assert settings.optimization.gif_frames == 30
        assert settings.canvas_size == 128

    def test_defaults_are_valid(self) -> None:
        assert validate(create_default_settings()) == []

    def test_settings_are_frozen(self) -> None:
        settings = create_default_settings()
        with pytest.raises(FrozenInstanceError):
            settings.basic.text = "NG"  # type: ignore[misc]


class TestFlatView:
    """Tests for to_flat / from_flat."""

    def test_flat_keys_are_camel_case(self) -> None:
        flat = to_flat(create_default_settings())
        for key in ("text", "fontSize", "fontFamily", "textColorType", "gradientColor1",
                    "animationSpeed", "animationAmplitude", "secondaryColor", "imageData",
                    "imageX", "imagePosition", "imageAnimationAmplitude", "canvasSize",
                    "pngQuality", "gifQuality", "gifFrames", "textLineThrough"):
            assert key in flat

    def test_round_trip(self) -> None:
        settings = from_flat({
            "text": "やった\nね",
            "animation": "rainbow",
            "animationSpeed": 45,
            "textColorType": "gradient",
            "gradientDirection": "diagonal",
            "imageData": "data:image/png;base64,AAAA",
            "imagePosition": "front",
            "canvasSize": 64,
            "gifFrames": 12,
        })
        assert from_flat(to_flat(settings)) == settings

    def test_partial_uses_defaults(self) -> None:
        settings = from_flat({"text": "Hi"})
        assert settings.basic.text == "Hi"
        assert settings.basic.font_size == 60
        assert settings.optimization.gif_quality == 20

    def test_unknown_keys_ignored(self) -> None:
        settings = from_flat({"text": "Hi", "colorTheme": "dark"})
        assert settings == update(create_default_settings(), "text", "Hi")

    def test_every_flat_key_maps_to_a_field(self) -> None:
        settings = create_default_settings()
        for category, name in FLAT_KEYS.values():
            assert hasattr(getattr(settings, category), name)


class TestUpdate:
    """Tests for the update reducer."""

    def test_returns_new_value(self) -> None:
        original = create_default_settings()
        changed = update(original, "animation", "bounce")
        assert changed.animation.animation == "bounce"
        assert original.animation.animation == "none"

    def test_untouched_categories_shared(self) -> None:
        original = create_default_settings()
        changed = update(original, "fontColor", "#000000")
        assert changed.image is original.image
        assert changed.optimization is original.optimization

    def test_unknown_key_raises(self) -> None:
        with pytest.raises(KeyError):
            update(create_default_settings(), "fontColour", "#000000")


class TestValidate:
    """Tests for settings validation."""

    def test_empty_text(self) -> None:
        settings = update(create_default_settings(), "text", "   ")
        assert error_fields(settings) == {"text"}

    def test_text_too_long(self) -> None:
        settings = update(create_default_settings(), "text", "x" * 31)
        assert error_fields(settings) == {"text"}

    def test_canvas_size_must_be_supported(self) -> None:
        settings = update(create_default_settings(), "canvasSize", 100)
        errors = validate(settings)
        assert [error.field for error in errors] == ["canvasSize"]
        assert str(errors[0]) == "Canvas size must be either 64 or 128"

    @pytest.mark.parametrize(
        "key,value",
        [
            ("fontSize", 5),
            ("animationSpeed", 0),
            ("animationAmplitude", 101),
            ("imageOpacity", -1),
            ("gifQuality", 0),
            ("gifQuality", 31),
            ("gifFrames", 4),
            ("gifFrames", 61),
        ],
    )
    def test_out_of_range(self, key, value) -> None:
        settings = update(create_default_settings(), key, value)
        assert error_fields(settings) == {key}

    @pytest.mark.parametrize(
        "key,value",
        [
            ("animation", "wobble"),
            ("imageAnimation", "glow"),
            ("textColorType", "pattern"),
            ("gradientDirection", "radial"),
            ("backgroundType", "image"),
            ("imagePosition", "middle"),
        ],
    )
    def test_unknown_choice(self, key, value) -> None:
        settings = update(create_default_settings(), key, value)
        assert error_fields(settings) == {key}

    @pytest.mark.parametrize(
        "key",
        ["fontColor", "gradientColor1", "gradientColor2", "backgroundColor", "secondaryColor"],
    )
    def test_invalid_color(self, key) -> None:
        settings = update(create_default_settings(), key, "not-a-color")
        assert error_fields(settings) == {key}

    @pytest.mark.parametrize("value", ["#ABC", "#FF6B6B", "red", "rgb(1, 2, 3)", "hsl(180, 100%, 50%)", "transparent"])
    def test_accepted_colors(self, value) -> None:
        assert validate(update(create_default_settings(), "backgroundColor", value)) == []

    def test_non_string_color(self) -> None:
        settings = update(create_default_settings(), "fontColor", None)
        assert error_fields(settings) == {"fontColor"}

    def test_reports_every_error(self) -> None:
        settings = from_flat({"text": "", "fontSize": 1, "gifFrames": 100})
        assert error_fields(settings) == {"text", "fontSize", "gifFrames"}


class TestHasAnimation:
    """Tests for has_animation."""

    def test_static(self) -> None:
        assert not has_animation(create_default_settings())

    def test_text_animation(self) -> None:
        assert has_animation(from_flat({"animation": "bounce"}))

    def test_image_animation_needs_image(self) -> None:
        assert not has_animation(from_flat({"imageAnimation": "rotate"}))
        assert has_animation(from_flat({"imageAnimation": "rotate", "imageData": "data:image/png;base64,AAAA"}))
