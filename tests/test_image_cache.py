"""Tests for the decoded image cache."""

import base64
from io import BytesIO

import pytest
from PIL import Image

from reaction_icons.errors import ResourceLoadError
from reaction_icons.image_cache import (
    ImageCache,
    calculate_optimal_dimensions,
    decode_image_payload,
    load_image_from_bytes,
    payload_bytes,
)


def create_test_image_bytes(width: int = 100, height: int = 100, color: str = "red", fmt: str = "PNG") -> bytes:
    """Create a test image as bytes."""
    img = Image.new("RGBA" if fmt == "PNG" else "RGB", (width, height), color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def create_data_uri(width: int = 100, height: int = 100, color: str = "red") -> str:
    encoded = base64.b64encode(create_test_image_bytes(width, height, color)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def stub_decoder(payload: str) -> Image.Image:
    return Image.new("RGBA", (4, 4), (255, 0, 0, 255))


class TestDecoding:
    """Tests for payload decoding."""

    def test_data_uri(self) -> None:
        image = decode_image_payload(create_data_uri(30, 20))
        assert image.size == (30, 20)
        assert image.mode == "RGBA"

    def test_bare_base64(self) -> None:
        encoded = base64.b64encode(create_test_image_bytes(10, 10)).decode("ascii")
        assert decode_image_payload(encoded).size == (10, 10)

    def test_jpeg_converted_to_rgba(self) -> None:
        assert load_image_from_bytes(create_test_image_bytes(8, 8, fmt="JPEG")).mode == "RGBA"

    def test_invalid_base64(self) -> None:
        with pytest.raises(ResourceLoadError):
            payload_bytes("data:image/png;base64,@@@")

    def test_not_an_image(self) -> None:
        with pytest.raises(ResourceLoadError):
            decode_image_payload(base64.b64encode(b"plain text").decode("ascii"))


class TestImageCache:
    """Tests for hits, misses and eviction."""

    def test_miss_then_hit(self, clock) -> None:
        calls = []

        def decoder(payload: str) -> Image.Image:
            calls.append(payload)
            return stub_decoder(payload)

        cache = ImageCache(clock=clock, decoder=decoder)
        first = cache.get("a")
        clock.advance(5)
        second = cache.get("a")
        assert first is second
        assert calls == ["a"]
        entry = cache.entry("a")
        assert entry.access_count == 2
        assert entry.last_access == clock.now

    def test_decode_failure_not_cached(self, image_cache) -> None:
        with pytest.raises(ResourceLoadError):
            image_cache.get("not base64 !")
        assert len(image_cache) == 0

    def test_evicts_lowest_score(self, clock) -> None:
        cache = ImageCache(capacity=2, ttl=300, clock=clock, decoder=stub_decoder)
        cache.get("popular")
        cache.get("popular")
        cache.get("popular")
        cache.get("rare")
        clock.advance(10)
        cache.get("new")
        assert "popular" in cache
        assert "rare" not in cache
        assert "new" in cache
        assert len(cache) == 2

    def test_recency_beats_stale_count(self, clock) -> None:
        cache = ImageCache(capacity=2, ttl=300, clock=clock, decoder=stub_decoder)
        cache.get("old")
        cache.get("old")
        clock.advance(100)
        cache.get("recent")
        clock.advance(1)
        cache.get("new")
        # old: 2 / 101, recent: 1 / 1
        assert "old" not in cache
        assert "recent" in cache

    def test_ttl_expiry_regardless_of_score(self, clock) -> None:
        cache = ImageCache(capacity=50, ttl=300, clock=clock, decoder=stub_decoder)
        for _ in range(10):
            cache.get("busy")
        clock.advance(301)
        cache.get("fresh")
        assert "busy" not in cache
        assert "fresh" in cache

    def test_new_entry_survives_eviction(self, clock) -> None:
        cache = ImageCache(capacity=1, ttl=300, clock=clock, decoder=stub_decoder)
        for _ in range(5):
            cache.get("a")
        cache.get("b")
        assert "b" in cache
        assert "a" not in cache

    def test_clear(self, image_cache) -> None:
        image_cache.get(create_data_uri())
        image_cache.clear()
        assert len(image_cache) == 0


class TestOptimizedVariants:
    """Tests for lazily produced optimized variants."""

    def test_resizes_without_upscaling(self, image_cache) -> None:
        payload = create_data_uri(200, 100)
        variant = image_cache.get_optimized(payload, 64, 64)
        assert (variant.width, variant.height) == (64, 32)
        assert variant.data_uri.startswith("data:image/png;base64,")

        small = image_cache.get_optimized(create_data_uri(20, 10), 64, 64)
        assert (small.width, small.height) == (20, 10)

    def test_variant_cached_per_parameters(self, image_cache) -> None:
        payload = create_data_uri(200, 100)
        first = image_cache.get_optimized(payload, 64, 64, quality=70, fmt="jpeg")
        second = image_cache.get_optimized(payload, 64, 64, quality=70, fmt="jpeg")
        other = image_cache.get_optimized(payload, 32, 32, quality=70, fmt="jpeg")
        assert first is second
        assert other is not first
        assert first.data_uri.startswith("data:image/jpeg;base64,")

    def test_reports_sizes(self, image_cache) -> None:
        payload = create_data_uri(200, 200)
        variant = image_cache.get_optimized(payload, 32, 32)
        assert variant.original_size == len(payload_bytes(payload))
        assert variant.optimized_size == len(variant.data)

    def test_unsupported_format(self, image_cache) -> None:
        with pytest.raises(ValueError):
            image_cache.get_optimized(create_data_uri(), 32, 32, fmt="bmp")

    def test_optimal_dimensions(self) -> None:
        assert calculate_optimal_dimensions(400, 200, 100, 100) == (100, 50)
        assert calculate_optimal_dimensions(200, 400, 100, 100) == (50, 100)
        assert calculate_optimal_dimensions(50, 50, 100, 100) == (50, 50)
