"""Tests for the pixel-level filters."""

import numpy as np
import pytest

from scanprep.preprocessing.errors import ConfigError
from scanprep.preprocessing.filters import (
    _to_channel,
    adjust_brightness,
    adjust_contrast,
    contrast_factor,
    sharpen,
    to_grayscale,
)
from scanprep.preprocessing.raster import RasterBuffer


def _make_buffer(
    rgb: tuple[int, int, int], height: int = 3, width: int = 3
) -> RasterBuffer:
    """Create a uniform opaque RGBA buffer."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = 255
    return RasterBuffer(pixels=pixels)


def _is_rgba_uint8(buffer: RasterBuffer) -> bool:
    return buffer.pixels.dtype == np.uint8 and buffer.pixels.shape[2] == 4


class TestRounding:
    """Tests for the shared round-and-clamp rule."""

    def test_round_half_to_even_then_clamp(self) -> None:
        values = np.array([0.5, 1.5, 2.5, 254.5, -3.0, 300.0, 176.516])
        result = _to_channel(values)
        np.testing.assert_array_equal(result, [0, 2, 2, 254, 0, 255, 177])
        assert result.dtype == np.uint8


class TestGrayscale:
    """Tests for luminance conversion."""

    @pytest.mark.parametrize(
        ("rgb", "expected"),
        [
            ((255, 0, 0), 76),
            ((0, 255, 0), 150),
            ((0, 0, 255), 29),
            ((100, 150, 200), 141),
            ((255, 255, 255), 255),
        ],
    )
    def test_luminance_values(self, rgb: tuple[int, int, int], expected: int) -> None:
        result = to_grayscale(_make_buffer(rgb))
        assert tuple(result.pixels[1, 1, :3]) == (expected, expected, expected)

    def test_idempotent(self, random_buffer: RasterBuffer) -> None:
        once = to_grayscale(random_buffer)
        twice = to_grayscale(once)
        np.testing.assert_array_equal(once.pixels, twice.pixels)

    def test_alpha_untouched(self, random_buffer: RasterBuffer) -> None:
        result = to_grayscale(random_buffer)
        np.testing.assert_array_equal(result.pixels[..., 3], random_buffer.pixels[..., 3])

    def test_input_not_modified(self, random_buffer: RasterBuffer) -> None:
        before = random_buffer.pixels.copy()
        to_grayscale(random_buffer)
        np.testing.assert_array_equal(random_buffer.pixels, before)


class TestBrightness:
    """Tests for the additive brightness shift."""

    def test_clamps_high(self) -> None:
        result = adjust_brightness(_make_buffer((230, 230, 230)), 50)
        assert tuple(result.pixels[0, 0]) == (255, 255, 255, 255)

    def test_clamps_low(self) -> None:
        result = adjust_brightness(_make_buffer((20, 60, 100)), -50)
        assert tuple(result.pixels[0, 0, :3]) == (0, 10, 50)

    def test_zero_is_identity(self, random_buffer: RasterBuffer) -> None:
        result = adjust_brightness(random_buffer, 0)
        np.testing.assert_array_equal(result.pixels, random_buffer.pixels)
        assert result.pixels is not random_buffer.pixels

    def test_lossy_at_boundary(self) -> None:
        original = _make_buffer((240, 100, 10))
        restored = adjust_brightness(adjust_brightness(original, 30), -30)
        assert tuple(restored.pixels[0, 0, :3]) == (225, 100, 10)

    def test_alpha_untouched(self, random_buffer: RasterBuffer) -> None:
        result = adjust_brightness(random_buffer, 40)
        np.testing.assert_array_equal(result.pixels[..., 3], random_buffer.pixels[..., 3])
        assert _is_rgba_uint8(result)


class TestContrast:
    """Tests for the contrast stretch about 128."""

    def test_factor_zero_is_one(self) -> None:
        assert contrast_factor(0) == 1.0

    def test_negative_contrast_value(self) -> None:
        result = adjust_contrast(_make_buffer((200, 128, 50)), -50)
        assert tuple(result.pixels[0, 0, :3]) == (177, 128, 75)

    def test_positive_contrast_value(self) -> None:
        result = adjust_contrast(_make_buffer((200, 128, 50)), 50)
        assert tuple(result.pixels[0, 0, :3]) == (235, 128, 12)

    def test_zero_is_identity(self, random_buffer: RasterBuffer) -> None:
        result = adjust_contrast(random_buffer, 0)
        np.testing.assert_array_equal(result.pixels, random_buffer.pixels)

    def test_out_of_range_value_uses_formula(self) -> None:
        result = adjust_contrast(_make_buffer((200, 128, 56)), 200)
        assert tuple(result.pixels[0, 0, :3]) == (255, 128, 0)

    def test_degenerate_value_raises(self, random_buffer: RasterBuffer) -> None:
        with pytest.raises(ConfigError, match="259"):
            adjust_contrast(random_buffer, 259)

    def test_non_finite_value_raises(self, random_buffer: RasterBuffer) -> None:
        with pytest.raises(ConfigError, match="finite"):
            adjust_contrast(random_buffer, float("nan"))

    def test_alpha_untouched(self, random_buffer: RasterBuffer) -> None:
        result = adjust_contrast(random_buffer, 30)
        np.testing.assert_array_equal(result.pixels[..., 3], random_buffer.pixels[..., 3])


class TestSharpen:
    """Tests for the 3x3 sharpening convolution."""

    def test_uniform_region_unchanged(self) -> None:
        buffer = _make_buffer((128, 128, 128))
        result = sharpen(buffer)
        np.testing.assert_array_equal(result.pixels, buffer.pixels)

    def test_center_clamped(self) -> None:
        pixels = np.zeros((3, 3, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        pixels[1, 1, :3] = 100
        pixels[0, 1, :3] = 50
        pixels[2, 1, :3] = 50
        pixels[1, 0, :3] = 50
        pixels[1, 2, :3] = 50
        result = sharpen(RasterBuffer(pixels=pixels))
        assert tuple(result.pixels[1, 1]) == (255, 255, 255, 255)

    def test_reads_from_unmodified_source(self) -> None:
        pixels = np.zeros((3, 4, 4), dtype=np.uint8)
        pixels[1, :, 0] = [10, 20, 30, 40]
        result = sharpen(RasterBuffer(pixels=pixels))
        assert result.pixels[1, 1, 0] == 60
        assert result.pixels[1, 2, 0] == 90

    def test_border_pixels_unchanged(self, random_buffer: RasterBuffer) -> None:
        result = sharpen(random_buffer)
        src, out = random_buffer.pixels, result.pixels
        np.testing.assert_array_equal(out[0], src[0])
        np.testing.assert_array_equal(out[-1], src[-1])
        np.testing.assert_array_equal(out[:, 0], src[:, 0])
        np.testing.assert_array_equal(out[:, -1], src[:, -1])

    def test_interior_matches_kernel(self, random_buffer: RasterBuffer) -> None:
        src = random_buffer.pixels[..., :3].astype(np.int32)
        expected = (
            5 * src[1:-1, 1:-1]
            - src[:-2, 1:-1]
            - src[2:, 1:-1]
            - src[1:-1, :-2]
            - src[1:-1, 2:]
        )
        result = sharpen(random_buffer)
        np.testing.assert_array_equal(
            result.pixels[1:-1, 1:-1, :3], np.clip(expected, 0, 255)
        )

    def test_alpha_untouched(self, random_buffer: RasterBuffer) -> None:
        result = sharpen(random_buffer)
        np.testing.assert_array_equal(result.pixels[..., 3], random_buffer.pixels[..., 3])

    @pytest.mark.parametrize(("height", "width"), [(1, 1), (2, 5), (5, 2)])
    def test_small_images_unchanged(self, height: int, width: int) -> None:
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
        result = sharpen(RasterBuffer(pixels=pixels))
        np.testing.assert_array_equal(result.pixels, pixels)

    def test_input_not_modified(self, random_buffer: RasterBuffer) -> None:
        before = random_buffer.pixels.copy()
        sharpen(random_buffer)
        np.testing.assert_array_equal(random_buffer.pixels, before)


class TestDimensions:
    """Every filter preserves the buffer shape."""

    @pytest.mark.parametrize(
        "apply",
        [
            to_grayscale,
            sharpen,
            lambda b: adjust_brightness(b, 25),
            lambda b: adjust_contrast(b, -25),
        ],
    )
    def test_shape_preserved(self, apply, random_buffer: RasterBuffer) -> None:
        result = apply(random_buffer)
        assert result.pixels.shape == random_buffer.pixels.shape
        assert result.pixels.dtype == np.uint8
