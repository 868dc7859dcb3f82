"""
Test the empty output detector and the sequential host filter.
"""

import numpy as np
import pytest

from blurstag import FilterParams, RasterImage
from blurstag.fallback import is_degenerate, sequential_filter
from blurstag.kernel import apply_kernel


class TestIsDegenerate:
    """Tests for the all-zero detector."""

    def test_all_zero_bytes(self):
        assert is_degenerate(bytes(64))

    def test_all_zero_array(self):
        assert is_degenerate(np.zeros((4, 4, 4), dtype=np.uint8))

    def test_single_nonzero_byte(self):
        buffer = np.zeros((4, 4, 4), dtype=np.uint8)
        buffer[3, 3, 3] = 1
        assert not is_degenerate(buffer)

    def test_opaque_black_is_not_degenerate(self):
        """Black pixels with full alpha are a legitimate result."""
        buffer = np.zeros((2, 2, 4), dtype=np.uint8)
        buffer[..., 3] = 255
        assert not is_degenerate(buffer)

    def test_bytearray(self):
        assert is_degenerate(bytearray(16))
        assert not is_degenerate(bytearray(b"\x00\x00\x01\x00"))


class TestSequentialFilter:
    """Tests for the host fallback filter."""

    @pytest.mark.parametrize("radius,blend", [(1, 0.5), (3, 0.6), (7, 1.0), (40, 0.3)])
    def test_matches_kernel_exactly(self, random_image, radius, blend):
        params = FilterParams(radius, blend)
        result = sequential_filter(random_image, params)
        np.testing.assert_array_equal(result.pixels, apply_kernel(random_image.pixels, params))

    def test_returns_raster_image(self, small_image):
        result = sequential_filter(small_image, FilterParams(1, 0.5))
        assert isinstance(result, RasterImage)
        assert result.size == small_image.size

    def test_radius_zero_returns_copy_of_source(self, random_image):
        result = sequential_filter(random_image, FilterParams(0, 1.0))
        assert result == random_image

    def test_blend_zero_returns_source(self, random_image):
        result = sequential_filter(random_image, FilterParams(5, 0.0))
        assert result == random_image

    @pytest.mark.parametrize("radius,blend", [(0, 0.8), (6, 0.0)])
    def test_identity_params_skip_window_sums(self, random_image, monkeypatch, radius, blend):
        def unexpected(*args, **kwargs):
            raise AssertionError("window sums computed for an identity filter")

        monkeypatch.setattr("blurstag.fallback.window_sum_rows", unexpected)
        assert sequential_filter(random_image, FilterParams(radius, blend)) == random_image

    def test_alpha_is_preserved(self, random_image):
        result = sequential_filter(random_image, FilterParams(2, 1.0))
        np.testing.assert_array_equal(result.alpha, random_image.alpha)

    def test_single_pixel_image(self):
        image = RasterImage(np.array([[[10, 20, 30, 40]]], dtype=np.uint8))
        result = sequential_filter(image, FilterParams(4, 1.0))
        assert result == image

    def test_single_row_image(self):
        pixels = np.zeros((1, 3, 4), dtype=np.uint8)
        pixels[0, :, 0] = [0, 90, 180]
        pixels[0, :, 3] = 255
        result = sequential_filter(RasterImage(pixels), FilterParams(1, 1.0))
        # Clamped windows per column: (0, 0, 90), (0, 90, 180), (90, 180, 180)
        assert result.pixels[0, :, 0].tolist() == [30, 90, 150]
