"""
Test cross-path parity comparison and the side-by-side composition.
"""

import numpy as np
import pytest

from blurstag import FilterParams, RasterImage
from blurstag.parity import (
    compare_images,
    compare_paths,
    compute_pixel_diff,
    images_match,
    normalize_to_float,
    side_by_side,
)


class TestNormalizeToFloat:
    """Tests for dtype normalization."""

    def test_uint8(self):
        result = normalize_to_float(np.array([0, 51, 255], dtype=np.uint8))
        np.testing.assert_allclose(result, [0.0, 0.2, 1.0])

    def test_float_passthrough(self):
        result = normalize_to_float(np.array([0.5], dtype=np.float32))
        assert result.dtype == np.float64
        assert result[0] == 0.5

    def test_unsupported_dtype(self):
        with pytest.raises(ValueError):
            normalize_to_float(np.array([1], dtype=np.int32))


class TestComputePixelDiff:
    """Tests for per-pixel differences."""

    def test_one_level_is_tolerated(self):
        a = np.zeros((2, 2, 4), dtype=np.uint8)
        b = a.copy()
        b[0, 0, 0] = 1
        ratio, mask, max_diff = compute_pixel_diff(a, b)
        assert ratio == 0.0
        assert not mask.any()
        assert max_diff == pytest.approx(1 / 255)

    def test_two_levels_differ(self):
        a = np.zeros((2, 2, 4), dtype=np.uint8)
        b = a.copy()
        b[1, 0, 2] = 2
        ratio, mask, _ = compute_pixel_diff(a, b)
        assert ratio == 0.25
        assert mask.tolist() == [[False, False], [True, False]]

    def test_zero_tolerance(self):
        a = np.zeros((1, 2, 4), dtype=np.uint8)
        b = a.copy()
        b[0, 1, 3] = 1
        assert not images_match(a, b, tolerance=0.0)
        assert images_match(a, b)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            compute_pixel_diff(np.zeros((2, 2, 4)), np.zeros((2, 3, 4)))
        assert not images_match(np.zeros((2, 2, 4)), np.zeros((2, 3, 4)))


class TestCompareImages:
    """Tests for the comparison report."""

    def test_pass_message(self):
        a = np.full((3, 3, 4), 10, dtype=np.uint8)
        result = compare_images(a, a.copy())
        assert result.match
        assert result.diff_count == 0
        assert result.total_pixels == 9
        assert result.message.startswith("PASS")

    def test_fail_message(self):
        a = np.zeros((3, 3, 4), dtype=np.uint8)
        b = a.copy()
        b[0, 0, 0] = 100
        result = compare_images(a, b)
        assert not result.match
        assert result.diff_count == 1
        assert result.message.startswith("FAIL")
        assert result.max_diff == pytest.approx(100 / 255)

    def test_shape_mismatch(self):
        result = compare_images(np.zeros((2, 2, 4), np.uint8), np.zeros((3, 2, 4), np.uint8))
        assert not result.match
        assert "Shape mismatch" in result.message


class TestComparePaths:
    """Tests running both execution paths."""

    @pytest.mark.parametrize("radius,blend", [(1, 0.5), (3, 0.6), (8, 1.0)])
    def test_host_device_matches_sequential(self, random_image, host_device, radius, blend):
        result = compare_paths(random_image, FilterParams(radius, blend), host_device)
        assert result.match, result.message
        assert result.max_diff <= 1 / 255 + 1e-9

    def test_striped_image_matches(self, striped_image, host_device):
        result = compare_paths(striped_image, FilterParams(2, 0.8), host_device, tile_size=4)
        assert result.match, result.message


class TestSideBySide:
    """Tests for the comparison image."""

    def test_layout(self, small_image):
        filtered = RasterImage(np.full((5, 7, 4), 255, dtype=np.uint8))
        combined = side_by_side(small_image, filtered, gap=3)
        assert combined.size == (17, 5)
        np.testing.assert_array_equal(combined.pixels[:, :7], small_image.pixels)
        np.testing.assert_array_equal(combined.pixels[:, 10:], filtered.pixels)
        assert combined.pixels[0, 8].tolist() == [128, 128, 128, 255]

    def test_size_mismatch(self, small_image, random_image):
        with pytest.raises(ValueError):
            side_by_side(small_image, random_image)
