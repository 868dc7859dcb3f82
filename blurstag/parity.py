"""Cross-path parity between the device kernel and the sequential filter.

Both paths implement the same kernel, but the device works on normalized
float32 samples while the sequential path sums 8-bit integers. Results are
compared in normalized float space [0.0, 1.0]; by default a difference of one
8-bit level per channel is accepted.

Usage:
    from blurstag.parity import compare_paths

    result = compare_paths(image, FilterParams(radius=3, blend=1.0), device)
    print(result.message)
"""
from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from .config import settings
from .dispatch import ComputeDispatcher
from .fallback import sequential_filter
from .params import FilterParams
from .raster import RasterImage

if TYPE_CHECKING:
    from .devices.base import ComputeDevice

# Absorbs float rounding when a difference sits exactly on the tolerance
_ROUNDING_SLACK = 1e-6


class ComparisonResult(NamedTuple):
    """Result of comparing two images."""
    match: bool
    diff_ratio: float
    diff_count: int
    total_pixels: int
    message: str
    max_diff: float = 0.0  # Maximum per-channel difference in normalized space


def normalize_to_float(image: np.ndarray) -> np.ndarray:
    """Normalize image to float64 in range [0.0, 1.0].

    Handles:
    - uint8 (0-255) -> divide by 255
    - float32/float64 (already 0.0-1.0) -> pass through

    Args:
        image: Input image array

    Returns:
        float64 array with values in [0.0, 1.0]
    """
    if image.dtype == np.uint8:
        return image.astype(np.float64) / 255.0
    elif image.dtype in (np.float32, np.float64):
        return image.astype(np.float64)
    else:
        raise ValueError(f"Unsupported dtype for normalization: {image.dtype}")


def compute_pixel_diff(
    img1: np.ndarray,
    img2: np.ndarray,
    tolerance: float | None = None,
) -> tuple[float, np.ndarray, float]:
    """Compute pixel difference between two images in normalized float space.

    Args:
        img1: First (H, W, C) image
        img2: Second (H, W, C) image
        tolerance: Maximum allowed per-channel difference in [0.0, 1.0] space,
            defaults to ``settings.PARITY_TOLERANCE``

    Returns:
        Tuple of (diff_ratio, diff_mask, max_diff)
        - diff_ratio: Fraction of pixels that differ (0.0 to 1.0)
        - diff_mask: Boolean (H, W) array where True = pixel differs
        - max_diff: Maximum per-channel difference found (in normalized space)
    """
    if img1.shape != img2.shape:
        raise ValueError(
            f"Image shapes don't match: {img1.shape} vs {img2.shape}"
        )
    if tolerance is None:
        tolerance = settings.PARITY_TOLERANCE

    diff = np.abs(normalize_to_float(img1) - normalize_to_float(img2))
    max_diff = float(diff.max())

    # A pixel is "different" if ANY channel differs by more than tolerance
    diff_mask = np.any(diff > tolerance + _ROUNDING_SLACK, axis=2)
    diff_ratio = float(np.sum(diff_mask)) / diff_mask.size
    return diff_ratio, diff_mask, max_diff


def images_match(
    img1: np.ndarray,
    img2: np.ndarray,
    tolerance: float | None = None,
) -> bool:
    """True if no channel of any pixel differs by more than ``tolerance``."""
    if img1.shape != img2.shape:
        return False
    diff_ratio, _, _ = compute_pixel_diff(img1, img2, tolerance)
    return diff_ratio == 0.0


def compare_images(
    parallel: np.ndarray,
    sequential: np.ndarray,
    tolerance: float | None = None,
) -> ComparisonResult:
    """Compare a device result against the sequential result.

    Args:
        parallel: (H, W, 4) uint8 device output
        sequential: (H, W, 4) uint8 sequential output
        tolerance: Per-channel tolerance in [0.0, 1.0] space

    Returns:
        ComparisonResult with match status and details
    """
    if tolerance is None:
        tolerance = settings.PARITY_TOLERANCE
    if parallel.shape != sequential.shape:
        return ComparisonResult(
            match=False,
            diff_ratio=1.0,
            diff_count=0,
            total_pixels=0,
            message=f"Shape mismatch: parallel {parallel.shape} vs sequential {sequential.shape}"
        )

    diff_ratio, diff_mask, max_diff = compute_pixel_diff(parallel, sequential, tolerance)
    diff_count = int(np.sum(diff_mask))
    match = diff_count == 0
    if match:
        message = f"PASS: max_diff={max_diff:.6f} within tolerance={tolerance:.6f}"
    else:
        message = (
            f"FAIL: {diff_ratio*100:.4f}% pixels differ "
            f"(max_diff={max_diff:.6f}) exceeds tolerance={tolerance:.6f}"
        )
    return ComparisonResult(
        match=match,
        diff_ratio=diff_ratio,
        diff_count=diff_count,
        total_pixels=diff_mask.size,
        message=message,
        max_diff=max_diff,
    )


def compare_paths(
    image: RasterImage,
    params: FilterParams,
    device: ComputeDevice,
    tolerance: float | None = None,
    tile_size: int | None = None,
) -> ComparisonResult:
    """Run both execution paths and compare their outputs.

    Args:
        image: Source image
        params: Radius and blend
        device: An initialized compute device
        tolerance: Per-channel tolerance in [0.0, 1.0] space
        tile_size: Dispatch tile size, defaults to ``settings.TILE_SIZE``

    Returns:
        ComparisonResult of device output vs sequential output
    """
    dispatcher = ComputeDispatcher(device, tile_size=tile_size or settings.TILE_SIZE)
    parallel = dispatcher.run(image, params)
    sequential = sequential_filter(image, params)
    return compare_images(parallel, sequential.pixels, tolerance)


def side_by_side(original: RasterImage, filtered: RasterImage, gap: int = 10) -> RasterImage:
    """Place the original and the filtered image next to each other.

    Args:
        original: Source image
        filtered: Filter result of the same size
        gap: Gray separator width in pixels

    Returns:
        Combined image [original | filtered]
    """
    if original.size != filtered.size:
        raise ValueError(f"Size mismatch: {original.size} vs {filtered.size}")
    h, w = original.height, original.width
    combined = np.zeros((h, w * 2 + gap, 4), dtype=np.uint8)
    combined[:, :, :3] = 128
    combined[:, :, 3] = 255
    combined[:, :w] = original.pixels
    combined[:, w + gap:] = filtered.pixels
    return RasterImage(combined)


__all__ = [
    'ComparisonResult',
    'normalize_to_float',
    'compute_pixel_diff',
    'images_match',
    'compare_images',
    'compare_paths',
    'side_by_side',
]
