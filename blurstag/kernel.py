"""Denoising kernel: clamped box average blended with the source pixel.

For a pixel ``(x, y)`` and radius ``r``::

    avg   = mean(sample(clamp(x + dx, 0, w - 1), clamp(y + dy, 0, h - 1)))
            for dx, dy in [-r, r]
    final = lerp(original.rgb, avg, blend), alpha copied

Out of bounds offsets clamp to the nearest valid coordinate, so border pixels
are counted several times in their own window. The host functions here work
on 0-255 integer sums and are the reference the device kernel
(:data:`KERNEL_SOURCE`) is compared against.
"""

from __future__ import annotations

import numpy as np

from .params import FilterParams

COLOR_CHANNELS = 3
"Channels that are blurred, alpha (index 3) is only copied"


def clamped_indices(center: int | np.ndarray, radius: int, length: int) -> np.ndarray:
    """Window coordinates ``center - radius .. center + radius`` clamped to ``[0, length - 1]``.

    For an array of centers the window runs along the last axis.
    """
    offsets = np.arange(-radius, radius + 1)
    return np.clip(np.asarray(center)[..., np.newaxis] + offsets, 0, length - 1)


def horizontal_window_sum(row_sums: np.ndarray, radius: int) -> np.ndarray:
    """Sliding window sum along axis 1 with edge clamp, via a running sum."""
    padded = np.pad(row_sums, ((0, 0), (radius, radius), (0, 0)), mode="edge")
    running = np.cumsum(padded, axis=1)
    running = np.concatenate([np.zeros_like(running[:, :1]), running], axis=1)
    size = 2 * radius + 1
    return running[:, size:] - running[:, :-size]


def window_sum_rows(pixels: np.ndarray, rows: np.ndarray | range, radius: int) -> np.ndarray:
    """Integer RGB window sums for the given output rows.

    :param pixels: (H, W, 4) uint8 source
    :param rows: Output row indices
    :param radius: Window half-width
    :return: (len(rows), W, 3) int64 sums over the clamped window
    """
    height = pixels.shape[0]
    source_rows = clamped_indices(np.asarray(rows, dtype=np.int64), radius, height)
    vertical = pixels[source_rows, :, :COLOR_CHANNELS].sum(axis=1, dtype=np.int64)
    return horizontal_window_sum(vertical, radius)


def box_average(pixels: np.ndarray, radius: int) -> np.ndarray:
    """Mean of the clamped ``(2r+1)^2`` window for every pixel.

    :param pixels: (H, W, 4) uint8 image
    :param radius: Window half-width, 0 returns the RGB channels unchanged
    :return: (H, W, 3) float64 averages in 0-255 range
    """
    height, width = pixels.shape[:2]
    rgb = pixels[:, :, :COLOR_CHANNELS].astype(np.int64)
    if radius == 0:
        return rgb.astype(np.float64)

    # Edge padding on both axes is exactly the clamp boundary policy
    padded = np.pad(rgb, ((radius, radius), (radius, radius), (0, 0)), mode="edge")
    integral = np.zeros((padded.shape[0] + 1, padded.shape[1] + 1, COLOR_CHANNELS), dtype=np.int64)
    integral[1:, 1:] = padded.cumsum(axis=0).cumsum(axis=1)
    size = 2 * radius + 1
    sums = (
        integral[size:size + height, size:size + width]
        - integral[:height, size:size + width]
        - integral[size:size + height, :width]
        + integral[:height, :width]
    )
    return sums / float(size * size)


def blend_pixels(original: np.ndarray, averaged: np.ndarray, blend: float) -> np.ndarray:
    """Linear blend of the source RGB towards the window average.

    :param original: (..., 4) uint8 source pixels
    :param averaged: (..., 3) float window averages in 0-255 range
    :param blend: 0.0 = original, 1.0 = averaged
    :return: (..., 4) uint8 pixels, alpha copied from ``original``
    """
    rgb = original[..., :COLOR_CHANNELS].astype(np.float64)
    mixed = rgb + (averaged - rgb) * blend
    result = np.empty(original.shape, dtype=np.uint8)
    result[..., :COLOR_CHANNELS] = np.clip(np.rint(mixed), 0, 255)
    result[..., COLOR_CHANNELS] = original[..., COLOR_CHANNELS]
    return result


def apply_kernel(pixels: np.ndarray, params: FilterParams) -> np.ndarray:
    """Evaluate the full kernel over an image at once.

    :param pixels: (H, W, 4) uint8 image
    :param params: Radius and blend
    :return: (H, W, 4) uint8 filtered image
    """
    if params.radius == 0:
        return np.array(pixels, dtype=np.uint8, copy=True)
    return blend_pixels(pixels, box_average(pixels, params.radius), params.blend)


# OpenCL C rendition of the same kernel. One work-item per pixel; the
# dispatch grid is rounded up to whole tiles, so every work-item checks its
# coordinate against the image size before touching memory.
KERNEL_SOURCE = r"""
typedef struct {
    uint radius;
    uint _pad0;
    float blend;
    float _pad1;
} Params;

__constant sampler_t nearest = CLK_NORMALIZED_COORDS_FALSE
                             | CLK_ADDRESS_CLAMP_TO_EDGE
                             | CLK_FILTER_NEAREST;

__kernel void denoise(read_only image2d_t src,
                      write_only image2d_t dst,
                      __constant Params *params)
{
    const int2 gid = (int2)(get_global_id(0), get_global_id(1));
    const int2 dims = get_image_dim(src);
    if (gid.x >= dims.x || gid.y >= dims.y) {
        return;
    }

    const float4 origin = read_imagef(src, nearest, gid);
    const int r = (int)params->radius;
    const int2 upper = dims - (int2)(1, 1);

    float3 sum = (float3)(0.0f);
    float count = 0.0f;
    for (int y = -r; y <= r; y++) {
        for (int x = -r; x <= r; x++) {
            const int2 coord = clamp(gid + (int2)(x, y), (int2)(0, 0), upper);
            sum += read_imagef(src, nearest, coord).xyz;
            count += 1.0f;
        }
    }

    const float3 blurred = sum / count;
    const float3 mixed = mix(origin.xyz, blurred, params->blend);
    write_imagef(dst, gid, (float4)(mixed, origin.w));
}
"""

KERNEL_NAME = "denoise"


__all__ = [
    "COLOR_CHANNELS",
    "clamped_indices",
    "horizontal_window_sum",
    "window_sum_rows",
    "box_average",
    "blend_pixels",
    "apply_kernel",
    "KERNEL_SOURCE",
    "KERNEL_NAME",
]
