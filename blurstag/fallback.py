"""Validation of the parallel result and the sequential safety net.

The detector is deliberately simple: an all-zero buffer means the device
produced nothing (for example after a lost context). A filtered image that
is genuinely black with zero alpha is indistinguishable from that and also
takes the sequential path.
"""

from __future__ import annotations

import logging

import numpy as np

from .kernel import blend_pixels, window_sum_rows
from .params import FilterParams
from .raster import RasterImage

logger = logging.getLogger(__name__)


def is_degenerate(buffer: np.ndarray | bytes) -> bool:
    """True if every byte of the buffer is zero.

    :param buffer: Packed readback, as array or bytes
    """
    data = np.frombuffer(buffer, dtype=np.uint8) if isinstance(buffer, (bytes, bytearray)) else buffer
    return not np.any(data)


def sequential_filter(image: RasterImage, params: FilterParams) -> RasterImage:
    """Recompute the filter on the host, one output row at a time.

    Reads only the original image and uses the same window and blend math
    as the device kernel. Rows are produced top to bottom on the calling
    thread.

    :param image: The original source image
    :param params: Radius and blend
    :return: The filtered image
    """
    pixels = image.pixels
    if params.is_identity:
        return RasterImage(pixels)

    window_area = float(params.window_size ** 2)
    out = np.empty_like(pixels)
    for y in range(image.height):
        sums = window_sum_rows(pixels, [y], params.radius)[0]
        out[y] = blend_pixels(pixels[y], sums / window_area, params.blend)
    logger.debug(f"Sequential filter finished {image.width}x{image.height} r={params.radius}")
    return RasterImage(out)


__all__ = ["is_degenerate", "sequential_filter"]
