"""Readback of device output into a tightly packed RGBA8 buffer.

Devices copy surfaces into host memory with a row pitch rounded up to their
alignment granularity (commonly 256 bytes). A 100 pixel wide image therefore
arrives as 512 byte rows of which only the first 400 bytes are pixels. The
functions here undo that padding; they never touch pixel values.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from .raster import BYTES_PER_PIXEL

if TYPE_CHECKING:
    from .devices.base import ComputeDevice, DeviceSurface

logger = logging.getLogger(__name__)

DEFAULT_ROW_ALIGNMENT = 256


def padded_row_stride(
    width: int,
    alignment: int = DEFAULT_ROW_ALIGNMENT,
    bytes_per_pixel: int = BYTES_PER_PIXEL,
) -> int:
    """Bytes per row rounded up to a multiple of ``alignment``.

    >>> padded_row_stride(100)
    512
    >>> padded_row_stride(64)
    256
    """
    if alignment <= 0:
        raise ValueError(f"alignment must be positive, got {alignment}")
    unpadded = width * bytes_per_pixel
    return -(-unpadded // alignment) * alignment


def strip_row_padding(
    raw: bytes | bytearray | memoryview | np.ndarray,
    width: int,
    height: int,
    stride: int,
) -> np.ndarray:
    """Copy the first ``width * 4`` bytes of every padded row.

    :param raw: At least ``stride * height`` bytes as read from the device
    :param width: Image width in pixels
    :param height: Image height in pixels
    :param stride: Padded bytes per row
    :return: Packed (H, W, 4) uint8 array
    """
    row_bytes = width * BYTES_PER_PIXEL
    if stride < row_bytes:
        raise ValueError(f"Row stride {stride} is smaller than the row size {row_bytes}")
    data = np.frombuffer(raw, dtype=np.uint8) if not isinstance(raw, np.ndarray) else raw.reshape(-1)
    if data.size < stride * height:
        raise ValueError(
            f"Readback holds {data.size} bytes, expected {stride * height} "
            f"({height} rows of {stride})"
        )
    rows = data[:stride * height].reshape(height, stride)
    packed = np.ascontiguousarray(rows[:, :row_bytes])
    return packed.reshape(height, width, BYTES_PER_PIXEL)


def read_back(device: ComputeDevice, surface: DeviceSurface) -> np.ndarray:
    """Transfer an output surface into host memory and remove the row padding.

    :param device: The device owning ``surface``
    :param surface: The output surface to read
    :return: Packed (H, W, 4) uint8 array
    """
    stride = padded_row_stride(surface.width, device.row_alignment)
    logger.debug(
        f"Readback {surface.width}x{surface.height}: "
        f"{stride} bytes per row ({stride - surface.width * BYTES_PER_PIXEL} padding)"
    )
    raw = device.read_surface(surface, stride)
    return strip_row_padding(raw, surface.width, surface.height, stride)


__all__ = [
    "DEFAULT_ROW_ALIGNMENT",
    "padded_row_stride",
    "strip_row_padding",
    "read_back",
]
