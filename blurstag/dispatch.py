"""Parallel execution path: upload, dispatch, wait, read back."""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Callable, NamedTuple

import numpy as np

from .devices.base import ComputeDevice, DeviceSurface
from .errors import DeviceError
from .params import FilterParams
from .raster import RasterImage
from .readback import read_back

logger = logging.getLogger(__name__)

DEFAULT_TILE_SIZE = 8


class TileGrid(NamedTuple):
    """Dispatch geometry for an image."""
    tiles_x: int
    tiles_y: int
    tile_size: int

    @property
    def global_size(self) -> tuple[int, int]:
        """Work-items along x and y, may overshoot the image size"""
        return self.tiles_x * self.tile_size, self.tiles_y * self.tile_size


def tile_grid(width: int, height: int, tile_size: int = DEFAULT_TILE_SIZE) -> TileGrid:
    """Number of square tiles covering a ``width`` x ``height`` domain.

    >>> tile_grid(100, 20).global_size
    (104, 24)
    """
    if tile_size <= 0:
        raise ValueError(f"tile_size must be positive, got {tile_size}")
    return TileGrid(math.ceil(width / tile_size), math.ceil(height / tile_size), tile_size)


class ComputeDispatcher:
    """Runs the kernel over every pixel of an image on a compute device.

    The dispatcher never interprets the result; it only reports device
    failures as :class:`DeviceError`.

    :param device: An initialized device
    :param tile_size: Work-group edge length
    """

    def __init__(self, device: ComputeDevice, tile_size: int = DEFAULT_TILE_SIZE):
        self.device = device
        self.tile_size = tile_size

    def run(
        self,
        image: RasterImage,
        params: FilterParams,
        on_stage: Callable[[str], None] | None = None,
    ) -> np.ndarray:
        """Filter ``image`` on the device.

        :param image: Source image, only read
        :param params: Radius and blend
        :param on_stage: Called with "uploading", "dispatching" and
            "reading_back" as the run progresses
        :return: Packed (H, W, 4) uint8 array as read back from the device
        """
        notify = on_stage or (lambda stage: None)
        device = self.device
        if not device.initialized:
            raise DeviceError(f"{device.describe()} is not initialized")

        surfaces: list[DeviceSurface] = []
        try:
            notify("uploading")
            with _device_step(device, "upload"):
                src = device.create_input_surface(image.pixels)
                surfaces.append(src)
                dst = device.create_output_surface(image.width, image.height)
                surfaces.append(dst)
                device.write_params(params.to_block())

            notify("dispatching")
            grid = tile_grid(image.width, image.height, self.tile_size)
            logger.debug(
                f"Dispatching {grid.tiles_x}x{grid.tiles_y} tiles of "
                f"{grid.tile_size}x{grid.tile_size} on {device.describe()}"
            )
            with _device_step(device, "dispatch"):
                completion = device.submit(src, dst, grid.global_size, grid.tile_size)
                completion.wait()

            notify("reading_back")
            with _device_step(device, "readback"):
                return read_back(device, dst)
        finally:
            for surface in surfaces:
                device.release_surface(surface)


@contextmanager
def _device_step(device: ComputeDevice, step: str):
    """Report any failure inside a device step as :class:`DeviceError`.

    Covers allocation failures (MemoryError) and malformed readbacks
    (ValueError) next to the device's own errors.
    """
    try:
        yield
    except DeviceError:
        raise
    except Exception as e:
        raise DeviceError(f"{step} failed on {device.describe()}: {e!r}") from e


__all__ = ["ComputeDispatcher", "TileGrid", "tile_grid", "DEFAULT_TILE_SIZE"]
