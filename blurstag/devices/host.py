"""Host CPU device: runs the denoising kernel with numpy on a thread pool.

Work is split the way a GPU dispatch splits it: the grid is rounded up to
whole tiles and each task handles one row of tiles. Work-items beyond the
image edge are masked out and write nothing. Surfaces mimic an RGBA8 unorm
texture: reads return float32 in [0, 1], writes are quantized to 8 bit.
"""

from __future__ import annotations

import logging
import os
import concurrent.futures
from concurrent.futures import Future, ThreadPoolExecutor

import numpy as np

from ..errors import DeviceError
from ..kernel import COLOR_CHANNELS, clamped_indices, horizontal_window_sum
from ..params import PARAMS_BLOCK_SIZE, FilterParams
from ..raster import BYTES_PER_PIXEL
from ..readback import DEFAULT_ROW_ALIGNMENT
from .base import Completion, ComputeDevice, DeviceSurface

logger = logging.getLogger(__name__)


def _to_unorm8(values: np.ndarray) -> np.ndarray:
    """Quantize normalized floats the way an RGBA8 unorm store does."""
    return np.rint(np.clip(values, 0.0, 1.0) * 255.0).astype(np.uint8)


class HostCompletion(Completion):
    """Completion of all tile-row tasks of one submission."""

    def __init__(self, futures: list[Future]):
        self._futures = futures

    def wait(self) -> None:
        # Let every task finish before reporting, surfaces are freed afterwards
        concurrent.futures.wait(self._futures)
        for future in self._futures:
            error = future.exception()
            if error is not None:
                raise DeviceError(f"Host kernel failed: {error}") from error


class HostDevice(ComputeDevice):
    """Executes the kernel on the CPU with one thread per tile row in flight.

    :param workers: Thread count, None = os.cpu_count()
    :param row_alignment: Readback row pitch granularity in bytes
    """

    name = "host"

    def __init__(self, workers: int | None = None, row_alignment: int = DEFAULT_ROW_ALIGNMENT):
        super().__init__(row_alignment=row_alignment)
        self.workers = workers or os.cpu_count() or 1
        self._executor: ThreadPoolExecutor | None = None
        self._params_buffer = bytearray(PARAMS_BLOCK_SIZE)

    def _acquire(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="blurstag-host"
        )
        logger.info(f"Host device ready with {self.workers} workers")

    def _free(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def describe(self) -> str:
        return f"host ({self.workers} threads)"

    def _check_surface(self, surface: DeviceSurface, access: str) -> None:
        if surface.released or surface.handle is None:
            raise DeviceError("Surface was already released")
        if surface.access != access:
            raise DeviceError(f"Expected a {access} surface, got {surface.access}")

    def create_input_surface(self, pixels: np.ndarray) -> DeviceSurface:
        height, width = pixels.shape[:2]
        texture = pixels.astype(np.float32) / np.float32(255.0)
        return DeviceSurface(width=width, height=height, access="read", handle=texture)

    def create_output_surface(self, width: int, height: int) -> DeviceSurface:
        storage = np.zeros((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
        return DeviceSurface(width=width, height=height, access="write", handle=storage)

    def release_surface(self, surface: DeviceSurface) -> None:
        surface.handle = None
        surface.released = True

    def write_params(self, block: bytes) -> None:
        if len(block) != PARAMS_BLOCK_SIZE:
            raise DeviceError(f"Parameter block must be {PARAMS_BLOCK_SIZE} bytes, got {len(block)}")
        self._params_buffer[:] = block

    def submit(
        self,
        src: DeviceSurface,
        dst: DeviceSurface,
        global_size: tuple[int, int],
        tile_size: int,
    ) -> Completion:
        if self._executor is None:
            raise DeviceError("Host device is not initialized")
        self._check_surface(src, "read")
        self._check_surface(dst, "write")
        global_width, global_height = global_size
        if global_width % tile_size or global_height % tile_size:
            raise DeviceError(f"Grid {global_size} is not a multiple of tile size {tile_size}")
        # The parameter buffer is read once per submission, like a uniform
        params = FilterParams.from_block(bytes(self._params_buffer))
        futures = [
            self._executor.submit(
                self._run_tile_row, src, dst, params, row, tile_size, global_width
            )
            for row in range(0, global_height, tile_size)
        ]
        return HostCompletion(futures)

    @staticmethod
    def _run_tile_row(
        src: DeviceSurface,
        dst: DeviceSurface,
        params: FilterParams,
        first_row: int,
        tile_size: int,
        global_width: int,
    ) -> None:
        """Evaluate all work-items of one row of tiles."""
        texture = src.handle
        height, width = src.height, src.width
        gy = np.arange(first_row, first_row + tile_size)
        gx = np.arange(global_width)
        # Bounds guard: work-items outside the image perform no write
        ys = gy[gy < height]
        xs = gx[gx < width]
        if ys.size == 0 or xs.size == 0:
            return

        radius = params.radius
        rgb = texture[:, :, :COLOR_CHANNELS]
        source_rows = clamped_indices(ys, radius, height)
        vertical = rgb[source_rows].sum(axis=1, dtype=np.float64)
        window = horizontal_window_sum(vertical, radius)[:, xs]
        count = float((2 * radius + 1) ** 2)
        blurred = window / count

        origin = texture[ys[0]:ys[-1] + 1, xs[0]:xs[-1] + 1]
        out = np.empty_like(origin)
        out[..., :COLOR_CHANNELS] = origin[..., :COLOR_CHANNELS] + (
            blurred - origin[..., :COLOR_CHANNELS]
        ) * np.float32(params.blend)
        out[..., COLOR_CHANNELS] = origin[..., COLOR_CHANNELS]
        dst.handle[ys[0]:ys[-1] + 1, xs[0]:xs[-1] + 1] = _to_unorm8(out)

    def read_surface(self, surface: DeviceSurface, bytes_per_row: int) -> bytes:
        self._check_surface(surface, "write")
        row_bytes = surface.width * BYTES_PER_PIXEL
        if bytes_per_row < row_bytes or bytes_per_row % self.row_alignment:
            raise DeviceError(
                f"bytes_per_row {bytes_per_row} must be >= {row_bytes} and a "
                f"multiple of {self.row_alignment}"
            )
        staging = np.zeros((surface.height, bytes_per_row), dtype=np.uint8)
        staging[:, :row_bytes] = surface.handle.reshape(surface.height, row_bytes)
        return staging.tobytes()


__all__ = ["HostDevice", "HostCompletion"]
