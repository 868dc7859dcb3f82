"""OpenCL device backed by pyopencl.

Surfaces are ``image2d_t`` objects in RGBA / UNORM_INT8 format, so the kernel
reads and writes normalized floats. The program and the parameter buffer are
built once in :meth:`OpenCLDevice.init` and reused by every run.
"""

from __future__ import annotations

import logging

import numpy as np

from ..errors import DeviceError, DeviceUnavailableError
from ..kernel import KERNEL_NAME, KERNEL_SOURCE
from ..params import PARAMS_BLOCK_SIZE
from ..readback import DEFAULT_ROW_ALIGNMENT
from .base import Completion, ComputeDevice, DeviceSurface

try:
    import pyopencl as cl
    HAS_OPENCL = True
except ImportError:
    HAS_OPENCL = False

logger = logging.getLogger(__name__)


def opencl_available() -> bool:
    """True if pyopencl is installed and at least one platform exposes a device."""
    if not HAS_OPENCL:
        return False
    try:
        return any(platform.get_devices() for platform in cl.get_platforms())
    except cl.Error:
        return False


class OpenCLCompletion(Completion):
    """Wraps the event of one kernel enqueue."""

    def __init__(self, event):
        self._event = event

    def wait(self) -> None:
        try:
            self._event.wait()
        except cl.Error as e:
            raise DeviceError(f"OpenCL kernel failed: {e}") from e


class OpenCLDevice(ComputeDevice):
    """Runs the kernel on an OpenCL device with image support.

    :param platform_index: Index into ``pyopencl.get_platforms()``
    :param device_index: Index into the platform's devices
    :param row_alignment: Readback row pitch granularity in bytes
    """

    name = "opencl"

    def __init__(
        self,
        platform_index: int = 0,
        device_index: int = 0,
        row_alignment: int = DEFAULT_ROW_ALIGNMENT,
    ):
        super().__init__(row_alignment=row_alignment)
        self.platform_index = platform_index
        self.device_index = device_index
        self._device = None
        self._context = None
        self._queue = None
        self._kernel = None
        self._params_buffer = None
        self._image_format = None

    def _acquire(self) -> None:
        if not HAS_OPENCL:
            raise DeviceUnavailableError("pyopencl is not installed")
        try:
            platform = cl.get_platforms()[self.platform_index]
            device = platform.get_devices()[self.device_index]
        except IndexError as e:
            raise DeviceUnavailableError(
                f"No OpenCL device {self.platform_index}:{self.device_index}"
            ) from e
        except cl.Error as e:
            raise DeviceUnavailableError(f"OpenCL platform query failed: {e}") from e
        if not device.image_support:
            raise DeviceUnavailableError(f"OpenCL device {device.name} lacks image support")

        try:
            context = cl.Context([device])
            queue = cl.CommandQueue(context)
            program = cl.Program(context, KERNEL_SOURCE).build()
            kernel = cl.Kernel(program, KERNEL_NAME)
            params_buffer = cl.Buffer(context, cl.mem_flags.READ_ONLY, size=PARAMS_BLOCK_SIZE)
        except cl.Error as e:
            raise DeviceUnavailableError(f"OpenCL setup failed on {device.name}: {e}") from e

        self._device = device
        self._context = context
        self._queue = queue
        self._kernel = kernel
        self._params_buffer = params_buffer
        self._image_format = cl.ImageFormat(cl.channel_order.RGBA, cl.channel_type.UNORM_INT8)
        logger.info(f"OpenCL device ready: {self.describe()}")

    def _free(self) -> None:
        if self._queue is not None:
            self._queue.finish()
        if self._params_buffer is not None:
            self._params_buffer.release()
        self._device = None
        self._context = None
        self._queue = None
        self._kernel = None
        self._params_buffer = None

    def describe(self) -> str:
        if self._device is None:
            return f"opencl {self.platform_index}:{self.device_index}"
        return f"{self._device.name.strip()} ({self._device.platform.name.strip()})"

    def _require_context(self) -> None:
        if self._context is None:
            raise DeviceError("OpenCL device is not initialized")

    def create_input_surface(self, pixels: np.ndarray) -> DeviceSurface:
        self._require_context()
        height, width = pixels.shape[:2]
        try:
            image = cl.Image(
                self._context,
                cl.mem_flags.READ_ONLY | cl.mem_flags.COPY_HOST_PTR,
                self._image_format,
                shape=(width, height),
                hostbuf=np.ascontiguousarray(pixels, dtype=np.uint8),
            )
        except cl.Error as e:
            raise DeviceError(f"Input surface upload failed: {e}") from e
        return DeviceSurface(width=width, height=height, access="read", handle=image)

    def create_output_surface(self, width: int, height: int) -> DeviceSurface:
        self._require_context()
        try:
            image = cl.Image(
                self._context,
                cl.mem_flags.WRITE_ONLY,
                self._image_format,
                shape=(width, height),
            )
        except cl.Error as e:
            raise DeviceError(f"Output surface allocation failed: {e}") from e
        return DeviceSurface(width=width, height=height, access="write", handle=image)

    def release_surface(self, surface: DeviceSurface) -> None:
        if surface.handle is not None:
            surface.handle.release()
        surface.handle = None
        surface.released = True

    def write_params(self, block: bytes) -> None:
        self._require_context()
        try:
            cl.enqueue_copy(self._queue, self._params_buffer, np.frombuffer(block, dtype=np.uint8))
        except cl.Error as e:
            raise DeviceError(f"Parameter upload failed: {e}") from e

    def submit(
        self,
        src: DeviceSurface,
        dst: DeviceSurface,
        global_size: tuple[int, int],
        tile_size: int,
    ) -> Completion:
        self._require_context()
        try:
            event = self._kernel(
                self._queue,
                global_size,
                (tile_size, tile_size),
                src.handle,
                dst.handle,
                self._params_buffer,
            )
        except cl.Error as e:
            raise DeviceError(f"Kernel submission failed: {e}") from e
        return OpenCLCompletion(event)

    def read_surface(self, surface: DeviceSurface, bytes_per_row: int) -> bytes:
        self._require_context()
        staging = np.zeros(bytes_per_row * surface.height, dtype=np.uint8)
        try:
            cl.enqueue_copy(
                self._queue,
                staging,
                surface.handle,
                origin=(0, 0),
                region=surface.shape,
                pitches=(bytes_per_row,),
            ).wait()
        except cl.Error as e:
            raise DeviceError(f"Surface readback failed: {e}") from e
        return staging.tobytes()


__all__ = ["OpenCLDevice", "OpenCLCompletion", "HAS_OPENCL", "opencl_available"]
