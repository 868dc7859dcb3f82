"""Compute devices able to run the denoising kernel.

Usage:
    from blurstag.devices import create_device

    with create_device() as device:
        ...
"""

from __future__ import annotations

import logging

from ..config import Settings, settings as default_settings
from ..errors import DeviceUnavailableError
from .base import Completion, ComputeDevice, DeviceSurface
from .host import HostDevice
from .opencl import HAS_OPENCL, OpenCLDevice, opencl_available

logger = logging.getLogger(__name__)

DEVICE_KINDS = ("auto", "opencl", "host")


def create_device(kind: str | None = None, settings: Settings | None = None) -> ComputeDevice:
    """Construct (but do not initialize) a compute device.

    :param kind: "opencl", "host" or "auto" (OpenCL if usable, else host).
        Defaults to ``settings.DEVICE``.
    :param settings: Settings to read alignment, worker and index options from
    :return: The device, call ``init()`` or use it as a context manager
    """
    settings = settings or default_settings
    kind = (kind or settings.DEVICE).lower()
    if kind not in DEVICE_KINDS:
        raise ValueError(f"Unknown device kind {kind!r}, expected one of {DEVICE_KINDS}")

    if kind == "auto":
        kind = "opencl" if opencl_available() else "host"
        logger.info(f"Auto-selected {kind} device")

    if kind == "opencl":
        if not HAS_OPENCL:
            raise DeviceUnavailableError("pyopencl is not installed (pip install blurstag[opencl])")
        return OpenCLDevice(
            platform_index=settings.OPENCL_PLATFORM,
            device_index=settings.OPENCL_DEVICE,
            row_alignment=settings.ROW_ALIGNMENT,
        )
    return HostDevice(workers=settings.HOST_WORKERS, row_alignment=settings.ROW_ALIGNMENT)


__all__ = [
    "Completion",
    "ComputeDevice",
    "DeviceSurface",
    "HostDevice",
    "OpenCLDevice",
    "HAS_OPENCL",
    "DEVICE_KINDS",
    "opencl_available",
    "create_device",
]
