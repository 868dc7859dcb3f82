"""Compute device abstraction.

A device offers exactly the capabilities the dispatcher needs:

- create a read-only RGBA8 surface and upload pixels into it
- create a write-only RGBA8 surface of the same size
- write the 16 byte parameter block into a buffer reused across runs
- run the kernel over a 2-D grid of tiles and signal completion
- copy a surface into host memory with a padded row pitch

Devices are explicit objects with an ``init()`` / ``release()`` lifecycle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

from ..readback import DEFAULT_ROW_ALIGNMENT

SurfaceAccess = Literal["read", "write"]


@dataclass
class DeviceSurface:
    """Device resident RGBA8 surface, normalized to [0, 1] on access.

    :param width: Width in pixels
    :param height: Height in pixels
    :param access: "read" for kernel input, "write" for kernel output
    :param handle: Device specific storage
    """

    width: int
    height: int
    access: SurfaceAccess
    handle: Any = field(default=None, repr=False)
    released: bool = False

    @property
    def shape(self) -> tuple[int, int]:
        """(width, height), the order devices expect for image regions"""
        return self.width, self.height


class Completion(ABC):
    """Handle for submitted work; :meth:`wait` blocks until it finished."""

    @abstractmethod
    def wait(self) -> None:
        """Block until the submitted work completed.

        Raises DeviceError if the work failed.
        """


class ComputeDevice(ABC):
    """Base class for devices able to run the denoising kernel."""

    name: str = "device"

    def __init__(self, row_alignment: int = DEFAULT_ROW_ALIGNMENT):
        self.row_alignment = row_alignment
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Acquire the device and build everything reused across runs.

        Raises DeviceUnavailableError if the device cannot be acquired.
        """
        if not self._initialized:
            self._acquire()
            self._initialized = True

    def release(self) -> None:
        """Free the device. Calling it on a released device is a no-op."""
        if self._initialized:
            self._initialized = False
            self._free()

    def __enter__(self) -> ComputeDevice:
        self.init()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @abstractmethod
    def _acquire(self) -> None:
        ...

    @abstractmethod
    def _free(self) -> None:
        ...

    @abstractmethod
    def create_input_surface(self, pixels: np.ndarray) -> DeviceSurface:
        """Create a read-only surface holding a copy of ``pixels`` ((H, W, 4) uint8)."""

    @abstractmethod
    def create_output_surface(self, width: int, height: int) -> DeviceSurface:
        """Create a write-only surface of the given size."""

    @abstractmethod
    def release_surface(self, surface: DeviceSurface) -> None:
        """Free a surface created by this device."""

    @abstractmethod
    def write_params(self, block: bytes) -> None:
        """Upload the parameter block into the shared parameter buffer."""

    @abstractmethod
    def submit(
        self,
        src: DeviceSurface,
        dst: DeviceSurface,
        global_size: tuple[int, int],
        tile_size: int,
    ) -> Completion:
        """Run one kernel instance per grid point of ``global_size``.

        :param src: Input surface
        :param dst: Output surface
        :param global_size: Grid size in work-items, a multiple of ``tile_size``
        :param tile_size: Edge length of the square work-group
        :return: The completion handle of this submission
        """

    @abstractmethod
    def read_surface(self, surface: DeviceSurface, bytes_per_row: int) -> bytes:
        """Copy ``surface`` into host memory.

        :param surface: The surface to read
        :param bytes_per_row: Padded row pitch, a multiple of :attr:`row_alignment`
        :return: ``bytes_per_row * surface.height`` bytes
        """

    def describe(self) -> str:
        """Human readable device description."""
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()!r})"


__all__ = [
    "SurfaceAccess",
    "DeviceSurface",
    "Completion",
    "ComputeDevice",
]
