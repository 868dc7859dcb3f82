"""
blurstag - box-blur denoiser for testing whether watermarks survive blurring,
with a parallel compute path and a sequential host fallback
"""

from .config import Settings, settings
from .errors import (
    BlurstagError,
    PreconditionError,
    NoImageLoadedError,
    DeviceUnavailableError,
    DeviceError,
    RunInProgressError,
    SequentialFilterError,
)
from .params import FilterParams
from .raster import RasterImage
from .kernel import apply_kernel, box_average
from .devices import ComputeDevice, HostDevice, OpenCLDevice, create_device
from .dispatch import ComputeDispatcher, tile_grid
from .readback import padded_row_stride, strip_row_padding
from .fallback import is_degenerate, sequential_filter
from .orchestrator import (
    DenoiseOrchestrator,
    RunState,
    RunReport,
    ExecutionPath,
    FallbackReason,
)

__all__ = [
    # Configuration
    "Settings",
    "settings",
    # Errors
    "BlurstagError",
    "PreconditionError",
    "NoImageLoadedError",
    "DeviceUnavailableError",
    "DeviceError",
    "RunInProgressError",
    "SequentialFilterError",
    # Data
    "FilterParams",
    "RasterImage",
    # Kernel
    "apply_kernel",
    "box_average",
    # Devices
    "ComputeDevice",
    "HostDevice",
    "OpenCLDevice",
    "create_device",
    # Pipeline
    "ComputeDispatcher",
    "tile_grid",
    "padded_row_stride",
    "strip_row_padding",
    "is_degenerate",
    "sequential_filter",
    "DenoiseOrchestrator",
    "RunState",
    "RunReport",
    "ExecutionPath",
    "FallbackReason",
]

__version__ = "0.1.0"
