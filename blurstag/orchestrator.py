"""Run orchestration for the denoising engine.

One run moves through::

    IDLE -> UPLOADING -> DISPATCHING -> READING_BACK -> VALIDATING
         -> DONE
         -> FALLING_BACK -> DONE

Preconditions (no image, no device) are checked before UPLOADING and raise a
:class:`~blurstag.errors.PreconditionError`. Device failures and an empty
device result are recovered by the sequential filter, so a well-formed run
always ends in DONE with an image.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .config import Settings, settings as default_settings
from .devices import ComputeDevice, create_device
from .dispatch import ComputeDispatcher
from .errors import (
    DeviceError,
    DeviceUnavailableError,
    NoImageLoadedError,
    RunInProgressError,
    SequentialFilterError,
)
from .fallback import is_degenerate, sequential_filter
from .params import FilterParams
from .raster import RasterImage, RasterSourceTypes

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Stages of a single filter run."""

    IDLE = "idle"
    UPLOADING = "uploading"
    DISPATCHING = "dispatching"
    READING_BACK = "reading_back"
    VALIDATING = "validating"
    FALLING_BACK = "falling_back"
    DONE = "done"


class ExecutionPath(str, Enum):
    """Which implementation produced a result."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class FallbackReason(str, Enum):
    """Why the sequential path was taken."""

    DEVICE_ERROR = "device_error"
    EMPTY_OUTPUT = "empty_output"


STATUS_MESSAGES = {
    RunState.IDLE: "Ready. Load an image to begin analysis.",
    RunState.UPLOADING: "Uploading image to {device}...",
    RunState.DISPATCHING: "Processing robustness filter...",
    RunState.READING_BACK: "Reading back filtered image...",
    RunState.VALIDATING: "Validating device output...",
    RunState.FALLING_BACK: "Device output unusable; applying host fallback...",
    RunState.DONE: "Done. Review filtered output for watermark persistence.",
}

StatusCallback = Callable[[RunState, str, bool], None]
"Receives (state, message, is_error) for every transition"


@dataclass
class RunReport:
    """Outcome of one run.

    :param image: The filtered image, same size as the source
    :param params: Parameters the run used
    :param path: Parallel or sequential
    :param fallback_reason: Set when the sequential path produced the image
    :param warnings: Soft warnings, the image is still valid
    :param elapsed_ms: Wall time of the whole run
    """
    image: RasterImage
    params: FilterParams
    path: ExecutionPath
    fallback_reason: FallbackReason | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def used_fallback(self) -> bool:
        return self.path is ExecutionPath.SEQUENTIAL


class DenoiseOrchestrator:
    """Owns the device context and runs one filter request at a time.

    Example::

        with DenoiseOrchestrator() as engine:
            engine.load_image("watermarked.png")
            report = engine.run(radius=4, blend=0.8)
            report.image.save("filtered.png")

    :param device: Device to use, created from ``settings`` if omitted
    :param settings: Engine settings
    :param on_status: Status callback, see :data:`StatusCallback`
    """

    def __init__(
        self,
        device: ComputeDevice | None = None,
        settings: Settings | None = None,
        on_status: StatusCallback | None = None,
    ):
        self.settings = settings or default_settings
        self._device = device
        self.on_status = on_status
        self.image: RasterImage | None = None
        self.last_result: RunReport | None = None
        self._state = RunState.IDLE
        self._run_lock = threading.Lock()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def device(self) -> ComputeDevice | None:
        return self._device

    @property
    def busy(self) -> bool:
        return self._run_lock.locked()

    def open(self) -> ComputeDevice:
        """Create and initialize the device if that did not happen yet.

        Raises DeviceUnavailableError if no device can be acquired.
        """
        if self._device is None:
            self._device = create_device(settings=self.settings)
        self._device.init()
        return self._device

    def close(self) -> None:
        """Release the device. A later run initializes it again.

        Raises RunInProgressError while a run is using the device.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("Cannot close the device while a run is in progress")
        try:
            if self._device is not None:
                self._device.release()
        finally:
            self._run_lock.release()

    def __enter__(self) -> DenoiseOrchestrator:
        try:
            self.open()
        except DeviceUnavailableError as e:
            # Surfaced again as a precondition failure on the first run
            logger.warning(f"Compute device unavailable: {e}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def load_image(self, source: RasterSourceTypes | RasterImage) -> RasterImage:
        """Set the image subsequent runs filter.

        Raises ValueError if the image could not be loaded.
        """
        self.image = RasterImage.load(source)
        logger.info(f"Image loaded: {self.image.width}x{self.image.height}")
        self._report(
            RunState.IDLE, "Image loaded. Adjust radius/blend then run the robustness test."
        )
        return self.image

    def _report(self, state: RunState, message: str | None = None, is_error: bool = False) -> None:
        self._state = state
        if message is None:
            device = self._device.describe() if self._device is not None else "device"
            message = STATUS_MESSAGES[state].format(device=device)
        if self.on_status is not None:
            self.on_status(state, message, is_error)

    def run(
        self,
        radius: int | None = None,
        blend: float | None = None,
        image: RasterImage | None = None,
    ) -> RunReport:
        """Filter the loaded (or given) image.

        :param radius: Window half-width, defaults to ``settings.DEFAULT_RADIUS``
        :param blend: Blend factor, defaults to ``settings.DEFAULT_BLEND``
        :param image: Image to filter instead of the loaded one
        :return: The run report, also stored as :attr:`last_result`
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError(f"A run is already in progress ({self._state.value})")
        try:
            params = FilterParams(
                radius=self.settings.DEFAULT_RADIUS if radius is None else radius,
                blend=self.settings.DEFAULT_BLEND if blend is None else blend,
            )
            report = self._run(params, image if image is not None else self.image)
            self.last_result = report
            return report
        finally:
            # DONE was reported through the callback, the engine is ready again
            self._state = RunState.IDLE
            self._run_lock.release()

    def _check_preconditions(self, image: RasterImage | None) -> ComputeDevice:
        if image is None:
            self._report(RunState.IDLE, "No image loaded.", is_error=True)
            raise NoImageLoadedError("Load an image before running the filter")
        try:
            return self.open()
        except DeviceUnavailableError as e:
            self._report(RunState.IDLE, f"Compute device not available: {e}", is_error=True)
            raise

    def _run(self, params: FilterParams, image: RasterImage | None) -> RunReport:
        device = self._check_preconditions(image)
        started = time.perf_counter()
        stages = {
            "uploading": RunState.UPLOADING,
            "dispatching": RunState.DISPATCHING,
            "reading_back": RunState.READING_BACK,
        }

        reason: FallbackReason | None = None
        warnings: list[str] = []
        dispatcher = ComputeDispatcher(device, tile_size=self.settings.TILE_SIZE)
        try:
            output = dispatcher.run(image, params, on_stage=lambda stage: self._report(stages[stage]))
        except DeviceError as e:
            logger.warning(f"Parallel path failed on {device.describe()}: {e}")
            reason = FallbackReason.DEVICE_ERROR
        else:
            self._report(RunState.VALIDATING)
            if is_degenerate(output):
                logger.warning("Device output was empty; falling back to host filter")
                reason = FallbackReason.EMPTY_OUTPUT
                warnings.append(
                    "Device output was empty; the host fallback was applied. "
                    "A fully transparent black result cannot be told apart from a failure."
                )

        if reason is None:
            result = RasterImage(output)
            path = ExecutionPath.PARALLEL
        else:
            self._report(RunState.FALLING_BACK, is_error=reason is FallbackReason.EMPTY_OUTPUT)
            try:
                result = sequential_filter(image, params)
            except MemoryError as e:
                self._report(RunState.IDLE, "Host fallback ran out of memory.", is_error=True)
                raise SequentialFilterError("Sequential filter ran out of memory") from e
            path = ExecutionPath.SEQUENTIAL

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(
            f"Run finished via {path.value} path in {elapsed_ms:.1f}ms "
            f"(radius={params.radius}, blend={params.blend:.2f})"
        )
        message = STATUS_MESSAGES[RunState.DONE]
        if reason is FallbackReason.EMPTY_OUTPUT:
            message = "Device output empty; host fallback applied for analysis."
        self._report(RunState.DONE, message, is_error=reason is FallbackReason.EMPTY_OUTPUT)
        return RunReport(
            image=result,
            params=params,
            path=path,
            fallback_reason=reason,
            warnings=warnings,
            elapsed_ms=elapsed_ms,
        )


__all__ = [
    "RunState",
    "ExecutionPath",
    "FallbackReason",
    "RunReport",
    "DenoiseOrchestrator",
    "StatusCallback",
    "STATUS_MESSAGES",
]
