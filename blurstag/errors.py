"""Exception classes for the denoising engine."""


class BlurstagError(Exception):
    """Base exception for all blurstag errors."""

    pass


class PreconditionError(BlurstagError):
    """Raised when a run cannot start at all."""

    pass


class NoImageLoadedError(PreconditionError):
    """Raised when a run is requested before an image was loaded."""

    pass


class DeviceUnavailableError(PreconditionError):
    """Raised when no compute device can be acquired."""

    pass


class DeviceError(BlurstagError):
    """Raised for submission, execution or mapping failures on a device.

    Always recovered by the orchestrator through the sequential path.
    """

    pass


class RunInProgressError(BlurstagError):
    """Raised when a run is requested while another one is in flight."""

    pass


class SequentialFilterError(BlurstagError):
    """Raised when the sequential path itself fails (out of memory)."""

    pass
