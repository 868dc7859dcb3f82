"""Engine configuration."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings, overridable through ``BLURSTAG_*`` environment variables."""

    # Device selection
    DEVICE: Literal["auto", "opencl", "host"] = "auto"
    OPENCL_PLATFORM: int = 0  # Index into pyopencl.get_platforms()
    OPENCL_DEVICE: int = 0  # Index into platform.get_devices()
    HOST_WORKERS: int | None = None  # None = os.cpu_count()

    # Dispatch geometry
    TILE_SIZE: int = 8  # Work-group edge length in pixels
    ROW_ALIGNMENT: int = 256  # Readback bytes-per-row granularity

    # Filter defaults
    DEFAULT_RADIUS: int = 3
    DEFAULT_BLEND: float = 0.6
    MAX_RADIUS: int = 50

    # Max per-channel difference between parallel and sequential output (0-1)
    PARITY_TOLERANCE: float = 1.0 / 255.0

    model_config = {"env_prefix": "BLURSTAG_"}


settings = Settings()
