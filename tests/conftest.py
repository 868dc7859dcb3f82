"""
Pytest fixtures for blurstag tests
"""

import numpy as np
import pytest

from blurstag import RasterImage, Settings
from blurstag.devices import HostDevice


@pytest.fixture
def random_image() -> RasterImage:
    """
    Returns a noisy 53x37 RGBA image with random alpha.

    Neither side is a multiple of the 8 pixel tile size.
    """
    rng = np.random.default_rng(1234)
    return RasterImage(rng.integers(0, 256, (37, 53, 4), dtype=np.uint8))


@pytest.fixture
def small_image() -> RasterImage:
    """Returns a 7x5 RGBA image small enough for per-pixel reference loops."""
    rng = np.random.default_rng(42)
    return RasterImage(rng.integers(0, 256, (5, 7, 4), dtype=np.uint8))


@pytest.fixture
def striped_image() -> RasterImage:
    """
    Returns a 100x6 image where every row has its own solid color.

    100 pixels are 400 bytes per row, which the device pads to 512.
    """
    pixels = np.zeros((6, 100, 4), dtype=np.uint8)
    for row in range(6):
        pixels[row, :, 0] = 40 * row + 10
        pixels[row, :, 1] = 255 - 40 * row
        pixels[row, :, 2] = (row * 97) % 256
        pixels[row, :, 3] = 255 - row
    return RasterImage(pixels)


@pytest.fixture
def host_device():
    """Initialized host device, released after the test."""
    device = HostDevice(workers=4)
    device.init()
    yield device
    device.release()


@pytest.fixture
def host_settings() -> Settings:
    """Settings pinned to the host device."""
    return Settings(DEVICE="host", HOST_WORKERS=2)
