"""
Test settings loading and device selection.
"""

import pytest
from pydantic import ValidationError

from blurstag import DeviceUnavailableError, HostDevice, OpenCLDevice, Settings
from blurstag.devices import create_device


class TestSettings:
    """Tests for environment driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("DEVICE", "TILE_SIZE", "ROW_ALIGNMENT", "DEFAULT_RADIUS", "DEFAULT_BLEND"):
            monkeypatch.delenv(f"BLURSTAG_{name}", raising=False)
        settings = Settings()
        assert settings.DEVICE == "auto"
        assert settings.TILE_SIZE == 8
        assert settings.ROW_ALIGNMENT == 256
        assert settings.DEFAULT_RADIUS == 3
        assert settings.DEFAULT_BLEND == pytest.approx(0.6)
        assert settings.PARITY_TOLERANCE == pytest.approx(1 / 255)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BLURSTAG_DEVICE", "host")
        monkeypatch.setenv("BLURSTAG_HOST_WORKERS", "3")
        monkeypatch.setenv("BLURSTAG_ROW_ALIGNMENT", "512")
        settings = Settings()
        assert settings.DEVICE == "host"
        assert settings.HOST_WORKERS == 3
        assert settings.ROW_ALIGNMENT == 512

    def test_invalid_device_kind(self, monkeypatch):
        monkeypatch.setenv("BLURSTAG_DEVICE", "vulkan")
        with pytest.raises(ValidationError):
            Settings()


class TestCreateDevice:
    """Tests for device construction."""

    def test_host_from_settings(self):
        device = create_device(settings=Settings(DEVICE="host", HOST_WORKERS=3, ROW_ALIGNMENT=512))
        assert isinstance(device, HostDevice)
        assert device.workers == 3
        assert device.row_alignment == 512
        assert not device.initialized

    def test_explicit_kind_wins(self):
        device = create_device("host", settings=Settings(DEVICE="opencl"))
        assert isinstance(device, HostDevice)

    def test_kind_is_case_insensitive(self):
        assert isinstance(create_device("HOST", settings=Settings()), HostDevice)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_device("metal", settings=Settings())

    def test_auto_without_opencl_uses_host(self, monkeypatch):
        monkeypatch.setattr("blurstag.devices.opencl_available", lambda: False)
        device = create_device("auto", settings=Settings())
        assert isinstance(device, HostDevice)

    def test_auto_with_opencl(self, monkeypatch):
        monkeypatch.setattr("blurstag.devices.opencl_available", lambda: True)
        monkeypatch.setattr("blurstag.devices.HAS_OPENCL", True)
        device = create_device("auto", settings=Settings(OPENCL_PLATFORM=1, OPENCL_DEVICE=2))
        assert isinstance(device, OpenCLDevice)
        assert device.platform_index == 1
        assert device.device_index == 2
        assert not device.initialized

    def test_opencl_without_pyopencl(self, monkeypatch):
        monkeypatch.setattr("blurstag.devices.HAS_OPENCL", False)
        with pytest.raises(DeviceUnavailableError):
            create_device("opencl", settings=Settings())

    def test_opencl_init_without_pyopencl(self, monkeypatch):
        monkeypatch.setattr("blurstag.devices.opencl.HAS_OPENCL", False)
        device = OpenCLDevice()
        with pytest.raises(DeviceUnavailableError):
            device.init()
        assert not device.initialized
