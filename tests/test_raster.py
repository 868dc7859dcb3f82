"""
Test the RGBA raster container and its file IO.
"""

import io

import numpy as np
import PIL.Image
import pytest

from blurstag import RasterImage


class TestConstruction:
    """Tests for creating raster images from arrays."""

    def test_rgba_is_copied_and_read_only(self):
        pixels = np.zeros((2, 3, 4), dtype=np.uint8)
        image = RasterImage(pixels)
        pixels[0, 0, 0] = 99
        assert image.pixels[0, 0, 0] == 0
        with pytest.raises(ValueError):
            image.pixels[0, 0, 0] = 1

    def test_rgb_gets_opaque_alpha(self):
        image = RasterImage(np.full((2, 2, 3), 7, dtype=np.uint8))
        assert image.pixels.shape == (2, 2, 4)
        assert np.all(image.alpha == 255)
        assert np.all(image.pixels[..., :3] == 7)

    def test_gray_is_broadcast(self):
        gray = np.array([[0, 128]], dtype=np.uint8)
        image = RasterImage(gray)
        assert image.pixels[0, 1].tolist() == [128, 128, 128, 255]

    def test_geometry(self):
        image = RasterImage(np.zeros((20, 100, 4), dtype=np.uint8))
        assert image.width == 100
        assert image.height == 20
        assert image.size == (100, 20)
        assert image.stride == 400

    @pytest.mark.parametrize("pixels", [
        np.zeros((0, 5, 4), dtype=np.uint8),
        np.zeros((5, 5, 2), dtype=np.uint8),
        np.zeros((5, 5, 4), dtype=np.float32),
        np.zeros((5,), dtype=np.uint8),
    ])
    def test_invalid_arrays(self, pixels):
        with pytest.raises(ValueError):
            RasterImage(pixels)

    def test_from_bytes(self):
        data = bytes(range(24))
        image = RasterImage.from_bytes(data, 3, 2)
        assert image.pixels[1, 0].tolist() == [12, 13, 14, 15]
        assert image.tobytes() == data

    def test_from_bytes_wrong_length(self):
        with pytest.raises(ValueError):
            RasterImage.from_bytes(bytes(10), 3, 2)

    def test_equality(self, small_image):
        assert small_image == RasterImage(small_image.pixels)
        assert small_image != RasterImage(np.zeros((5, 7, 4), dtype=np.uint8))
        assert small_image != "image"


class TestFileIO:
    """Tests for encoding and decoding."""

    def test_png_is_lossless(self, tmp_path, random_image):
        path = tmp_path / "image.png"
        random_image.save(path)
        assert RasterImage.load(path) == random_image

    def test_decode_bytes(self, random_image):
        data = random_image.encode("png")
        assert RasterImage.load(data) == random_image

    def test_jpeg_drops_alpha(self, random_image):
        decoded = RasterImage.decode(random_image.encode("jpg"))
        assert decoded.size == random_image.size
        assert np.all(decoded.alpha == 255)

    def test_from_pil(self):
        pil_image = PIL.Image.new("RGB", (4, 3), (10, 20, 30))
        image = RasterImage.load(pil_image)
        assert image.size == (4, 3)
        assert image.pixels[2, 3].tolist() == [10, 20, 30, 255]

    def test_to_pil(self, small_image):
        pil_image = small_image.to_pil()
        assert pil_image.mode == "RGBA"
        assert pil_image.size == small_image.size

    def test_load_passes_through_raster(self, small_image):
        assert RasterImage.load(small_image) is small_image

    def test_unknown_data(self):
        with pytest.raises(ValueError, match="Unsupported"):
            RasterImage.decode(b"definitely not an image")

    def test_unsupported_format(self, small_image):
        with pytest.raises(ValueError):
            small_image.encode("tiff")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            RasterImage.load(tmp_path / "missing.png")

    def test_save_without_extension_uses_png(self, tmp_path, small_image):
        path = tmp_path / "image"
        small_image.save(path)
        with PIL.Image.open(io.BytesIO(path.read_bytes())) as pil_image:
            assert pil_image.format == "PNG"
