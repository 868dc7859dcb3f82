"""
Implements :class:`.RasterImage`, the immutable RGBA8 pixel buffer which is
handed into the denoising engine and returned from it.
"""

from __future__ import annotations

import io
import os
from typing import Union

import PIL.Image
import filetype
import numpy as np

SUPPORTED_IMAGE_FILETYPES = ["png", "bmp", "jpg", "jpeg", "gif", "webp"]
"List of image file types which can be read and written"

SUPPORTED_IMAGE_FILETYPE_SET = set(SUPPORTED_IMAGE_FILETYPES)

BYTES_PER_PIXEL = 4
"RGBA8: one byte per channel"

RasterSourceTypes = Union[str, os.PathLike, bytes, np.ndarray, PIL.Image.Image]
"The valid source types for :meth:`RasterImage.load`"


def _to_rgba(pixels: np.ndarray) -> np.ndarray:
    """
    Promotes a gray, RGB or RGBA uint8 array to a contiguous (H, W, 4) array.

    Missing alpha becomes fully opaque.
    """
    if pixels.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
    if pixels.ndim == 2:
        pixels = pixels[:, :, np.newaxis]
    if pixels.ndim != 3 or pixels.shape[2] not in (1, 3, 4):
        raise ValueError(f"Expected image (H, W, 1|3|4), got shape {pixels.shape}")
    channels = pixels.shape[2]
    if channels == 4:
        return np.ascontiguousarray(pixels)
    height, width = pixels.shape[:2]
    rgba = np.empty((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
    rgba[:, :, :3] = pixels
    rgba[:, :, 3] = 255
    return rgba


class RasterImage:
    """
    Tightly packed, row-major RGBA8 image.

    The pixel array is copied on construction and marked read-only, so an
    instance can be shared between the parallel and the sequential path
    without either of them modifying the source.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray):
        """
        :param pixels: uint8 array of shape (H, W), (H, W, 1), (H, W, 3) or
            (H, W, 4). Gray and RGB input is promoted to opaque RGBA.

        Raises a ValueError for empty images or unsupported layouts.
        """
        rgba = _to_rgba(np.asarray(pixels))
        if rgba.shape[0] == 0 or rgba.shape[1] == 0:
            raise ValueError(f"Image must not be empty, got shape {rgba.shape}")
        rgba = rgba.copy()
        rgba.flags.writeable = False
        self._pixels = rgba

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) in pixels"""
        return self.width, self.height

    @property
    def stride(self) -> int:
        """Bytes per row, always ``width * 4``"""
        return self.width * BYTES_PER_PIXEL

    @property
    def pixels(self) -> np.ndarray:
        """The read-only (H, W, 4) uint8 pixel array"""
        return self._pixels

    @property
    def alpha(self) -> np.ndarray:
        return self._pixels[:, :, 3]

    def tobytes(self) -> bytes:
        """Returns the packed RGBA8 buffer (``width * height * 4`` bytes)."""
        return self._pixels.tobytes()

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int) -> RasterImage:
        """
        Wraps a tightly packed RGBA8 buffer.

        :param data: ``width * height * 4`` bytes
        :param width: Width in pixels
        :param height: Height in pixels
        """
        expected = width * height * BYTES_PER_PIXEL
        if len(data) != expected:
            raise ValueError(
                f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}"
            )
        pixels = np.frombuffer(data, dtype=np.uint8).reshape((height, width, BYTES_PER_PIXEL))
        return cls(pixels)

    @classmethod
    def from_pil(cls, image: PIL.Image.Image) -> RasterImage:
        """Converts a PIL image of any mode to RGBA."""
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(np.asarray(image))

    @classmethod
    def decode(cls, data: bytes) -> RasterImage:
        """
        Decodes a compressed image (PNG, JPEG, BMP, GIF, WebP).

        :param data: The compressed file data
        """
        kind = filetype.guess(data)
        if kind is None or kind.extension not in SUPPORTED_IMAGE_FILETYPE_SET:
            detected = kind.mime if kind is not None else "unknown"
            raise ValueError(f"Unsupported image data ({detected})")
        with PIL.Image.open(io.BytesIO(data)) as pil_image:
            return cls.from_pil(pil_image)

    @classmethod
    def load(cls, source: RasterSourceTypes) -> RasterImage:
        """
        Loads an image from a file name, compressed bytes, a numpy array or a
        PIL image.

        Raises a ValueError if the image could not be loaded.
        """
        if isinstance(source, RasterImage):
            return source
        if isinstance(source, np.ndarray):
            return cls(source)
        if isinstance(source, PIL.Image.Image):
            return cls.from_pil(source)
        if isinstance(source, (bytes, bytearray)):
            return cls.decode(bytes(source))
        path = os.fspath(source)
        if not os.path.exists(path):
            raise ValueError(f"Image file not found: {path}")
        with open(path, "rb") as f:
            return cls.decode(f.read())

    def to_pil(self) -> PIL.Image.Image:
        """
        Converts the image to a PIL RGBA image

        :return: The PIL image
        """
        return PIL.Image.fromarray(self._pixels)

    def encode(self, filetype: str = "png") -> bytes:
        """
        Compresses the image.

        :param filetype: "png", "bmp", "gif", "webp" or "jpg"/"jpeg". Formats
            without alpha support drop the alpha channel.
        :return: The compressed data
        """
        filetype = filetype.lstrip(".").lower()
        if filetype == "jpg":
            filetype = "jpeg"
        if filetype not in SUPPORTED_IMAGE_FILETYPE_SET:
            raise ValueError(f"Unsupported file type: {filetype}")
        pil_image = self.to_pil()
        if filetype in {"jpeg", "bmp"}:
            pil_image = pil_image.convert("RGB")
        output_stream = io.BytesIO()
        pil_image.save(output_stream, format=filetype)
        return output_stream.getvalue()

    def save(self, target: str | os.PathLike) -> None:
        """
        Saves the image to disk, the format is derived from the extension.

        :param target: The file name
        """
        target = os.fspath(target)
        extension = os.path.splitext(target)[1] or ".png"
        data = self.encode(extension)
        with open(target, "wb") as output_file:
            output_file.write(data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RasterImage):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height})"


__all__ = [
    "RasterImage",
    "RasterSourceTypes",
    "BYTES_PER_PIXEL",
    "SUPPORTED_IMAGE_FILETYPES",
]
