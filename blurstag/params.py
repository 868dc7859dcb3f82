"""Filter parameters and their fixed-layout device encoding.

The kernel consumes a 16 byte parameter block::

    offset 0   radius   uint32 (little endian)
    offset 4   padding  uint32
    offset 8   blend    float32 (little endian)
    offset 12  padding  float32
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

RADIUS_LIMIT = 0x3FFFFFFF
"The kernel walks signed int offsets, so the window side 2r+1 must fit int32"

PARAMS_DTYPE = np.dtype([
    ("radius", "<u4"),
    ("_pad0", "<u4"),
    ("blend", "<f4"),
    ("_pad1", "<f4"),
])
"Layout of the parameter block as seen by the kernel"

PARAMS_BLOCK_SIZE = PARAMS_DTYPE.itemsize


@dataclass(frozen=True)
class FilterParams:
    """Radius and blend factor of one denoising run.

    radius: Window half-width in pixels, window side is ``2 * radius + 1``
    blend: 0.0 keeps the original pixel, 1.0 is the fully blurred pixel
    """

    radius: int = 3
    blend: float = 0.6

    def __post_init__(self):
        if isinstance(self.radius, bool) or not isinstance(self.radius, (int, np.integer)):
            raise ValueError(f"radius must be an integer, got {self.radius!r}")
        if not 0 <= self.radius <= RADIUS_LIMIT:
            raise ValueError(f"radius must be in [0, {RADIUS_LIMIT}], got {self.radius}")
        blend = float(self.blend)
        if not 0.0 <= blend <= 1.0:
            raise ValueError(f"blend must be in [0, 1], got {self.blend}")
        object.__setattr__(self, "radius", int(self.radius))
        object.__setattr__(self, "blend", blend)

    @property
    def window_size(self) -> int:
        """Edge length of the square averaging window."""
        return 2 * self.radius + 1

    @property
    def is_identity(self) -> bool:
        """True if the filter cannot change any pixel."""
        return self.radius == 0 or self.blend == 0.0

    def to_block(self) -> bytes:
        """Encode the parameters into the 16 byte kernel parameter block."""
        block = np.zeros(1, dtype=PARAMS_DTYPE)
        block["radius"] = self.radius
        block["blend"] = self.blend
        return block.tobytes()

    @classmethod
    def from_block(cls, data: bytes) -> FilterParams:
        """Decode a parameter block produced by :meth:`to_block`.

        The blend value comes back with float32 precision.
        """
        if len(data) != PARAMS_BLOCK_SIZE:
            raise ValueError(
                f"Expected {PARAMS_BLOCK_SIZE} byte parameter block, got {len(data)}"
            )
        block = np.frombuffer(data, dtype=PARAMS_DTYPE)[0]
        return cls(radius=int(block["radius"]), blend=float(block["blend"]))


__all__ = [
    "FilterParams",
    "PARAMS_DTYPE",
    "PARAMS_BLOCK_SIZE",
    "RADIUS_LIMIT",
]
