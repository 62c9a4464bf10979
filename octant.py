from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numba import njit

from volume import as_binary_volume, voxel

# Corner offsets in bit order:
#   0: (0,0,0), 1: (1,0,0), 2: (0,1,0), 3: (1,1,0)
#   4: (0,0,1), 5: (1,0,1), 6: (0,1,1), 7: (1,1,1)
OCTANT_OFFSETS = np.array([
    (0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0),
    (0, 0, 1), (1, 0, 1), (0, 1, 1), (1, 1, 1),
], dtype=np.int64)
OCTANT_OFFSETS.flags.writeable = False


@njit(inline='always', cache=True)
def _get(mask, x, y, z):
    nx, ny, nz = mask.shape
    if x < 0 or y < 0 or z < 0 or x >= nx or y >= ny or z >= nz:
        return 0
    return 1 if mask[x, y, z] else 0


@njit(inline='always', cache=True)
def _octant_index(mask, x, y, z):
    idx = _get(mask, x, y, z)
    idx |= _get(mask, x + 1, y, z) << 1
    idx |= _get(mask, x, y + 1, z) << 2
    idx |= _get(mask, x + 1, y + 1, z) << 3
    idx |= _get(mask, x, y, z + 1) << 4
    idx |= _get(mask, x + 1, y, z + 1) << 5
    idx |= _get(mask, x, y + 1, z + 1) << 6
    idx |= _get(mask, x + 1, y + 1, z + 1) << 7
    return idx


def octant_index(volume: np.ndarray, x: int, y: int, z: int) -> int:
    """Configuration index in [0, 255] of the 2x2x2 cube anchored at (x, y, z).

    Bit i is set when corner i (see OCTANT_OFFSETS) is foreground. Corners
    outside the volume read as background, so anchors may range over
    -1..n-1 on every axis.
    """
    mask = as_binary_volume(volume)
    idx = 0
    for bit, (dx, dy, dz) in enumerate(OCTANT_OFFSETS):
        if voxel(mask, x + int(dx), y + int(dy), z + int(dz)):
            idx |= 1 << bit
    return idx


@dataclass(frozen=True)
class Octant:
    """The eight voxels of one 2x2x2 neighbourhood."""

    voxels: Tuple[bool, bool, bool, bool, bool, bool, bool, bool]

    @classmethod
    def from_volume(cls, volume: np.ndarray, x: int, y: int, z: int) -> "Octant":
        return cls.from_index(octant_index(volume, x, y, z))

    @classmethod
    def from_index(cls, index: int) -> "Octant":
        if not 0 <= index <= 255:
            raise ValueError(f"octant index must be in [0, 255], got {index}")
        return cls(tuple(bool((index >> b) & 1) for b in range(8)))

    @property
    def index(self) -> int:
        return sum(1 << b for b, on in enumerate(self.voxels) if on)

    @property
    def neighbors(self) -> int:
        """Number of foreground voxels in the octant."""
        return sum(self.voxels)

    @property
    def is_empty(self) -> bool:
        return not any(self.voxels)
