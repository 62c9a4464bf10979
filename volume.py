"""
volume.py

Binary voxel volumes as consumed by the topology and anisotropy routines.

- Arrays are shaped [nx, ny, nz] with i->x, j->y, k->z.
- Any dtype is accepted; nonzero is foreground.
- Reads outside the extents are background (zero padding). The Euler
  boundary handling depends on this.
- Spacing is a per-axis calibration (sx, sy, sz); it only matters where a
  result carries physical units (connectivity density).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

Spacing = Tuple[float, float, float]


def as_binary_volume(volume: np.ndarray) -> np.ndarray:
    """Validate a volume and return it as a C-contiguous bool array.

    Raises ValueError if the input does not have exactly three dimensions.
    """
    arr = np.asarray(volume)
    if arr.ndim != 3:
        raise ValueError(f"expected a 3D volume, got {arr.ndim} dimension(s) with shape {arr.shape}")
    if arr.dtype != np.bool_:
        arr = arr != 0
    return np.ascontiguousarray(arr)


def check_spacing(spacing: Spacing | None) -> Spacing:
    if spacing is None:
        return (1.0, 1.0, 1.0)
    sp = tuple(float(s) for s in spacing)
    if len(sp) != 3:
        raise ValueError(f"spacing must have three components, got {len(sp)}")
    for s in sp:
        if not np.isfinite(s) or s <= 0.0:
            raise ValueError(f"spacing components must be positive and finite, got {sp}")
    return sp


def voxel(volume: np.ndarray, x: int, y: int, z: int) -> bool:
    nx, ny, nz = volume.shape
    if 0 <= x < nx and 0 <= y < ny and 0 <= z < nz:
        return bool(volume[x, y, z])
    return False


def diagonal(shape: Tuple[int, int, int]) -> float:
    """Length of the volume's bounding-box diagonal in voxels."""
    nx, ny, nz = shape
    return float(np.sqrt(nx * nx + ny * ny + nz * nz))


def stack_volume(shape: Tuple[int, int, int], spacing: Spacing) -> float:
    nx, ny, nz = shape
    sx, sy, sz = spacing
    return float(nx * ny * nz) * sx * sy * sz
