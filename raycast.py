"""
raycast.py

March rays through a binary volume from an interior point.

Positions are continuous; a position p lies in the voxel whose centre is
nearest, i.e. floor(p + 0.5) on each axis (voxel centres sit on integer
coordinates). Rays advance one voxel-length per step along the unit
direction and never take more than ceil(diagonal) + 1 steps.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from volume import as_binary_volume, diagonal


@njit(inline='always', cache=True)
def _is_foreground(mask, px, py, pz):
    nx, ny, nz = mask.shape
    ix = int(np.floor(px + 0.5))
    iy = int(np.floor(py + 0.5))
    iz = int(np.floor(pz + 0.5))
    if ix < 0 or iy < 0 or iz < 0 or ix >= nx or iy >= ny or iz >= nz:
        return False
    return mask[ix, iy, iz]


@njit(nogil=True, cache=True)
def _march(mask, ox, oy, oz, dx, dy, dz, max_steps):
    """Number of whole steps the ray stays in the foreground, or -1 if it starts outside it."""
    if not _is_foreground(mask, ox, oy, oz):
        return -1
    k = 0
    while k < max_steps:
        s = k + 1
        if not _is_foreground(mask, ox + s * dx, oy + s * dy, oz + s * dz):
            break
        k = s
    return k


@njit(nogil=True, cache=True)
def _contact_points(mask, origin, directions, max_steps):
    n = directions.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    ox, oy, oz = origin[0], origin[1], origin[2]
    for r in range(n):
        dx, dy, dz = directions[r, 0], directions[r, 1], directions[r, 2]
        k = _march(mask, ox, oy, oz, dx, dy, dz, max_steps)
        s = max(k, 0) + 1
        out[r, 0] = ox + s * dx
        out[r, 1] = oy + s * dy
        out[r, 2] = oz + s * dz
    return out


def _unit(direction) -> np.ndarray:
    d = np.asarray(direction, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(d))
    if not math.isfinite(norm) or norm == 0.0:
        raise ValueError(f"ray direction must be a non-zero finite vector, got {d}")
    return d / norm


def _max_steps(shape) -> int:
    return int(math.ceil(diagonal(shape))) + 1


def cast_ray(volume: np.ndarray, direction, origin) -> np.ndarray:
    """Last foreground position along a ray.

    Parameters
    ----------
    volume : 3D array
        Binary volume indexed [x, y, z].
    direction : array-like (3,)
        Ray direction; normalised internally.
    origin : array-like (3,)
        Start of the ray in voxel coordinates.

    Returns
    -------
    point : (3,) float64 array
        origin + k * direction for the largest k such that every sample up
        to it is foreground. A ray starting in the background (or outside
        the volume) returns the origin.
    """
    mask = as_binary_volume(volume)
    d = _unit(direction)
    o = np.asarray(origin, dtype=np.float64).reshape(3)
    k = _march(mask, o[0], o[1], o[2], d[0], d[1], d[2], _max_steps(mask.shape))
    if k < 0:
        return o.copy()
    return o + k * d


def contact_point(volume: np.ndarray, direction, origin) -> np.ndarray:
    """First background (or out-of-bounds) position along a ray.

    This is one step past cast_ray; for a background origin it is the
    position one step from the origin.
    """
    mask = as_binary_volume(volume)
    d = _unit(direction)
    o = np.asarray(origin, dtype=np.float64).reshape(3)
    return _contact_points(mask, o, d.reshape(1, 3), _max_steps(mask.shape))[0]


def cast_rays(volume: np.ndarray, directions, origin) -> np.ndarray:
    """Contact points for many unit directions from one origin, shape (n, 3)."""
    mask = as_binary_volume(volume)
    dirs = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    norms = np.linalg.norm(dirs, axis=1)
    if np.any(~np.isfinite(norms)) or np.any(norms == 0.0):
        raise ValueError("ray directions must be non-zero finite vectors")
    dirs = np.ascontiguousarray(dirs / norms[:, None])
    o = np.asarray(origin, dtype=np.float64).reshape(3)
    return _contact_points(mask, o, dirs, _max_steps(mask.shape))
