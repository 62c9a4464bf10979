"""
phantoms.py

Synthetic binary volumes with known topology or fabric, indexed [x, y, z].

- box_frame: the 12 one-voxel edges of a cuboid (chi = -4)
- crossed_circle: a one-pixel circle with a cross through it (chi = -3)
- cuboid / hollow_cuboid: solid block (chi = 1) / block with a cavity (chi = 2)
- rod: a one-voxel strut crossing the whole volume
- xy_sheets: foreground on every other z-slice (strongly anisotropic)
- binary_noise: independent Bernoulli voxels (isotropic)
- sphere / ellipsoid_volume: solid spheres and ellipsoids
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

Shape3 = Tuple[int, int, int]

PHANTOMS = ("box_frame", "crossed_circle", "cuboid", "hollow_cuboid", "rod",
            "xy_sheets", "binary_noise", "sphere", "ellipsoid")


def box_frame(width: int, height: int, depth: int, padding: int = 32) -> np.ndarray:
    """Wire frame of a width x height x depth box inside ``padding`` empty voxels."""
    if min(width, height, depth) < 2:
        raise ValueError("box frame needs at least 2 voxels along each axis")
    vol = np.zeros((width + 2 * padding, height + 2 * padding, depth + 2 * padding), dtype=bool)
    x0, y0, z0 = padding, padding, padding
    x1, y1, z1 = x0 + width - 1, y0 + height - 1, z0 + depth - 1
    for y in (y0, y1):
        for z in (z0, z1):
            vol[x0:x1 + 1, y, z] = True
    for x in (x0, x1):
        for z in (z0, z1):
            vol[x, y0:y1 + 1, z] = True
    for x in (x0, x1):
        for y in (y0, y1):
            vol[x, y, z0:z1 + 1] = True
    return vol


def _circle_pixels(cx: int, cy: int, r: int) -> list[Tuple[int, int]]:
    # Midpoint circle: an 8-connected one-pixel outline
    pts = []
    x, y = r, 0
    p = 1 - r
    while x >= y:
        for a, b in ((x, y), (y, x), (-y, x), (-x, y), (-x, -y), (-y, -x), (y, -x), (x, -y)):
            pts.append((cx + a, cy + b))
        y += 1
        if p < 0:
            p += 2 * y + 1
        else:
            x -= 1
            p += 2 * (y - x) + 1
    return pts


def crossed_circle(size: int) -> np.ndarray:
    """A single slice, shape (size, size, 1), holding a circle of diameter
    size/2 crossed by a horizontal and a vertical diameter line."""
    if size < 16:
        raise ValueError("crossed circle needs size >= 16")
    img = np.zeros((size, size, 1), dtype=bool)
    c = size // 2
    r = size // 4
    for x, y in _circle_pixels(c, c, r):
        img[x, y, 0] = True
    img[c - r:c + r + 1, c, 0] = True
    img[c, c - r:c + r + 1, 0] = True
    return img


def cuboid(shape: Shape3, lo: Tuple[int, int, int], hi: Tuple[int, int, int]) -> np.ndarray:
    """Solid block covering [lo, hi) on each axis."""
    vol = np.zeros(shape, dtype=bool)
    vol[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]] = True
    return vol


def hollow_cuboid(shape: Shape3, lo: Tuple[int, int, int], hi: Tuple[int, int, int],
                  wall: int = 2) -> np.ndarray:
    vol = cuboid(shape, lo, hi)
    vol[lo[0] + wall:hi[0] - wall, lo[1] + wall:hi[1] - wall, lo[2] + wall:hi[2] - wall] = False
    return vol


def rod(shape: Shape3, axis: int = 0) -> np.ndarray:
    """One-voxel strut through the middle of the volume, touching both faces of ``axis``."""
    vol = np.zeros(shape, dtype=bool)
    idx = [s // 2 for s in shape]
    idx[axis] = slice(None)
    vol[tuple(idx)] = True
    return vol


def xy_sheets(shape: Shape3) -> np.ndarray:
    vol = np.zeros(shape, dtype=bool)
    vol[:, :, ::2] = True
    return vol


def binary_noise(shape: Shape3, seed: int | None = None, fraction: float = 0.5) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.random(shape) < fraction


def ellipsoid_volume(shape: Shape3, center, radii) -> np.ndarray:
    """Axis-aligned solid ellipsoid; voxel centres sit on integer coordinates."""
    x, y, z = np.meshgrid(*(np.arange(n, dtype=np.float64) for n in shape), indexing="ij")
    cx, cy, cz = center
    rx, ry, rz = radii
    return ((x - cx) / rx) ** 2 + ((y - cy) / ry) ** 2 + ((z - cz) / rz) ** 2 <= 1.0


def sphere(shape: Shape3, center, radius: float) -> np.ndarray:
    return ellipsoid_volume(shape, center, (radius, radius, radius))


def make_phantom(name: str, size: int = 64, seed: int | None = None) -> np.ndarray:
    """Build a named phantom at a nominal edge length ``size``."""
    shape = (size, size, size)
    c = size // 2
    if name == "box_frame":
        return box_frame(size, size, size, padding=max(1, size // 4))
    if name == "crossed_circle":
        return crossed_circle(size)
    if name == "cuboid":
        return cuboid(shape, (size // 4,) * 3, (3 * size // 4,) * 3)
    if name == "hollow_cuboid":
        return hollow_cuboid(shape, (size // 4,) * 3, (3 * size // 4,) * 3)
    if name == "rod":
        return rod(shape)
    if name == "xy_sheets":
        return xy_sheets(shape)
    if name == "binary_noise":
        return binary_noise(shape, seed)
    if name == "sphere":
        return sphere(shape, (c, c, c), size / 4.0)
    if name == "ellipsoid":
        return ellipsoid_volume(shape, (c, c, c), (size / 8.0, size / 5.0, size / 3.0))
    raise ValueError(f"unknown phantom {name!r}; expected one of {PHANTOMS}")
