from __future__ import annotations

import math

import numpy as np


class Ellipsoid:
    """Immutable ellipsoid with sorted semi-axes.

    radii are stored ascending (radii[0] shortest, radii[2] longest) and
    column i of orientation is the unit direction of the semi-axis of length
    radii[i]. The orientation is right-handed.

    Parameters
    ----------
    center : array-like (3,)
    radii : array-like (3,)
        Semi-axis lengths, in any order. Each must be positive and finite.
    orientation : array-like (3, 3), optional
        Orthonormal matrix whose columns are the axes matching ``radii``.
        Defaults to the identity.
    """

    __slots__ = ("_center", "_radii", "_orientation")

    def __init__(self, center, radii, orientation=None):
        c = np.array(center, dtype=np.float64).reshape(3)
        r = np.array(radii, dtype=np.float64).reshape(3)
        R = np.eye(3) if orientation is None else np.array(orientation, dtype=np.float64).reshape(3, 3)

        if not np.all(np.isfinite(c)):
            raise ValueError(f"ellipsoid center must be finite, got {c}")
        for v in r:
            if not math.isfinite(v) or v <= 0.0:
                raise ValueError(f"ellipsoid radii must be positive and finite, got {r}")
        if not np.all(np.isfinite(R)) or not np.allclose(R.T @ R, np.eye(3), atol=1e-6):
            raise ValueError("ellipsoid orientation must be an orthonormal matrix")

        order = np.argsort(r, kind="stable")
        r = r[order]
        R = R[:, order]
        if np.linalg.det(R) < 0.0:
            R[:, 2] = -R[:, 2]

        for arr in (c, r, R):
            arr.flags.writeable = False
        self._center = c
        self._radii = r
        self._orientation = R

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def radii(self) -> np.ndarray:
        return self._radii

    @property
    def orientation(self) -> np.ndarray:
        return self._orientation

    @property
    def a(self) -> float:
        return float(self._radii[0])

    @property
    def b(self) -> float:
        return float(self._radii[1])

    @property
    def c(self) -> float:
        return float(self._radii[2])

    @property
    def axes(self) -> np.ndarray:
        """Semi-axis vectors as columns, each scaled by its radius."""
        return self._orientation * self._radii[None, :]

    @property
    def eigenvalues(self) -> np.ndarray:
        """1 / r^2 for each radius, in the order of ``radii``."""
        return 1.0 / (self._radii * self._radii)

    @property
    def matrix(self) -> np.ndarray:
        """Symmetric 3x3 form M with (p - c)^T M (p - c) = 1 on the surface."""
        R = self._orientation
        return R @ np.diag(self.eigenvalues) @ R.T

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * math.pi * float(np.prod(self._radii))

    def radial_distance(self, points) -> np.ndarray:
        """sqrt((p - c)^T M (p - c)): < 1 inside, 1 on the surface, > 1 outside."""
        p = np.asarray(points, dtype=np.float64).reshape(-1, 3) - self._center
        q = np.einsum("ni,ij,nj->n", p, self.matrix, p)
        return np.sqrt(np.maximum(q, 0.0))

    def contains(self, points) -> np.ndarray:
        return self.radial_distance(points) <= 1.0

    def surface_points(self, directions) -> np.ndarray:
        """Points where rays from the centre along ``directions`` meet the surface."""
        d = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
        d = d / np.linalg.norm(d, axis=1)[:, None]
        scale = np.einsum("ni,ij,nj->n", d, self.matrix, d)
        return self._center + d / np.sqrt(scale)[:, None]

    def __repr__(self) -> str:
        return (f"Ellipsoid(center={self._center.tolist()}, radii={self._radii.tolist()}, "
                f"orientation={self._orientation.tolist()})")
