"""
ellipsoid_fit.py

Fit the largest well-matching ellipsoid around a seed point inside the
foreground, as used by Ellipsoid Factor style shape analysis.

Each iteration casts rays from the current centre along a generalized
spiral set of directions, collects the first background point on each
(contact points), fits a quadric to them and inscribes the resulting
ellipsoid so that no contact point lies inside it. The centre of that
ellipsoid seeds the next iteration; the fit stops once centre and radii
stop moving.

References
----------
Saff EB, Kuijlaars ABJ (1997) Distributing many points on a sphere.
The Mathematical Intelligencer 19: 5-11.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from ellipsoid import Ellipsoid
from errors import EllipsoidFittingFailedError
from quadric import fit_quadric, quadric_to_ellipsoid
from raycast import cast_rays
from volume import as_binary_volume, voxel

logger = logging.getLogger(__name__)

DEFAULT_DIRECTIONS = 200
DEFAULT_MAX_ITERATIONS = 50
DEFAULT_TOLERANCE = 0.5


def spiral_directions(n: int) -> np.ndarray:
    """Deterministic, near-uniform unit vectors on the sphere, shape (n, 3).

    Generalized spiral: h_k = -1 + 2k/(n-1), theta_k = acos(h_k), and the
    azimuth advances by 3.6/sqrt(n)/sqrt(1 - h_k^2) between consecutive
    points; both poles have azimuth 0.
    """
    if n < 2:
        raise ValueError(f"need at least 2 spiral points, got {n}")
    k = np.arange(n, dtype=np.float64)
    h = -1.0 + 2.0 * k / (n - 1)
    theta = np.arccos(np.clip(h, -1.0, 1.0))
    phi = np.zeros(n, dtype=np.float64)
    if n > 2:
        inner = h[1:n - 1]
        step = 3.6 / math.sqrt(n) / np.sqrt(1.0 - inner * inner)
        phi[1:n - 1] = np.mod(np.cumsum(step), 2.0 * math.pi)
    sin_t = np.sin(theta)
    return np.column_stack([sin_t * np.cos(phi), sin_t * np.sin(phi), np.cos(theta)])


def estimate_spiral_points(radius: float, spacing: float) -> int:
    """Spiral size giving neighbouring points about ``spacing`` apart on a sphere of ``radius``."""
    if radius <= 0.0 or spacing <= 0.0:
        raise ValueError("radius and spacing must be positive")
    return int(math.ceil((radius * 3.809 / spacing) ** 2))


def _in_foreground(mask: np.ndarray, point: np.ndarray) -> bool:
    ix, iy, iz = (int(v) for v in np.floor(point + 0.5))
    return voxel(mask, ix, iy, iz)


def _inscribe(ellipsoid: Ellipsoid, contacts: np.ndarray) -> Ellipsoid:
    # Scale about the centre until the nearest contact point sits on the surface
    scale = float(np.min(ellipsoid.radial_distance(contacts)))
    if not math.isfinite(scale) or scale <= 0.0:
        raise EllipsoidFittingFailedError("contact point coincides with the ellipsoid centre")
    return Ellipsoid(ellipsoid.center, ellipsoid.radii * scale, ellipsoid.orientation)


def fit_ellipsoid(volume: np.ndarray,
                  seed,
                  n_directions: int = DEFAULT_DIRECTIONS,
                  max_iterations: int = DEFAULT_MAX_ITERATIONS,
                  tolerance: float = DEFAULT_TOLERANCE) -> Ellipsoid:
    """Fit an ellipsoid to the foreground region around ``seed``.

    Parameters
    ----------
    volume : 3D array
        Binary volume indexed [x, y, z].
    seed : array-like (3,)
        Starting point; must lie in a foreground voxel.
    n_directions : int
        Number of spiral ray directions (>= 9 for the quadric fit).
    max_iterations : int
        Iteration budget.
    tolerance : float
        Convergence threshold (voxels) on centre displacement and on the
        change of every radius between consecutive iterations.

    Returns
    -------
    Ellipsoid
        Inscribed in the contact points of its own centre.

    Raises
    ------
    ValueError
        If the seed is in the background or the parameters are invalid.
    EllipsoidFittingFailedError
        If a fit is not an ellipsoid, the centre leaves the foreground, or
        the fit has not converged after ``max_iterations``.
    """
    mask = as_binary_volume(volume)
    center = np.asarray(seed, dtype=np.float64).reshape(3)
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
    if tolerance <= 0.0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    if not _in_foreground(mask, center):
        raise ValueError(f"seed {center.tolist()} is not in the foreground")

    directions = spiral_directions(n_directions)
    previous = None
    for it in range(max_iterations):
        contacts = cast_rays(mask, directions, center)
        # Fit in coordinates relative to the ray origin
        local = quadric_to_ellipsoid(fit_quadric(contacts - center))
        if local is None:
            raise EllipsoidFittingFailedError(
                f"contact points around {center.tolist()} do not describe an ellipsoid")
        ellipsoid = _inscribe(Ellipsoid(local.center + center, local.radii, local.orientation), contacts)
        if not _in_foreground(mask, ellipsoid.center):
            raise EllipsoidFittingFailedError(
                f"ellipsoid centre {ellipsoid.center.tolist()} left the foreground")

        logger.debug("iteration %d: center=%s radii=%s", it, ellipsoid.center, ellipsoid.radii)
        if previous is not None:
            moved = float(np.linalg.norm(ellipsoid.center - previous.center))
            resized = float(np.max(np.abs(ellipsoid.radii - previous.radii)))
            if moved < tolerance and resized < tolerance:
                return ellipsoid
        previous = ellipsoid
        center = np.array(ellipsoid.center)

    raise EllipsoidFittingFailedError(f"ellipsoid fit did not converge in {max_iterations} iteration(s)")
