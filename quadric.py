"""
quadric.py

Least-squares quadric surfaces and their decomposition into ellipsoids.

A quadric is held as the symmetric homogeneous 4x4 matrix

    [[a, d, e, g],
     [d, b, f, h],
     [e, f, c, i],
     [g, h, i, -1]]

so that [x y z 1] Q [x y z 1]^T = 0 is the surface

    ax^2 + by^2 + cz^2 + 2dxy + 2exz + 2fyz + 2gx + 2hy + 2iz = 1.

Notes
-----
- The fit has nine unknowns, so at least MIN_DATA = 9 points are needed.
- Q and -Q describe the same surface. The fit fixes the constant at -1, so a
  cloud whose ellipsoid does not contain the origin comes back with a
  negative definite quadratic part; both signs are accepted.
- quadric_to_ellipsoid returns None for anything that is not a real,
  bounded ellipsoid (hyperboloids, cylinders, singular or NaN matrices).
  Callers decide whether that is a failure.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ellipsoid import Ellipsoid
from errors import InsufficientDataError

logger = logging.getLogger(__name__)

MIN_DATA = 9


def fit_quadric(points) -> np.ndarray:
    """Fit a quadric to a point cloud by linear least squares.

    Parameters
    ----------
    points : array-like (n, 3)
        Points on (or near) the surface, n >= 9.

    Returns
    -------
    Q : (4, 4) float64 array
        Homogeneous matrix of the fitted quadric.
    """
    P = np.asarray(points, dtype=np.float64)
    if P.ndim != 2 or P.shape[1] != 3:
        raise ValueError(f"points must have shape (n, 3), got {P.shape}")
    if P.shape[0] < MIN_DATA:
        raise InsufficientDataError(f"need at least {MIN_DATA} points to fit a quadric, got {P.shape[0]}")

    x, y, z = P[:, 0], P[:, 1], P[:, 2]
    D = np.column_stack([
        x * x, y * y, z * z,
        2.0 * x * y, 2.0 * x * z, 2.0 * y * z,
        2.0 * x, 2.0 * y, 2.0 * z,
    ])
    coef, _, rank, _ = np.linalg.lstsq(D, np.ones(P.shape[0]), rcond=None)
    if rank < MIN_DATA:
        logger.debug("quadric design matrix is rank deficient (rank %d)", rank)
    a, b, c, d, e, f, g, h, i = coef
    return np.array([
        [a, d, e, g],
        [d, b, f, h],
        [e, f, c, i],
        [g, h, i, -1.0],
    ], dtype=np.float64)


def _positive_definite(A: np.ndarray) -> bool:
    # Sylvester's criterion on the leading minors
    m2 = A[0, 0] * A[1, 1] - A[0, 1] * A[1, 0]
    return bool(A[0, 0] > 0.0 and m2 > 0.0 and np.linalg.det(A) > 0.0)


def _with_positive_part(Q: np.ndarray) -> np.ndarray:
    """Q, or -Q when its quadratic part is negative definite."""
    if _positive_definite(-Q[:3, :3]):
        return -Q
    return Q


def is_ellipsoid(quadric) -> bool:
    """True when the quadratic part is definite, i.e. positive definite up to the sign of Q."""
    Q = np.asarray(quadric, dtype=np.float64)
    if Q.shape != (4, 4) or not np.all(np.isfinite(Q)):
        return False
    return _positive_definite(_with_positive_part(Q)[:3, :3])


def quadric_to_ellipsoid(quadric) -> Optional[Ellipsoid]:
    """Decompose a quadric into centre, radii and orientation.

    Returns
    -------
    Ellipsoid or None
        None when the quadric does not describe a real ellipsoid.
    """
    Q = np.asarray(quadric, dtype=np.float64)
    if not is_ellipsoid(Q):
        logger.debug("quadric is not an ellipsoid")
        return None

    Q = _with_positive_part(Q)
    A = Q[:3, :3]
    try:
        center = np.linalg.solve(-A, Q[:3, 3])
    except np.linalg.LinAlgError:
        logger.debug("quadric has a singular quadratic part")
        return None

    # Move the origin to the centre: x = y + c
    T = np.eye(4)
    T[:3, 3] = center
    translated = T.T @ Q @ T
    k = translated[3, 3]
    if not np.isfinite(k) or k >= 0.0:
        logger.debug("quadric is imaginary or degenerate (constant term %r)", k)
        return None

    try:
        eigenvalues, eigenvectors = np.linalg.eigh(translated[:3, :3] / -k)
    except np.linalg.LinAlgError:
        logger.debug("eigendecomposition did not converge")
        return None
    if not np.all(np.isfinite(eigenvalues)) or np.any(eigenvalues <= 0.0):
        logger.debug("non-positive eigenvalues %s", eigenvalues)
        return None

    radii = 1.0 / np.sqrt(eigenvalues)
    try:
        return Ellipsoid(center, radii, eigenvectors)
    except ValueError as exc:
        logger.debug("invalid ellipsoid from quadric: %s", exc)
        return None
