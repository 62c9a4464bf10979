"""
plane_intersection.py

Ellipse cut from an ellipsoid by a plane.

The computation happens in the ellipsoid's own frame, where the surface is
|D x|^2 = 1 with D = diag(1/r0, 1/r1, 1/r2). An in-plane basis (r, s) is
rotated by the angle that makes D r and D s orthogonal; in that basis the
section is an axis-aligned ellipse whose centre and semi-axes follow from
completing the square.

References
----------
Klein P (2012) On the ellipsoid and plane intersection equation.
Applied Mathematics 3: 1634-1640.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ellipsoid import Ellipsoid
from errors import NoIntersectionError


def _unit(v, what: str) -> np.ndarray:
    u = np.asarray(v, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(u))
    if not math.isfinite(norm) or norm == 0.0:
        raise ValueError(f"{what} must be a non-zero finite vector, got {u}")
    return u / norm


def complete_basis(normal) -> Tuple[np.ndarray, np.ndarray]:
    """Two unit vectors spanning the plane orthogonal to ``normal``."""
    n = _unit(normal, "normal")
    # Cross with the axis least aligned with n
    helper = np.zeros(3)
    helper[int(np.argmin(np.abs(n)))] = 1.0
    r = np.cross(n, helper)
    r /= np.linalg.norm(r)
    s = np.cross(r, n)
    s /= np.linalg.norm(s)
    return r, s


def intersect(ellipsoid: Ellipsoid, point, normal) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Intersect an ellipsoid with the plane through ``point`` normal to ``normal``.

    Parameters
    ----------
    ellipsoid : Ellipsoid
    point : array-like (3,)
        Any point on the plane.
    normal : array-like (3,)
        Plane normal; need not be unit length.

    Returns
    -------
    center : (3,) array
        Centre of the ellipse.
    axis_a, axis_b : (3,) arrays
        Orthogonal semi-axis vectors in the plane; center +- axis lies on
        the ellipsoid surface.

    Raises
    ------
    NoIntersectionError
        If the plane misses the ellipsoid or only touches it.
    """
    n_world = _unit(normal, "normal")
    R = ellipsoid.orientation
    q = R.T @ (np.asarray(point, dtype=np.float64).reshape(3) - ellipsoid.center)
    n = R.T @ n_world
    D = 1.0 / ellipsoid.radii

    r, s = complete_basis(n)
    Dr, Ds = D * r, D * s
    denom = float(Dr @ Dr - Ds @ Ds)
    if denom == 0.0:
        omega = 0.25 * math.pi
    else:
        omega = 0.5 * math.atan(2.0 * float(Dr @ Ds) / denom)
    cos_w, sin_w = math.cos(omega), math.sin(omega)
    r_t = cos_w * r + sin_w * s
    s_t = -sin_w * r + cos_w * s

    Dq, Dr_t, Ds_t = D * q, D * r_t, D * s_t
    rr = float(Dr_t @ Dr_t)
    ss = float(Ds_t @ Ds_t)
    qr = float(Dq @ Dr_t)
    qs = float(Dq @ Ds_t)
    d = float(Dq @ Dq) - qr * qr / rr - qs * qs / ss
    if not 1.0 - d > 0.0:
        raise NoIntersectionError("plane does not intersect the ellipsoid")

    center_local = q - (qr / rr) * r_t - (qs / ss) * s_t
    axis_a = math.sqrt((1.0 - d) / rr) * r_t
    axis_b = math.sqrt((1.0 - d) / ss) * s_t
    return R @ center_local + ellipsoid.center, R @ axis_a, R @ axis_b


def ellipse_points(center, axis_a, axis_b, n: int = 100) -> np.ndarray:
    """n points around the ellipse center + cos(t) axis_a + sin(t) axis_b."""
    t = np.linspace(0.0, 2.0 * math.pi, n)
    return (np.asarray(center)[None, :]
            + np.cos(t)[:, None] * np.asarray(axis_a)[None, :]
            + np.sin(t)[:, None] * np.asarray(axis_b)[None, :])
