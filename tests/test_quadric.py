from __future__ import annotations

import os
import sys

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from ellipsoid import Ellipsoid
from errors import InsufficientDataError
from quadric import MIN_DATA, fit_quadric, is_ellipsoid, quadric_to_ellipsoid


def _unit_vectors(n, seed):
    rng = np.random.default_rng(seed)
    v = rng.normal(size=(n, 3))
    return v / np.linalg.norm(v, axis=1)[:, None]


def test_too_few_points():
    pts = _unit_vectors(MIN_DATA - 1, 0)
    with pytest.raises(InsufficientDataError):
        fit_quadric(pts)
    # also a precondition violation in the ValueError sense
    with pytest.raises(ValueError):
        fit_quadric(pts)


def test_bad_shape():
    with pytest.raises(ValueError):
        fit_quadric(np.zeros((20, 2)))


def test_unit_sphere():
    Q = fit_quadric(_unit_vectors(50, 1))
    assert Q.shape == (4, 4)
    assert np.allclose(Q, Q.T)
    assert np.allclose(Q, np.diag([1.0, 1.0, 1.0, -1.0]), atol=1e-10)
    e = quadric_to_ellipsoid(Q)
    assert e is not None
    assert np.allclose(e.radii, 1.0)
    assert np.allclose(e.center, 0.0, atol=1e-10)


def test_recovers_rotated_translated_ellipsoid():
    R = Rotation.from_euler("zyx", [0.4, 1.0, -0.3]).as_matrix()
    truth = Ellipsoid((3.0, -1.0, 2.5), (1.5, 4.0, 2.5), R)
    pts = truth.surface_points(_unit_vectors(100, 2))
    e = quadric_to_ellipsoid(fit_quadric(pts))
    assert e is not None
    assert np.allclose(e.center, truth.center, atol=1e-8)
    assert np.allclose(e.radii, truth.radii, atol=1e-8)
    for i in range(3):
        assert abs(e.orientation[:, i] @ truth.orientation[:, i]) == pytest.approx(1.0, abs=1e-8)


def test_isotropic_noise_cloud_is_ellipsoid():
    rng = np.random.default_rng(3)
    pts = _unit_vectors(200, 4) * (1.0 + 0.05 * rng.normal(size=(200, 1)))
    Q = fit_quadric(pts)
    assert is_ellipsoid(Q)
    e = quadric_to_ellipsoid(Q)
    assert e is not None
    assert np.all(np.abs(e.radii - 1.0) < 0.2)


def test_minimum_points_fit():
    pts = Ellipsoid((0.0, 0.0, 0.0), (1.0, 2.0, 3.0)).surface_points(_unit_vectors(MIN_DATA, 5))
    e = quadric_to_ellipsoid(fit_quadric(pts))
    assert e is not None
    assert np.allclose(e.radii, [1.0, 2.0, 3.0], atol=1e-6)


def test_hyperboloid_is_not_an_ellipsoid():
    rng = np.random.default_rng(6)
    z = rng.uniform(-2.0, 2.0, 100)
    t = rng.uniform(0.0, 2.0 * np.pi, 100)
    rho = np.sqrt(1.0 + z * z)
    pts = np.column_stack([rho * np.cos(t), rho * np.sin(t), z])
    Q = fit_quadric(pts)
    assert not is_ellipsoid(Q)
    assert quadric_to_ellipsoid(Q) is None


def test_degenerate_quadrics_give_none():
    nan = np.full((4, 4), np.nan)
    assert quadric_to_ellipsoid(nan) is None
    singular = np.zeros((4, 4))
    singular[3, 3] = -1.0
    assert quadric_to_ellipsoid(singular) is None
    # x^2 + y^2 + z^2 = -1 has no real points
    imaginary = np.diag([1.0, 1.0, 1.0, 1.0])
    assert quadric_to_ellipsoid(imaginary) is None


def test_ellipsoid_away_from_origin():
    # the fitted quadric comes back negative definite when the origin is outside
    truth = Ellipsoid((20.0, 20.0, 20.0), (3.0, 4.0, 5.0))
    pts = truth.surface_points(_unit_vectors(120, 7))
    Q = fit_quadric(pts)
    assert np.all(np.linalg.eigvalsh(Q[:3, :3]) < 0.0)
    assert is_ellipsoid(Q)
    assert is_ellipsoid(-Q)
    for q in (Q, -Q):
        e = quadric_to_ellipsoid(q)
        assert e is not None
        assert np.allclose(e.center, 20.0, atol=1e-6)
        assert np.allclose(e.radii, [3.0, 4.0, 5.0], atol=1e-6)
