from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from ellipsoid_fit import estimate_spiral_points, fit_ellipsoid, spiral_directions
from errors import EllipsoidFittingFailedError
from phantoms import ellipsoid_volume, sphere


def test_spiral_directions():
    d = spiral_directions(500)
    assert d.shape == (500, 3)
    assert np.allclose(np.linalg.norm(d, axis=1), 1.0)
    assert np.allclose(d[0], [0.0, 0.0, -1.0])
    assert np.allclose(d[-1], [0.0, 0.0, 1.0])
    assert np.linalg.norm(d.mean(axis=0)) < 0.05
    assert np.array_equal(d, spiral_directions(500))


def test_spiral_needs_two_points():
    assert spiral_directions(2).shape == (2, 3)
    with pytest.raises(ValueError):
        spiral_directions(1)


def test_estimate_spiral_points():
    assert estimate_spiral_points(10.0, 1.0) == 1451
    with pytest.raises(ValueError):
        estimate_spiral_points(0.0, 1.0)


def test_sphere():
    vol = sphere((41, 41, 41), (20, 20, 20), 12.0)
    e = fit_ellipsoid(vol, (20, 20, 20))
    assert np.linalg.norm(e.center - 20.0) < 1.0
    assert np.all((e.radii > 10.5) & (e.radii < 13.5))


def test_sphere_from_off_centre_seed():
    vol = sphere((41, 41, 41), (20, 20, 20), 12.0)
    e = fit_ellipsoid(vol, (25, 18, 21))
    assert np.linalg.norm(e.center - 20.0) < 1.5


def test_axis_aligned_ellipsoid():
    vol = ellipsoid_volume((41, 41, 41), (20, 20, 20), (5.0, 8.0, 13.0))
    e = fit_ellipsoid(vol, (20, 20, 20), n_directions=400)
    assert np.allclose(e.radii, [5.0, 8.0, 13.0], atol=1.5)
    assert abs(e.orientation[:, 0] @ [1.0, 0.0, 0.0]) > 0.95
    assert abs(e.orientation[:, 2] @ [0.0, 0.0, 1.0]) > 0.95
    # inscribed: no voxel outside the foreground lies well inside the fit
    idx = np.argwhere(~vol).astype(float)
    assert not np.any(e.radial_distance(idx) < 0.7)


def test_background_seed_rejected():
    vol = sphere((21, 21, 21), (10, 10, 10), 5.0)
    with pytest.raises(ValueError):
        fit_ellipsoid(vol, (1, 1, 1))


def test_iteration_budget_exhausted():
    vol = sphere((21, 21, 21), (10, 10, 10), 6.0)
    with pytest.raises(EllipsoidFittingFailedError):
        fit_ellipsoid(vol, (10, 10, 10), max_iterations=1)


def test_invalid_parameters():
    vol = sphere((21, 21, 21), (10, 10, 10), 6.0)
    with pytest.raises(ValueError):
        fit_ellipsoid(vol, (10, 10, 10), max_iterations=0)
    with pytest.raises(ValueError):
        fit_ellipsoid(vol, (10, 10, 10), tolerance=0.0)
