from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from raycast import cast_ray, cast_rays, contact_point


def test_background_volume_returns_origin():
    vol = np.zeros((10, 10, 10), dtype=bool)
    origin = np.array([4.0, 5.0, 6.0])
    p = cast_ray(vol, (1.0, 0.0, 0.0), origin)
    assert np.array_equal(p, origin)
    assert p is not origin


def test_foreground_volume_reaches_boundary():
    vol = np.ones((10, 10, 10), dtype=bool)
    p = cast_ray(vol, (1.0, 0.0, 0.0), (5.0, 5.0, 5.0))
    assert np.allclose(p, [9.0, 5.0, 5.0])
    q = cast_ray(vol, (0.0, -1.0, 0.0), (5.0, 5.0, 5.0))
    assert np.allclose(q, [5.0, 0.0, 5.0])


def test_direction_is_normalised():
    vol = np.ones((10, 10, 10), dtype=bool)
    p = cast_ray(vol, (2.0, 2.0, 2.0), (0.0, 0.0, 0.0))
    assert np.allclose(p, p[0])
    assert np.all(np.floor(p + 0.5) <= 9)
    c = contact_point(vol, (2.0, 2.0, 2.0), (0.0, 0.0, 0.0))
    assert np.linalg.norm(c - p) == pytest.approx(1.0)
    assert np.any(np.floor(c + 0.5) > 9)


def test_stops_before_wall():
    vol = np.ones((12, 12, 12), dtype=bool)
    vol[7, :, :] = False
    p = cast_ray(vol, (1.0, 0.0, 0.0), (2.0, 5.0, 5.0))
    assert np.allclose(p, [6.0, 5.0, 5.0])
    c = contact_point(vol, (1.0, 0.0, 0.0), (2.0, 5.0, 5.0))
    assert np.allclose(c, [7.0, 5.0, 5.0])


def test_fractional_steps_accumulate():
    vol = np.zeros((20, 20, 20), dtype=bool)
    vol[:, :, 5] = True
    d = np.array([3.0, 4.0, 0.0]) / 5.0
    p = cast_ray(vol, d, (1.0, 1.0, 5.0))
    k = np.linalg.norm(p - [1.0, 1.0, 5.0])
    assert k == pytest.approx(round(k))
    assert np.all(np.floor(p + 0.5) < 20)


def test_contact_point_from_background_origin():
    vol = np.zeros((5, 5, 5), dtype=bool)
    c = contact_point(vol, (0.0, 0.0, 1.0), (2.0, 2.0, 2.0))
    assert np.allclose(c, [2.0, 2.0, 3.0])


def test_many_rays_from_background_origin_step_once():
    vol = np.zeros((5, 5, 5), dtype=bool)
    dirs = np.array([[1.0, 0.0, 0.0], [0.0, -1.0, 0.0], [0.0, 0.0, 2.0]])
    c = cast_rays(vol, dirs, (2.0, 2.0, 2.0))
    assert np.allclose(c, [[3.0, 2.0, 2.0], [2.0, 1.0, 2.0], [2.0, 2.0, 3.0]])


def test_cast_rays_matches_single_rays():
    rng = np.random.default_rng(0)
    vol = np.zeros((16, 16, 16), dtype=bool)
    vol[3:13, 4:12, 2:14] = True
    dirs = rng.normal(size=(20, 3))
    origin = (8.0, 8.0, 8.0)
    many = cast_rays(vol, dirs, origin)
    for d, c in zip(dirs, many):
        assert np.allclose(c, contact_point(vol, d, origin))


def test_zero_direction_rejected():
    vol = np.ones((4, 4, 4), dtype=bool)
    with pytest.raises(ValueError):
        cast_ray(vol, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
    with pytest.raises(ValueError):
        cast_rays(vol, [(1.0, 0.0, 0.0), (0.0, 0.0, 0.0)], (1.0, 1.0, 1.0))
