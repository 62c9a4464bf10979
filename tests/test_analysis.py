from __future__ import annotations

import os
import sys

import numpy as np

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from analysis import analyze, deepest_point
from config import AnalysisConfig
from phantoms import PHANTOMS, cuboid, make_phantom, sphere
from plot_anisotropy import make_pngs


def _small_config():
    return AnalysisConfig.from_dict({
        "seed": 3,
        "anisotropy": {"directions": 30, "lines_per_direction": 16},
        "ellipsoid_fit": {"n_directions": 100},
    })


def test_deepest_point():
    vol = cuboid((20, 20, 20), (4, 4, 4), (15, 15, 15))
    p = deepest_point(vol)
    assert np.allclose(p, [9.0, 9.0, 9.0], atol=1.0)
    assert deepest_point(np.zeros((4, 4, 4), dtype=bool)) is None


def test_analyze_cuboid():
    vol = cuboid((24, 24, 24), (6, 6, 6), (18, 18, 18))
    out = analyze(vol, _small_config())
    assert out["euler"] == 1.0
    assert out["connectivity"] == 0.0
    assert "degree_of_anisotropy" in out
    assert out["mil_vectors"].shape == (30, 3) or "anisotropy_error" in out
    assert "fit_radii" in out or "fit_error" in out


def test_analyze_sphere_fits_ellipsoid():
    vol = sphere((33, 33, 33), (16, 16, 16), 10.0)
    out = analyze(vol, _small_config())
    assert "fit_error" not in out
    assert np.allclose(out["fit_seed"], 16.0)
    assert np.linalg.norm(out["fit_center"] - 16.0) < 1.0
    assert np.all((out["fit_radii"] > 8.5) & (out["fit_radii"] < 11.5))
    assert out["fit_volume"] > 0.0


def test_make_phantom_names():
    for name in PHANTOMS:
        vol = make_phantom(name, 32, seed=0)
        assert vol.ndim == 3 and vol.dtype == bool and vol.any()


def test_make_pngs(tmp_path):
    rng = np.random.default_rng(0)
    v = rng.normal(size=(40, 3))
    v = v / np.linalg.norm(v, axis=1)[:, None] * np.array([2.0, 3.0, 1.0])
    path = tmp_path / "run.npz"
    np.savez(path, mil_vectors=v, radii=np.array([1.0, 2.0, 3.0]),
             eigenvectors=np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [1.0, 0.0, 0.0]]),
             mil_center=np.zeros(3), degree_of_anisotropy=np.float64(1.0 - 1.0 / 9.0))
    make_pngs(str(path), str(tmp_path))
    assert (tmp_path / "run_mil_sections.png").exists()
