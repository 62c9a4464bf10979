from __future__ import annotations

import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import AnalysisConfig, AnisotropyConfig, EllipsoidFitConfig, load_config, parse_config
from mil import DEFAULT_DIRECTIONS, DEFAULT_LINES, MINIMUM_SAMPLING_DISTANCE

YAML = """
phantom: xy_sheets
size: 40
spacing: [0.5, 0.5, 1.0]
seed: 7
anisotropy:
  directions: 100
  lines_per_direction: 25
ellipsoid_fit:
  n_directions: 300
  tolerance: 0.25
output_dir: ./out
plot: true
notes: ignored by the loader
"""


def test_parse_config(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(YAML)
    cfg = parse_config(str(path))
    assert cfg["phantom"] == "xy_sheets"
    assert cfg["anisotropy"]["directions"] == 100


def test_load_config(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(YAML)
    cfg = load_config(str(path))
    assert isinstance(cfg, AnalysisConfig)
    assert cfg.phantom == "xy_sheets"
    assert cfg.size == 40
    assert cfg.spacing == (0.5, 0.5, 1.0)
    assert cfg.anisotropy.directions == 100
    assert cfg.anisotropy.lines_per_direction == 25
    assert cfg.anisotropy.sampling_spacing == pytest.approx(MINIMUM_SAMPLING_DISTANCE)
    # top-level seed flows into sampling
    assert cfg.anisotropy.seed == 7
    assert cfg.ellipsoid_fit.n_directions == 300
    assert cfg.ellipsoid_fit.tolerance == 0.25
    assert cfg.plot is True


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    cfg = load_config(str(path))
    assert cfg.phantom is None
    assert cfg.anisotropy.directions == DEFAULT_DIRECTIONS
    assert cfg.anisotropy.lines_per_direction == DEFAULT_LINES


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        parse_config(str(path))


def test_invalid_values():
    with pytest.raises(ValueError):
        AnisotropyConfig(directions=0)
    with pytest.raises(ValueError):
        AnisotropyConfig(sampling_spacing=-1.0)
    with pytest.raises(ValueError):
        EllipsoidFitConfig(n_directions=4)
    with pytest.raises(ValueError):
        AnalysisConfig.from_dict({"spacing": [1.0, 0.0, 1.0]})


def test_sampling_seed_overrides_top_level():
    cfg = AnalysisConfig.from_dict({"seed": 1, "anisotropy": {"seed": 2}})
    assert cfg.seed == 1
    assert cfg.anisotropy.seed == 2
