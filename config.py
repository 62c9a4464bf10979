"""
config.py

YAML run configuration for analysis.py.

Example
-------

    phantom: xy_sheets        # or leave out and pass a volume programmatically
    size: 50
    spacing: [1.0, 1.0, 1.0]
    seed: 12345
    anisotropy:
      directions: 100
      lines_per_direction: 25
      sampling_spacing: 1.7320508
    ellipsoid_fit:
      n_directions: 200
      max_iterations: 50
      tolerance: 0.5
    output_dir: ./out
    plot: true
    verbose: true

Unknown keys are ignored so a single file can carry notes for other tools.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

import yaml

from ellipsoid_fit import DEFAULT_DIRECTIONS as FIT_DIRECTIONS
from ellipsoid_fit import DEFAULT_MAX_ITERATIONS, DEFAULT_TOLERANCE
from mil import DEFAULT_DIRECTIONS, DEFAULT_LINES, MINIMUM_SAMPLING_DISTANCE


def parse_config(path: str) -> dict:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(cfg).__name__}")
    return cfg


def _known(cls, d: Optional[dict]) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (d or {}).items() if k in names}


@dataclass
class AnisotropyConfig:
    """Parameters of MIL sampling.

    - directions: number of random sampling directions
    - lines_per_direction: line budget per direction
    - sampling_spacing: distance between samples along a line (voxels)
    - seed: optional seed making the sampling reproducible
    - max_workers: thread pool size, None for all CPUs
    """

    directions: int = DEFAULT_DIRECTIONS
    lines_per_direction: int = DEFAULT_LINES
    sampling_spacing: float = MINIMUM_SAMPLING_DISTANCE
    seed: Optional[int] = None
    max_workers: Optional[int] = None

    def __post_init__(self):
        self.directions = int(self.directions)
        self.lines_per_direction = int(self.lines_per_direction)
        self.sampling_spacing = float(self.sampling_spacing)
        if self.directions < 1:
            raise ValueError("anisotropy.directions must be >= 1")
        if self.lines_per_direction < 1:
            raise ValueError("anisotropy.lines_per_direction must be >= 1")
        if not math.isfinite(self.sampling_spacing) or self.sampling_spacing <= 0.0:
            raise ValueError("anisotropy.sampling_spacing must be positive")

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "AnisotropyConfig":
        return cls(**_known(cls, d))


@dataclass
class EllipsoidFitConfig:
    n_directions: int = FIT_DIRECTIONS
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE

    def __post_init__(self):
        self.n_directions = int(self.n_directions)
        self.max_iterations = int(self.max_iterations)
        self.tolerance = float(self.tolerance)
        if self.n_directions < 9:
            raise ValueError("ellipsoid_fit.n_directions must be >= 9")
        if self.max_iterations < 1:
            raise ValueError("ellipsoid_fit.max_iterations must be >= 1")
        if self.tolerance <= 0.0:
            raise ValueError("ellipsoid_fit.tolerance must be positive")

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "EllipsoidFitConfig":
        return cls(**_known(cls, d))


@dataclass
class AnalysisConfig:
    phantom: Optional[str] = None
    size: int = 64
    spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    seed: Optional[int] = None
    anisotropy: AnisotropyConfig = field(default_factory=AnisotropyConfig)
    ellipsoid_fit: EllipsoidFitConfig = field(default_factory=EllipsoidFitConfig)
    output_dir: str = "."
    plot: bool = False
    verbose: bool = False

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "AnalysisConfig":
        d = dict(d or {})
        kw = _known(cls, d)
        aniso = dict(d.get("anisotropy") or {})
        # a top-level seed applies to sampling unless overridden there
        if "seed" in d and "seed" not in aniso:
            aniso["seed"] = d["seed"]
        kw["anisotropy"] = AnisotropyConfig.from_dict(aniso)
        kw["ellipsoid_fit"] = EllipsoidFitConfig.from_dict(d.get("ellipsoid_fit"))
        if "spacing" in kw:
            sp = tuple(float(s) for s in kw["spacing"])
            if len(sp) != 3 or any(s <= 0.0 for s in sp):
                raise ValueError(f"spacing must be three positive numbers, got {kw['spacing']}")
            kw["spacing"] = sp
        if "size" in kw:
            kw["size"] = int(kw["size"])
        return cls(**kw)


def load_config(path: str) -> AnalysisConfig:
    return AnalysisConfig.from_dict(parse_config(path))
