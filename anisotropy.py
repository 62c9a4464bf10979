"""
anisotropy.py

Degree of anisotropy (DA) from mean intercept length vectors.

MIL vectors are sampled in many random directions, an ellipsoid is fitted
to their end points, and DA = 1 - r0^2 / r2^2 with r0 the shortest and r2
the longest semi-axis (equivalently 1 - (1/r2^2) / (1/r0^2), the ratio of
the smallest to the largest eigenvalue of the fabric tensor). DA is 0 for
an isotropic structure and tends to 1 for a strongly oriented one.

References
----------
Harrigan TP, Mann RW (1984) Characterization of microstructural anisotropy
in orthotropic materials using a second rank tensor. J Mater Sci 19: 761-767.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ellipsoid import Ellipsoid
from errors import EllipsoidFittingFailedError, InsufficientDataError
from mil import MINIMUM_SAMPLING_DISTANCE, ProgressCallback, sample_mil_vectors
from quadric import MIN_DATA, fit_quadric, quadric_to_ellipsoid

logger = logging.getLogger(__name__)


@dataclass
class AnisotropyResults:
    """Outcome of calculate_anisotropy.

    - degree_of_anisotropy: 1 - r0^2 / r2^2, in [0, 1)
    - radii: fitted semi-axes, ascending
    - eigenvectors: 3x3, column i is the unit axis of radii[i]
    - eigenvalues: 1 / r^2 ascending, i.e. for radii[2], radii[1], radii[0]
    - mil_vectors: (directions, 3) sampled MIL vectors in submission order
    """

    degree_of_anisotropy: float
    radii: np.ndarray
    eigenvectors: np.ndarray
    eigenvalues: np.ndarray
    mil_vectors: np.ndarray
    ellipsoid: Ellipsoid


def degree_of_anisotropy(ellipsoid: Ellipsoid) -> float:
    r = ellipsoid.radii
    return float(1.0 - (r[0] * r[0]) / (r[2] * r[2]))


def fit_mil_ellipsoid(mil_vectors) -> Ellipsoid:
    """Fit an ellipsoid to MIL vector end points.

    A line has no sense of direction, so the MIL of d equals that of -d.
    Each vector is fitted together with its mirror image, so the ellipsoid
    is centred on the origin.

    Raises EllipsoidFittingFailedError if the best-fit quadric is not an
    ellipsoid; InsufficientDataError for fewer than 9 vectors.
    """
    v = np.asarray(mil_vectors, dtype=np.float64)
    if v.ndim != 2 or v.shape[1] != 3:
        raise ValueError(f"MIL vectors must have shape (n, 3), got {v.shape}")
    if v.shape[0] < MIN_DATA:
        raise InsufficientDataError(f"need at least {MIN_DATA} MIL vectors, got {v.shape[0]}")
    quadric = fit_quadric(np.vstack([v, -v]))
    ellipsoid = quadric_to_ellipsoid(quadric)
    if ellipsoid is None:
        raise EllipsoidFittingFailedError(
            "MIL vectors do not describe an ellipsoid; try more directions or lines")
    return ellipsoid


def calculate_anisotropy(volume: np.ndarray,
                         directions: int = 2000,
                         lines_per_direction: int = 10000,
                         sampling_spacing: float = MINIMUM_SAMPLING_DISTANCE,
                         seed: Optional[int] = None,
                         progress: Optional[ProgressCallback] = None,
                         cancel_event: Optional[threading.Event] = None,
                         max_workers: Optional[int] = None) -> AnisotropyResults:
    """Sample MIL vectors, fit their ellipsoid and compute DA.

    Parameters are those of mil.sample_mil_vectors.

    Returns
    -------
    AnisotropyResults

    Raises
    ------
    EllipsoidFittingFailedError
        If the MIL point cloud does not fit an ellipsoid.
    InsufficientDataError
        If fewer than 9 directions are requested; raised before sampling.
    """
    if directions < MIN_DATA:
        raise InsufficientDataError(
            f"need at least {MIN_DATA} sampling directions to fit an ellipsoid, got {directions}")
    t0 = time.time()
    vectors = sample_mil_vectors(volume, directions, lines_per_direction, sampling_spacing,
                                 seed=seed, progress=progress, cancel_event=cancel_event,
                                 max_workers=max_workers)
    ellipsoid = fit_mil_ellipsoid(vectors)
    da = degree_of_anisotropy(ellipsoid)
    logger.info("DA=%.4f radii=%s (%.2fs)", da, np.round(ellipsoid.radii, 4).tolist(), time.time() - t0)
    return AnisotropyResults(
        degree_of_anisotropy=da,
        radii=np.array(ellipsoid.radii),
        eigenvectors=np.array(ellipsoid.orientation),
        eigenvalues=np.sort(ellipsoid.eigenvalues),
        mil_vectors=vectors,
        ellipsoid=ellipsoid,
    )
