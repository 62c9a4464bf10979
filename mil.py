"""
mil.py

Mean intercept length (MIL) vectors of a binary volume.

For each sampling direction a random rotation turns a square grid of
parallel lines (the plane is as wide as the volume's diagonal and passes
through its centroid) into the direction. Each line is clipped to the
volume box [0, nx] x [0, ny] x [0, nz] and sampled at a fixed spacing,
counting phase changes between background and foreground. Lines are drawn
until their total clipped length reaches diagonal * lines_per_direction,
and the direction's MIL vector is

    direction * total_length / max(intercepts, 1).

Directions are independent tasks on a thread pool; the hot loop is a numba
kernel compiled with nogil so the tasks run in parallel.

Notes
-----
- A sample at position p reads voxel floor(p) (voxel [i, i+1) on each axis).
- Every cycle through the grid cells draws one fresh random offset inside
  a cell, so repeated cycles do not resample the same lines.
- Results are ordered by task submission, so a fixed seed reproduces the
  same vectors whatever the thread scheduling.
"""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np
from numba import njit
from scipy.spatial.transform import Rotation

from errors import SamplingCancelledError
from volume import as_binary_volume, diagonal

logger = logging.getLogger(__name__)

MINIMUM_SAMPLING_DISTANCE = math.sqrt(3.0)
DEFAULT_DIRECTIONS = 2000
DEFAULT_LINES = 10000

# Cap on grid cycles per direction; a cycle covers the whole plane once.
MAX_CYCLES = 1000

ProgressCallback = Callable[[int, int], None]


@njit(nogil=True, cache=True)
def _count_intercepts(mask, origins, direction, t_start, samples, increment):
    nx, ny, nz = mask.shape
    dx, dy, dz = direction[0], direction[1], direction[2]
    total = 0
    for n in range(origins.shape[0]):
        ox, oy, oz = origins[n, 0], origins[n, 1], origins[n, 2]
        previous = False
        for s in range(samples[n]):
            t = t_start[n] + s * increment
            ix = int(np.floor(ox + t * dx))
            iy = int(np.floor(oy + t * dy))
            iz = int(np.floor(oz + t * dz))
            current = False
            if 0 <= ix < nx and 0 <= iy < ny and 0 <= iz < nz:
                current = mask[ix, iy, iz]
            if current != previous:
                total += 1
                previous = current
    return total


def _grid_origins(rotation: np.ndarray, sections: int, size: float, centroid: np.ndarray,
                  rng: np.random.Generator) -> np.ndarray:
    """Origins of one cycle of sections^2 parallel lines, shape (sections^2, 3)."""
    t_offset, u_offset = rng.random(2) / sections
    cells = np.arange(sections, dtype=np.float64) / sections
    T, U = np.meshgrid(cells + t_offset, cells + u_offset, indexing="ij")
    plane = np.column_stack([
        T.ravel() * size - 0.5 * size,
        U.ravel() * size - 0.5 * size,
        np.zeros(T.size),
    ])
    return plane @ rotation.T + centroid


def _clip_to_box(origins: np.ndarray, direction: np.ndarray, dims: np.ndarray):
    """Parametric entry/exit of lines through the box [0, dims]; also a hit mask."""
    nonzero = direction != 0.0
    inv = np.divide(1.0, direction, out=np.zeros(3), where=nonzero)
    t1 = -origins * inv
    t2 = (dims - origins) * inv
    inside = (origins >= 0.0) & (origins < dims)
    lo = np.where(nonzero, np.minimum(t1, t2), np.where(inside, -np.inf, np.inf))
    hi = np.where(nonzero, np.maximum(t1, t2), np.where(inside, np.inf, -np.inf))
    t_min = lo.max(axis=1)
    t_max = hi.min(axis=1)
    return t_min, t_max, t_max > t_min


def mil_vector(volume: np.ndarray,
               rotation: np.ndarray,
               lines_per_direction: int,
               sampling_spacing: float,
               rng: np.random.Generator) -> np.ndarray:
    """MIL vector for the direction R @ (0, 0, 1) of one rotation matrix R.

    Parameters
    ----------
    volume : 3D bool array
    rotation : (3, 3) array
        Proper rotation matrix.
    lines_per_direction : int
        Sets the sampled length budget, diagonal * lines_per_direction, and
        the grid, floor(sqrt(lines_per_direction)) cells per side.
    sampling_spacing : float
        Distance between samples along a line.
    rng : numpy Generator
        Source of the in-cell offsets and sampling phases.

    Returns
    -------
    (3,) float64 array
    """
    mask = as_binary_volume(volume)
    R = np.asarray(rotation, dtype=np.float64)
    direction = np.ascontiguousarray(R[:, 2])
    dims = np.array(mask.shape, dtype=np.float64)
    size = diagonal(mask.shape)
    centroid = 0.5 * dims
    budget = size * lines_per_direction
    # Summed segment lengths may fall short of the budget by rounding
    slack = 1e-9 * budget
    sections = max(1, int(math.sqrt(lines_per_direction)))

    total_length = 0.0
    intercepts = 0
    for _ in range(MAX_CYCLES):
        remaining = budget - total_length
        if remaining <= slack:
            break
        origins = _grid_origins(R, sections, size, centroid, rng)
        t_min, t_max, hit = _clip_to_box(origins, direction, dims)
        if not hit.any():
            continue
        origins, t_min, t_max = origins[hit], t_min[hit], t_max[hit]

        lengths = t_max - t_min
        before = np.cumsum(lengths) - lengths
        keep = before < remaining
        origins, t_min, t_max = origins[keep], t_min[keep], t_max[keep]
        lengths, before = lengths[keep], before[keep]
        # Truncate the line that crosses the budget
        last = lengths.size - 1
        if before[last] + lengths[last] > remaining:
            lengths[last] = remaining - before[last]
            t_max[last] = t_min[last] + lengths[last]

        t_start = t_min + rng.random(lengths.size) * sampling_spacing
        samples = np.ceil((t_max - t_start) / sampling_spacing)
        samples = np.maximum(samples, 0.0).astype(np.int64)
        intercepts += int(_count_intercepts(mask, np.ascontiguousarray(origins), direction,
                                            t_start, samples, float(sampling_spacing)))
        total_length += float(lengths.sum())
    if budget - total_length > slack:
        logger.warning("MIL sampling stopped after %d grid cycles with %.1f of %.1f length sampled",
                       MAX_CYCLES, total_length, budget)

    return direction * (total_length / max(intercepts, 1))


def _check_parameters(directions: int, lines_per_direction: int, sampling_spacing: float) -> None:
    if directions < 1:
        raise ValueError(f"directions must be >= 1, got {directions}")
    if lines_per_direction < 1:
        raise ValueError(f"lines_per_direction must be >= 1, got {lines_per_direction}")
    if not math.isfinite(sampling_spacing) or sampling_spacing <= 0.0:
        raise ValueError(f"sampling_spacing must be positive, got {sampling_spacing}")
    if sampling_spacing < MINIMUM_SAMPLING_DISTANCE:
        logger.warning("sampling spacing %.3f is below sqrt(3); successive samples may hit the "
                       "same voxel", sampling_spacing)


def random_rotations(n: int, rng: np.random.Generator) -> np.ndarray:
    """n uniformly distributed rotation matrices from normalised 4D Gaussians."""
    q = rng.standard_normal((n, 4))
    q /= np.linalg.norm(q, axis=1)[:, None]
    return Rotation.from_quat(q).as_matrix()


def sample_mil_vectors(volume: np.ndarray,
                       directions: int = DEFAULT_DIRECTIONS,
                       lines_per_direction: int = DEFAULT_LINES,
                       sampling_spacing: float = MINIMUM_SAMPLING_DISTANCE,
                       seed: Optional[int] = None,
                       progress: Optional[ProgressCallback] = None,
                       cancel_event: Optional[threading.Event] = None,
                       max_workers: Optional[int] = None) -> np.ndarray:
    """Sample one MIL vector per random direction.

    Parameters
    ----------
    volume : 3D array
        Binary volume indexed [x, y, z]; shared read-only by all tasks.
    directions : int
        Number of random sampling directions (one task each).
    lines_per_direction : int
        Line budget per direction, see mil_vector.
    sampling_spacing : float
        Sample spacing along lines, in voxels.
    seed : int, optional
        Makes rotations and line placement reproducible.
    progress : callable(completed, total), optional
        Called once per finished direction, serialised, with increasing
        ``completed``.
    cancel_event : threading.Event, optional
        When set, directions not yet started are skipped and
        SamplingCancelledError is raised.
    max_workers : int, optional
        Pool size; defaults to os.cpu_count().

    Returns
    -------
    (directions, 3) float64 array in task submission order.
    """
    mask = as_binary_volume(volume)
    _check_parameters(directions, lines_per_direction, sampling_spacing)

    root = np.random.SeedSequence(seed)
    rotation_seq, line_seq = root.spawn(2)
    rotations = random_rotations(directions, np.random.default_rng(rotation_seq))
    task_rngs = [np.random.default_rng(s) for s in line_seq.spawn(directions)]

    workers = max_workers or os.cpu_count() or 1
    lock = threading.Lock()
    completed = 0

    def task(i: int) -> np.ndarray:
        nonlocal completed
        if cancel_event is not None and cancel_event.is_set():
            raise SamplingCancelledError(f"MIL sampling cancelled before direction {i}")
        v = mil_vector(mask, rotations[i], lines_per_direction, sampling_spacing, task_rngs[i])
        with lock:
            completed += 1
            if progress is not None:
                progress(completed, directions)
        return v

    t0 = time.time()
    out = np.empty((directions, 3), dtype=np.float64)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(task, i) for i in range(directions)]
        try:
            for i, fut in enumerate(futures):
                out[i] = fut.result()
        except SamplingCancelledError:
            for fut in futures:
                fut.cancel()
            raise
    logger.info("sampled %d MIL directions with %d workers in %.2fs", directions, workers, time.time() - t0)
    return out
