from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from octant import OCTANT_OFFSETS, Octant, octant_index


def test_single_voxel_sets_one_bit_per_anchor():
    vol = np.zeros((3, 3, 3), dtype=bool)
    vol[1, 1, 1] = True
    # The voxel is corner b of the octant anchored at (1,1,1) - offset[b]
    for b, (dx, dy, dz) in enumerate(OCTANT_OFFSETS):
        assert octant_index(vol, 1 - int(dx), 1 - int(dy), 1 - int(dz)) == 1 << b


def test_bit_order():
    vol = np.zeros((2, 2, 2), dtype=bool)
    vol[1, 0, 0] = True   # bit 1
    vol[0, 1, 0] = True   # bit 2
    vol[0, 0, 1] = True   # bit 4
    assert octant_index(vol, 0, 0, 0) == 0b00010110


def test_out_of_bounds_reads_background():
    vol = np.ones((2, 2, 2), dtype=bool)
    assert octant_index(vol, 0, 0, 0) == 255
    assert octant_index(vol, -1, -1, -1) == 128
    assert octant_index(vol, 1, 1, 1) == 1
    assert octant_index(vol, 5, 5, 5) == 0
    assert octant_index(vol, -2, 0, 0) == 0


def test_nonzero_values_are_foreground():
    vol = np.zeros((2, 2, 2), dtype=np.uint8)
    vol[0, 0, 0] = 255
    vol[1, 1, 1] = 3
    assert octant_index(vol, 0, 0, 0) == 0b10000001


def test_octant_value():
    o = Octant.from_index(0b1011)
    assert o.voxels == (True, True, False, True, False, False, False, False)
    assert o.neighbors == 3
    assert o.index == 0b1011
    assert not o.is_empty
    assert Octant.from_index(0).is_empty


def test_octant_from_volume_matches_index():
    rng = np.random.default_rng(3)
    vol = rng.random((4, 4, 4)) < 0.5
    for x, y, z in [(0, 0, 0), (2, 1, 3), (-1, 3, 0)]:
        o = Octant.from_volume(vol, x, y, z)
        assert o.index == octant_index(vol, x, y, z)


def test_invalid_index_rejected():
    with pytest.raises(ValueError):
        Octant.from_index(256)
    with pytest.raises(ValueError):
        Octant.from_index(-1)


def test_non_3d_volume_rejected():
    with pytest.raises(ValueError):
        octant_index(np.zeros((4, 4), dtype=bool), 0, 0, 0)
