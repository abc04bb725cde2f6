#!/usr/bin/env python3
"""
Unit tests for DockingGrid and PairPotential modules.

Tests box geometry, map validation, table layout and archive loading.
"""

import unittest
import numpy as np
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for package imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flexdock import DockingGrid, PairPotential
from flexdock.AtomTyping import XS_C_H, XS_O_A, XS_N_A
from flexdock.PairPotential import (
    NUM_TYPE_PAIRS, DEFAULT_SAMPLES_PER_TYPE_PAIR, type_pair_index, pair_offset
)


class TestDockingGrid(unittest.TestCase):
    """Test search box geometry and maps."""

    def setUp(self):
        self.grid = DockingGrid([0.0, 0.0, 0.0], [10.0, 10.0, 10.0], 1.0,
                                {XS_C_H: np.zeros((12, 12, 12))})

    def test_geometry(self):
        np.testing.assert_allclose(self.grid.corner0, [-5.0, -5.0, -5.0])
        np.testing.assert_allclose(self.grid.corner1, [5.0, 5.0, 5.0])
        self.assertEqual(self.grid.num_probes.tolist(), [12, 12, 12])

    def test_within_is_half_open(self):
        self.assertTrue(self.grid.within([-5.0, 0.0, 4.999]))
        self.assertFalse(self.grid.within([5.0, 0.0, 0.0]))
        self.assertFalse(self.grid.within([0.0, -5.001, 0.0]))
        mask = self.grid.within_mask(np.array([[0.0, 0.0, 0.0], [6.0, 0.0, 0.0]]))
        self.assertEqual(mask.tolist(), [True, False])

    def test_coordinate_to_index(self):
        self.assertEqual(self.grid.coordinate_to_index([-5.0, -4.5, 4.99]).tolist(), [0, 0, 9])
        self.assertEqual(self.grid.coordinate_to_index([0.2, 0.99, 1.0]).tolist(), [5, 5, 6])

    def test_upper_edge_has_upper_neighbor(self):
        # 0.7 / 0.1 rounds down to 6.999..., 0.7 * 10 to 7.000...
        grid = DockingGrid([0.0, 0.0, 0.0], [0.7, 0.7, 0.7], 0.1, {XS_C_H: np.zeros((9, 9, 9))})
        self.assertEqual(grid.num_probes.tolist(), [9, 9, 9])
        point = np.nextafter(grid.corner1, -np.inf)
        self.assertTrue(grid.within(point))
        index = grid.coordinate_to_index(point)
        self.assertTrue(np.all(index + 1 < grid.num_probes))
        indices = grid.coordinate_to_index(np.array([point, grid.corner0]))
        self.assertEqual(indices.shape, (2, 3))
        self.assertEqual(indices[1].tolist(), [0, 0, 0])

    def test_map_shape_mismatch(self):
        with self.assertRaises(ValueError):
            DockingGrid([0.0, 0.0, 0.0], [10.0, 10.0, 10.0], 1.0, {XS_C_H: np.zeros((11, 12, 12))})

    def test_invalid_granularity(self):
        with self.assertRaises(ValueError):
            DockingGrid([0.0, 0.0, 0.0], [10.0, 10.0, 10.0], 0.0, {})

    def test_check_types(self):
        self.grid.check_types([XS_C_H])
        with self.assertRaises(ValueError) as cm:
            self.grid.check_types([XS_C_H, XS_O_A, XS_N_A])
        self.assertIn('N_A', str(cm.exception))
        self.assertIn('O_A', str(cm.exception))

    def test_maps_read_only(self):
        with self.assertRaises(ValueError):
            self.grid.maps[XS_C_H][0, 0, 0] = 1.0

    def test_npz_round_trip(self):
        values = np.arange(12 ** 3, dtype=float).reshape(12, 12, 12)
        grid = DockingGrid([1.0, 2.0, 3.0], [10.0, 10.0, 10.0], 1.0, {XS_O_A: values})
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'grid.npz'
            grid.save_npz(path)
            loaded = DockingGrid.from_npz(path)
        np.testing.assert_allclose(loaded.center, [1.0, 2.0, 3.0])
        self.assertEqual(loaded.granularity, 1.0)
        self.assertEqual(sorted(loaded.maps), [XS_O_A])
        np.testing.assert_array_equal(loaded.maps[XS_O_A], values)


class TestPairPotential(unittest.TestCase):
    """Test pair potential table layout."""

    def test_default_layout(self):
        self.assertEqual(NUM_TYPE_PAIRS, 120)
        self.assertEqual(DEFAULT_SAMPLES_PER_TYPE_PAIR, 1024 * 64 + 1)

    def test_type_pair_index(self):
        self.assertEqual(type_pair_index(0, 0), 0)
        self.assertEqual(type_pair_index(0, 1), 1)
        self.assertEqual(type_pair_index(1, 1), 2)
        self.assertEqual(type_pair_index(3, 5), type_pair_index(5, 3))
        self.assertEqual(type_pair_index(14, 14), 119)
        indices = {type_pair_index(i, j) for i in range(15) for j in range(i, 15)}
        self.assertEqual(indices, set(range(120)))

    def test_offsets(self):
        n = (4 * 64 + 1) * NUM_TYPE_PAIRS
        potential = PairPotential(np.zeros(n), np.zeros(n), samples_per_square_angstrom=4, cutoff=8.0)
        self.assertEqual(potential.num_samples, 257)
        self.assertEqual(potential.cutoff_sqr, 64.0)
        self.assertEqual(potential.offset(2, 1), 257 * 4)
        self.assertEqual(potential.offset(2, 1), pair_offset(1, 2, 257))

    def test_lookup(self):
        n = (4 * 64 + 1) * NUM_TYPE_PAIRS
        potential = PairPotential(np.arange(n, dtype=float), -np.arange(n, dtype=float),
                                  samples_per_square_angstrom=4, cutoff=8.0)
        e, d = potential.lookup(potential.offset(0, 1), 2.3)
        self.assertEqual(e, 257 + 9)
        self.assertEqual(d, -(257 + 9))
        e, d = potential.lookup(np.array([0, potential.offset(1, 1)]), np.array([0.1, 63.9]))
        self.assertEqual(e.tolist(), [0.0, 2 * 257 + 255.0])
        np.testing.assert_array_equal(d, -e)

    def test_wrong_table_length(self):
        with self.assertRaises(ValueError):
            PairPotential(np.zeros(10), np.zeros(10), samples_per_square_angstrom=4, cutoff=8.0)

    def test_npz_round_trip(self):
        n = (2 * 16 + 1) * NUM_TYPE_PAIRS
        potential = PairPotential(np.linspace(0.0, 1.0, n), np.zeros(n), samples_per_square_angstrom=2, cutoff=4.0)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'potential.npz'
            potential.save_npz(path)
            loaded = PairPotential.from_npz(path)
        self.assertEqual(loaded.num_samples, 33)
        self.assertEqual(loaded.cutoff, 4.0)
        np.testing.assert_allclose(loaded.e, potential.e)


if __name__ == '__main__':
    unittest.main()
