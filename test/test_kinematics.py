#!/usr/bin/env python3
"""
Unit tests for Kinematics module.

Tests quaternion helpers, forward kinematics over the frame tree and the
reverse force/torque aggregation.
"""

import unittest
import numpy as np
import sys
from pathlib import Path

# Add parent directory to path for package imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flexdock import Ligand
from flexdock.Kinematics import (
    quaternion_multiply, axis_angle_to_quaternion, rotation_vector_to_quaternion,
    quaternion_to_matrix, normalize_quaternion, forward_kinematics, aggregate_gradient
)


def rotation_about_z(angle):
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class TestQuaternions(unittest.TestCase):
    """Test quaternion helpers."""

    def test_identity(self):
        np.testing.assert_allclose(quaternion_to_matrix(np.array([1.0, 0.0, 0.0, 0.0])), np.eye(3))

    def test_axis_angle(self):
        q = axis_angle_to_quaternion(np.array([0.0, 0.0, 1.0]), np.pi / 2)
        np.testing.assert_allclose(q, [np.cos(np.pi / 4), 0.0, 0.0, np.sin(np.pi / 4)])
        np.testing.assert_allclose(quaternion_to_matrix(q), rotation_about_z(np.pi / 2), atol=1e-12)

    def test_multiply_composes_rotations(self):
        z = np.array([0.0, 0.0, 1.0])
        x = np.array([1.0, 0.0, 0.0])
        q1 = axis_angle_to_quaternion(z, 0.3)
        q2 = axis_angle_to_quaternion(x, 1.1)
        m = quaternion_to_matrix(quaternion_multiply(q1, q2))
        np.testing.assert_allclose(m, quaternion_to_matrix(q1) @ quaternion_to_matrix(q2), atol=1e-12)

    def test_multiply_identity(self):
        q = normalize_quaternion([0.2, -0.4, 0.5, 0.7])
        np.testing.assert_allclose(quaternion_multiply(np.array([1.0, 0.0, 0.0, 0.0]), q), q)
        self.assertAlmostEqual(np.linalg.norm(q), 1.0)

    def test_rotation_vector(self):
        v = np.array([0.0, 0.0, 0.5])
        np.testing.assert_allclose(rotation_vector_to_quaternion(v),
                                   axis_angle_to_quaternion(np.array([0.0, 0.0, 1.0]), 0.5))
        np.testing.assert_allclose(rotation_vector_to_quaternion(np.zeros(3)), [1.0, 0.0, 0.0, 0.0])

    def test_matrix_is_orthonormal(self):
        q = normalize_quaternion([0.3, 0.1, -0.8, 0.4])
        m = quaternion_to_matrix(q)
        np.testing.assert_allclose(m @ m.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(m), 1.0)


class TestForwardKinematics(unittest.TestCase):
    """Test placement of frames and atoms."""

    def setUp(self):
        self.ligand_file = Path(__file__).parent / 'fixtures' / 'branched.pdbqt'
        if not self.ligand_file.exists():
            self.skipTest(f"Test ligand not found: {self.ligand_file}")
        self.ligand = Ligand.from_file(self.ligand_file)
        self.input_heavy = np.array([
            [0.0, 0.0, 0.0], [1.25, 0.85, 0.0], [2.5, 0.0, 0.0], [3.75, 0.85, 0.0],
            [5.0, 0.0, 0.0], [6.2, 0.8, 0.0], [3.75, 2.35, 0.0], [3.75, 3.85, 0.0],
        ])

    def identity_pose(self, torsions=(0.0, 0.0), position=(0.0, 0.0, 0.0)):
        return np.concatenate([position, [1.0, 0.0, 0.0, 0.0], torsions])

    def test_identity_reproduces_input(self):
        state = forward_kinematics(self.ligand, self.identity_pose(), include_hydrogens=True)
        np.testing.assert_allclose(state.heavy_atoms, self.input_heavy, atol=1e-12)
        np.testing.assert_allclose(state.hydrogens, [[7.1, 0.3, 0.0]], atol=1e-12)
        np.testing.assert_allclose(state.origins[3], [3.75, 2.35, 0.0], atol=1e-12)

    def test_hydrogens_only_on_request(self):
        state = forward_kinematics(self.ligand, self.identity_pose())
        self.assertIsNone(state.hydrogens)

    def test_translation(self):
        shift = np.array([1.0, -2.0, 3.5])
        state = forward_kinematics(self.ligand, self.identity_pose(position=shift))
        np.testing.assert_allclose(state.heavy_atoms, self.input_heavy + shift, atol=1e-12)

    def test_root_rotation(self):
        q = axis_angle_to_quaternion(np.array([0.0, 0.0, 1.0]), 0.7)
        x = np.concatenate([[0.0, 0.0, 0.0], q, [0.0, 0.0]])
        state = forward_kinematics(self.ligand, x)
        np.testing.assert_allclose(state.heavy_atoms, self.input_heavy @ rotation_about_z(0.7).T, atol=1e-12)

    def test_torsion_preserves_rotor_and_bond_lengths(self):
        state0 = forward_kinematics(self.ligand, self.identity_pose())
        state = forward_kinematics(self.ligand, self.identity_pose(torsions=(np.pi / 2, 0.0)))
        c0, c = state0.heavy_atoms, state.heavy_atoms
        # Root atoms and both rotor atoms of the first torsion stay in place
        np.testing.assert_allclose(c[:4], c0[:4], atol=1e-12)
        self.assertFalse(np.allclose(c[4], c0[4]))
        for i, j in [(3, 4), (4, 5), (3, 6), (6, 7)]:
            self.assertAlmostEqual(np.linalg.norm(c[i] - c[j]), np.linalg.norm(c0[i] - c0[j]))

    def test_torsion_full_turn(self):
        state0 = forward_kinematics(self.ligand, self.identity_pose())
        state = forward_kinematics(self.ligand, self.identity_pose(torsions=(2 * np.pi, 2 * np.pi)))
        np.testing.assert_allclose(state.heavy_atoms, state0.heavy_atoms, atol=1e-9)

    def test_second_torsion_moves_only_its_branch(self):
        state0 = forward_kinematics(self.ligand, self.identity_pose())
        # Rotating about the 4-8 bond (the y axis) by pi mirrors nothing: atom 9 lies on the axis
        state = forward_kinematics(self.ligand, self.identity_pose(torsions=(0.0, np.pi)))
        np.testing.assert_allclose(state.heavy_atoms, state0.heavy_atoms, atol=1e-12)
        self.assertFalse(np.allclose(state.orientations[3], state0.orientations[3]))

    def test_inactive_frame_inherits_orientation(self):
        state = forward_kinematics(self.ligand, self.identity_pose(torsions=(0.4, 0.0)))
        np.testing.assert_allclose(state.orientations[2], state.orientations[1])
        np.testing.assert_allclose(state.axes[2], np.zeros(3))

    def test_wrong_length(self):
        with self.assertRaises(ValueError):
            forward_kinematics(self.ligand, np.zeros(7))


class TestGradientAggregation(unittest.TestCase):
    """Test reverse aggregation of atom derivatives."""

    def setUp(self):
        self.ligand_file = Path(__file__).parent / 'fixtures' / 'branched.pdbqt'
        if not self.ligand_file.exists():
            self.skipTest(f"Test ligand not found: {self.ligand_file}")
        self.ligand = Ligand.from_file(self.ligand_file)
        q = normalize_quaternion([0.9, 0.1, -0.3, 0.2])
        self.x = np.concatenate([[1.0, 2.0, -1.0], q, [0.6, -1.2]])
        self.state = forward_kinematics(self.ligand, self.x)

    def subtree_atoms(self, k):
        frames = self.ligand.frames
        atoms = list(range(frames[k].habegin, frames[k].haend))
        for b in frames[k].branches:
            atoms.extend(self.subtree_atoms(b))
        return atoms

    def test_matches_force_and_torque_sums(self):
        rng = np.random.default_rng(7)
        d = rng.normal(size=(self.ligand.num_heavy_atoms, 3))
        g = aggregate_gradient(self.ligand, self.state, d)
        c = self.state.heavy_atoms
        o = self.state.origins

        self.assertEqual(g.shape, (self.ligand.num_variables,))
        np.testing.assert_allclose(g[0:3], d.sum(axis=0), atol=1e-12)
        np.testing.assert_allclose(g[3:6], np.cross(c - o[0], d).sum(axis=0), atol=1e-12)
        for k, f in enumerate(self.ligand.frames):
            if not f.active:
                continue
            atoms = self.subtree_atoms(k)
            torque = np.cross(c[atoms] - o[k], d[atoms]).sum(axis=0)
            self.assertAlmostEqual(g[6 + f.torsion_index], torque @ self.state.axes[k])

    def test_uniform_force_on_chain(self):
        ligand_file = Path(__file__).parent / 'fixtures' / 'chain5.pdbqt'
        ligand = Ligand.from_file(ligand_file)
        x = np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0])
        state = forward_kinematics(ligand, x)
        d = np.tile([0.0, 0.0, 1.0], (ligand.num_heavy_atoms, 1))
        g = aggregate_gradient(ligand, state, d)
        np.testing.assert_allclose(g[0:3], [0.0, 0.0, 5.0])
        # Torque of a uniform z force about the origin: sum of (y, -x, 0)
        c = state.heavy_atoms
        np.testing.assert_allclose(g[3:6], [c[:, 1].sum(), -c[:, 0].sum(), 0.0], atol=1e-12)


if __name__ == '__main__':
    unittest.main()
