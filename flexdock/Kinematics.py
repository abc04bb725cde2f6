#!/usr/bin/env python3
"""
Kinematic Tree

Forward and reverse passes over a ligand's frame tree.

The forward pass places every frame from the generalized coordinates: the
root takes position and orientation from the vector directly, every child
sits at a fixed offset from its parent (rotated by the parent's orientation)
and, when its torsion is active, is additionally rotated about its
rotatable bond. Frames are visited in increasing index order, so a parent is
always placed before its children.

The reverse pass turns per-atom energy derivatives into the gradient over
the generalized coordinates by accumulating forces and torques from the
leaves towards the root, in decreasing index order.

Quaternions are stored as (w, x, y, z) with w the scalar part.

Functions:
    quaternion_multiply: Hamilton product
    axis_angle_to_quaternion: Rotation about a unit axis
    rotation_vector_to_quaternion: Rotation given by an axis scaled by an angle
    quaternion_to_matrix: 3x3 rotation matrix of a unit quaternion
    forward_kinematics: Generalized coordinates -> frame placement and atom positions
    aggregate_gradient: Atom derivatives -> generalized gradient
"""

from typing import Optional

import numpy as np


# Rotation vectors shorter than this are treated as no rotation
ROTATION_VECTOR_EPSILON = 1e-12

IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0])


# =============================================================================
# Quaternion helpers
# =============================================================================

def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 (apply q2 first, then q1)."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ])


def axis_angle_to_quaternion(axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Quaternion of a rotation by `angle` radians about a unit `axis`.

    Parameters
    ----------
    axis : np.ndarray
        Unit vector (3,)
    angle : float
        Rotation angle in radians

    Returns
    -------
    np.ndarray
        Unit quaternion (cos(angle/2), sin(angle/2) * axis)
    """
    h = 0.5 * angle
    s = np.sin(h)
    return np.array([np.cos(h), s * axis[0], s * axis[1], s * axis[2]])


def rotation_vector_to_quaternion(rotation: np.ndarray) -> np.ndarray:
    """Quaternion of the rotation whose axis is `rotation` and angle is its norm."""
    angle = float(np.linalg.norm(rotation))
    if angle < ROTATION_VECTOR_EPSILON:
        return IDENTITY_QUATERNION.copy()
    return axis_angle_to_quaternion(rotation / angle, angle)


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """Rotation matrix of the unit quaternion q."""
    w, x, y, z = q
    ww, xx, yy, zz = w * w, x * x, y * y, z * z
    wx, wy, wz = w * x, w * y, w * z
    xy, xz, yz = x * y, x * z, y * z
    return np.array([
        [ww + xx - yy - zz, 2.0 * (xy - wz), 2.0 * (wy + xz)],
        [2.0 * (wz + xy), ww - xx + yy - zz, 2.0 * (yz - wx)],
        [2.0 * (xz - wy), 2.0 * (wx + yz), ww - xx - yy + zz],
    ])


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    return q / np.linalg.norm(q)


# =============================================================================
# Forward pass
# =============================================================================

class KinematicState:
    """
    Placement of every frame and atom for one generalized coordinate vector.

    Attributes
    ----------
    origins : np.ndarray
        (num_frames, 3) world position of each frame's rotorY
    orientations : np.ndarray
        (num_frames, 4) world orientation quaternion of each frame
    rotations : np.ndarray
        (num_frames, 3, 3) rotation matrices of `orientations`
    axes : np.ndarray
        (num_frames, 3) world-space torsion axis of each active frame
        (zero for the root and inactive frames)
    heavy_atoms : np.ndarray
        (num_heavy_atoms, 3) world coordinates
    hydrogens : Optional[np.ndarray]
        (num_hydrogens, 3) world coordinates, None unless requested
    """

    def __init__(self, origins, orientations, rotations, axes, heavy_atoms, hydrogens=None):
        self.origins = origins
        self.orientations = orientations
        self.rotations = rotations
        self.axes = axes
        self.heavy_atoms = heavy_atoms
        self.hydrogens = hydrogens


def forward_kinematics(ligand, x, include_hydrogens: bool = False) -> KinematicState:
    """
    Place all frames and atoms of `ligand` for the generalized coordinates `x`.

    Parameters
    ----------
    ligand : Ligand
        Ligand whose frames are placed
    x : array-like
        Generalized coordinates of length `ligand.num_coordinates`
    include_hydrogens : bool
        Also compute hydrogen coordinates (only needed to write poses)

    Returns
    -------
    KinematicState

    Raises
    ------
    ValueError
        If `x` has the wrong length
    """
    x = ligand.check_coordinates(x)
    frames = ligand.frames
    num_frames = len(frames)

    o = np.zeros((num_frames, 3))
    q = np.zeros((num_frames, 4))
    m = np.zeros((num_frames, 3, 3))
    a = np.zeros((num_frames, 3))
    c = np.empty((ligand.num_heavy_atoms, 3))
    h = np.empty((ligand.num_hydrogens, 3)) if include_hydrogens else None

    o[0] = x[0:3]
    q[0] = x[3:7]
    rel_heavy = ligand.heavy_atom_coords
    rel_hydrogens = ligand.hydrogen_coords

    for k, f in enumerate(frames):
        m[k] = quaternion_to_matrix(q[k])
        c[f.habegin:f.haend] = o[k] + rel_heavy[f.habegin:f.haend] @ m[k].T
        if include_hydrogens:
            h[f.hybegin:f.hyend] = o[k] + rel_hydrogens[f.hybegin:f.hyend] @ m[k].T
        for i in f.branches:
            b = frames[i]
            o[i] = o[k] + m[k] @ b.parent_rotorY_to_current_rotorY
            if not b.active:
                q[i] = q[k]
                continue
            a[i] = m[k] @ b.parent_rotorX_to_current_rotorY
            q[i] = quaternion_multiply(axis_angle_to_quaternion(a[i], x[7 + b.torsion_index]), q[k])

    return KinematicState(o, q, m, a, c, h)


# =============================================================================
# Reverse pass
# =============================================================================

def aggregate_gradient(ligand, state: KinematicState, derivatives: np.ndarray,
                       out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Gradient over the generalized coordinates from per-atom derivatives.

    Forces and torques (about each frame origin) are summed per frame and
    propagated to the parent frame, from the last frame down to the root.
    The torsion entry of an active frame is its accumulated torque projected
    on its rotation axis; the first six entries are the root's total force
    and torque.

    Parameters
    ----------
    ligand : Ligand
        Ligand the state belongs to
    state : KinematicState
        Result of `forward_kinematics` for the same coordinates
    derivatives : np.ndarray
        (num_heavy_atoms, 3) energy derivatives with respect to atom positions
    out : np.ndarray, optional
        Array of length `ligand.num_variables` to fill

    Returns
    -------
    np.ndarray
        Gradient of length `ligand.num_variables`
    """
    frames = ligand.frames
    num_frames = len(frames)
    o = state.origins
    c = state.heavy_atoms
    g = np.zeros(ligand.num_variables) if out is None else out

    gf = np.zeros((num_frames, 3))
    gt = np.zeros((num_frames, 3))
    for k in range(num_frames - 1, 0, -1):
        f = frames[k]
        d = derivatives[f.habegin:f.haend]
        gf[k] += d.sum(axis=0)
        gt[k] += np.cross(c[f.habegin:f.haend] - o[k], d).sum(axis=0)

        p = f.parent
        gf[p] += gf[k]
        gt[p] += gt[k] + np.cross(o[k] - o[p], gf[k])

        if f.active:
            g[6 + f.torsion_index] = gt[k] @ state.axes[k]

    root = frames[0]
    d = derivatives[root.habegin:root.haend]
    gf[0] += d.sum(axis=0)
    gt[0] += np.cross(c[root.habegin:root.haend] - o[0], d).sum(axis=0)

    g[0:3] = gf[0]
    g[3:6] = gt[0]
    return g
