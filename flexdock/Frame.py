#!/usr/bin/env python3
"""
Rigid Frame

A Frame is one rigid fragment of a flexible ligand. Frames form a tree stored
as a flat list: every frame knows its parent's index and its children's
indices, and a parent always has a smaller index than its children.

Classes:
    Frame: Rigid fragment with its rotatable-bond geometry
"""

from typing import List, Optional

import numpy as np


class Frame:
    """
    Rigid fragment connected to its parent by one rotatable bond.

    The root frame (index 0) is its own parent and has no rotatable bond; its
    placement is given by the six rigid-body coordinates of the ligand.

    Attributes
    ----------
    parent : int
        Index of the parent frame (0 for the root itself)
    rotorX_serial, rotorY_serial : int
        Serial numbers of the rotatable bond atoms. rotorX lies in the parent
        frame, rotorY in this frame and is this frame's origin.
    rotorX_index, rotorY_index : int
        Heavy-atom indices of the same two atoms
    habegin, haend : int
        Heavy-atom index range [habegin, haend) owned by this frame
    hybegin, hyend : int
        Hydrogen index range [hybegin, hyend) owned by this frame
    branches : List[int]
        Child frame indices, in input order
    active : bool
        False when rotating the bond moves no heavy atom besides rotorY
    torsion_index : Optional[int]
        Slot of this frame's torsion among the active torsions, None if inactive
    parent_rotorY_to_current_rotorY : np.ndarray
        Vector from the parent's origin to this frame's origin
    parent_rotorX_to_current_rotorY : np.ndarray
        Unit vector from rotorX to rotorY, the rotation axis of the torsion
    """

    def __init__(self, parent: int, rotorX_serial: int, rotorY_serial: int,
                 rotorX_index: int, habegin: int, hybegin: int):
        self.parent = parent
        self.rotorX_serial = rotorX_serial
        self.rotorY_serial = rotorY_serial
        self.rotorX_index = rotorX_index
        self.rotorY_index: Optional[int] = None
        self.habegin = habegin
        self.haend = habegin
        self.hybegin = hybegin
        self.hyend = hybegin
        self.branches: List[int] = []
        self.active = True
        self.torsion_index: Optional[int] = None
        self.parent_rotorY_to_current_rotorY = np.zeros(3)
        self.parent_rotorX_to_current_rotorY = np.zeros(3)

    @classmethod
    def root(cls) -> 'Frame':
        """Create the ROOT frame; its rotorY is the first heavy atom."""
        frame = cls(0, 0, 0, 0, 0, 0)
        frame.rotorY_index = 0
        frame.active = False
        return frame

    def __repr__(self) -> str:
        return (f"Frame(parent={self.parent}, rotor=({self.rotorX_serial}, {self.rotorY_serial}), "
                f"heavy=[{self.habegin}, {self.haend}), hydrogens=[{self.hybegin}, {self.hyend}), "
                f"active={self.active})")
