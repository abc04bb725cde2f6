#!/usr/bin/env python3
"""
Flexible Ligand

This module provides the Ligand class: the immutable result of parsing a
PDBQT ligand into a tree of rigid frames. A Ligand knows its frames, atoms,
bond graph, scored intramolecular pairs and the record lines needed to write
poses back out; it holds no per-pose state.

Generalized coordinates of a pose (length `num_coordinates`):
    x[0:3]   position of the root frame origin
    x[3:7]   root orientation as a unit quaternion (w, x, y, z)
    x[7:]    one torsion angle (radians) per active frame

Gradients have length `num_variables`: three position components, three
orientation components (a torque vector) and one entry per active torsion.

Classes:
    InteractingPairs: Heavy-atom index pairs with their potential table offsets
    Ligand: Frame tree with atom and pair data
"""

from collections import namedtuple
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from .AtomTyping import Atom, xs_type_names
from .Frame import Frame
from .IOTools import read_ligand_lines
from .PairPotential import DEFAULT_SAMPLES_PER_TYPE_PAIR
from .TopologyBuilder import TopologyBuilder


InteractingPairs = namedtuple('InteractingPairs', ['i1', 'i2', 'offset'])


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class Ligand:
    """
    Flexible ligand described as a tree of rigid frames.

    Attributes
    ----------
    name : str
        Label of the ligand, usually its file name
    frames : Tuple[Frame, ...]
        Frame tree; frames[0] is the root and parents precede children
    heavy_atoms : Tuple[Atom, ...]
        Scored atoms, grouped by frame
    hydrogens : Tuple[Atom, ...]
        Hydrogens, grouped by frame; only used to write poses
    bonds : Tuple[Tuple[int, ...], ...]
        Covalent neighbors of each heavy atom
    interacting_pairs : InteractingPairs
        Arrays i1, i2 (heavy-atom indices, i1 in an earlier frame than i2)
        and offset (start of the pair's block in the potential tables)
    heavy_atom_coords : np.ndarray
        (num_heavy_atoms, 3) coordinates relative to each atom's frame origin
    hydrogen_coords : np.ndarray
        (num_hydrogens, 3) coordinates relative to each atom's frame origin
    xs : np.ndarray
        XS type index of each heavy atom
    lines : Tuple[str, ...]
        Kept input records, in input order
    line_kinds : Tuple[str, ...]
        'heavy', 'hydrogen' or 'record' for each kept line
    num_samples : int
        Samples per type pair assumed when computing pair offsets
    """

    def __init__(self, name: str, frames: List[Frame], heavy_atoms: List[Atom], hydrogens: List[Atom],
                 bonds: List[List[int]], pair_i1, pair_i2, pair_offsets,
                 num_active_torsions: int, lines: List[str], line_kinds: List[str],
                 num_samples: int = DEFAULT_SAMPLES_PER_TYPE_PAIR):
        self.name = name
        self.frames: Tuple[Frame, ...] = tuple(frames)
        self.heavy_atoms: Tuple[Atom, ...] = tuple(heavy_atoms)
        self.hydrogens: Tuple[Atom, ...] = tuple(hydrogens)
        self.bonds = tuple(tuple(b) for b in bonds)
        self.interacting_pairs = InteractingPairs(_read_only(np.asarray(pair_i1, dtype=np.intp)),
                                                  _read_only(np.asarray(pair_i2, dtype=np.intp)),
                                                  _read_only(np.asarray(pair_offsets, dtype=np.intp)))
        self.num_active_torsions = num_active_torsions
        self.lines = tuple(lines)
        self.line_kinds = tuple(line_kinds)
        self.num_samples = num_samples

        self.heavy_atom_coords = _read_only(np.array([a.coord for a in self.heavy_atoms],
                                                     dtype=np.float64).reshape(-1, 3))
        self.hydrogen_coords = _read_only(np.array([a.coord for a in self.hydrogens],
                                                   dtype=np.float64).reshape(-1, 3))
        self.xs = _read_only(np.array([a.xs for a in self.heavy_atoms], dtype=np.intp))

    # =========================================================================
    # Constructors
    # =========================================================================

    @classmethod
    def from_lines(cls, lines: List[str], name: str = '<ligand>', potential=None) -> 'Ligand':
        """
        Build a ligand from PDBQT lines.

        Parameters
        ----------
        lines : List[str]
            PDBQT records
        name : str
            Label used in error messages and output
        potential : PairPotential, optional
            Potential whose table layout the pair offsets must follow.
            The default layout (1024 samples per square Angstrom, 8 A cutoff)
            is assumed when omitted.

        Returns
        -------
        Ligand

        Raises
        ------
        LigandParseError
            If the input is structurally invalid
        """
        num_samples = potential.num_samples if potential is not None else DEFAULT_SAMPLES_PER_TYPE_PAIR
        parts = TopologyBuilder(lines, source=name, num_samples=num_samples).build()
        return cls(num_samples=num_samples, **parts)

    @classmethod
    def from_file(cls, path: Union[str, Path], potential=None) -> 'Ligand':
        """Build a ligand from a PDBQT file; see `from_lines`."""
        return cls.from_lines(read_ligand_lines(path), name=Path(path).name, potential=potential)

    # =========================================================================
    # Sizes
    # =========================================================================

    @property
    def num_frames(self) -> int:
        return len(self.frames)

    @property
    def num_torsions(self) -> int:
        return len(self.frames) - 1

    @property
    def num_heavy_atoms(self) -> int:
        return len(self.heavy_atoms)

    @property
    def num_hydrogens(self) -> int:
        return len(self.hydrogens)

    @property
    def num_interacting_pairs(self) -> int:
        return len(self.interacting_pairs.i1)

    @property
    def num_variables(self) -> int:
        """Length of a gradient vector."""
        return 6 + self.num_active_torsions

    @property
    def num_coordinates(self) -> int:
        """Length of a generalized coordinate vector."""
        return 7 + self.num_active_torsions

    def xs_types(self) -> List[int]:
        """Distinct XS types of the heavy atoms, sorted."""
        return sorted(set(int(t) for t in self.xs))

    def check_coordinates(self, x) -> np.ndarray:
        """
        Validate a generalized coordinate vector.

        Raises
        ------
        ValueError
            If `x` does not have `num_coordinates` entries
        """
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (self.num_coordinates,):
            raise ValueError(f"Ligand {self.name} expects {self.num_coordinates} coordinates, "
                             f"got array of shape {x.shape}")
        return x

    def summary(self) -> str:
        return (f"{self.name}: {self.num_heavy_atoms} heavy atoms, {self.num_hydrogens} hydrogens, "
                f"{self.num_frames} frames, {self.num_active_torsions} active torsions, "
                f"{self.num_interacting_pairs} interacting pairs, "
                f"XS types {', '.join(xs_type_names(self.xs_types()))}")

    def __repr__(self) -> str:
        return f"Ligand({self.summary()})"
