#!/usr/bin/env python3
"""
Ligand Topology Builder

This module turns the lines of a PDBQT ligand (ROOT / BRANCH / ENDBRANCH /
TORSDOF records plus ATOM/HETATM records) into the rigid-frame tree used for
docking: frames with their atom ranges and rotatable-bond geometry, the
covalent bond graph of the heavy atoms, and the list of intramolecular atom
pairs that are scored.

Rules applied while reading:
    - Heavy atoms are bonded only to heavy atoms of the frame being read
    - A carbon bonded to a hetero atom loses its hydrophobic XS type
    - A polar hydrogen turns its bonded hetero atom into a donor
    - A branch made of a single heavy atom (plus hydrogens) and no
      sub-branch has no scoring effect and is marked inactive
    - Atom coordinates end up relative to their frame's rotorY atom

Classes:
    LigandParseError: Raised for malformed or structurally invalid input
    TopologyBuilder: One-shot builder returning the parts of a Ligand
"""

import logging
from typing import Any, Dict, List, Optional, Set

import numpy as np
from scipy.spatial.distance import cdist

from .AtomTyping import Atom, covalent_radii
from .Frame import Frame
from .PairPotential import DEFAULT_SAMPLES_PER_TYPE_PAIR, pair_offset


logger = logging.getLogger(__name__)

# Record prefixes (first six columns) kept for output
ATOM_RECORDS = ('ATOM  ', 'HETATM')
STRUCTURE_RECORDS = ('ROOT', 'ENDROO', 'TORSDO')

# Kinds of kept lines
LINE_HEAVY_ATOM = 'heavy'
LINE_HYDROGEN = 'hydrogen'
LINE_RECORD = 'record'


class LigandParseError(ValueError):
    """
    Invalid ligand input.

    Attributes
    ----------
    source : str
        File name (or label) of the input
    line_number : Optional[int]
        1-based line number of the offending record, None when the problem
        concerns the whole input
    """

    def __init__(self, source: str, line_number: Optional[int], message: str):
        self.source = source
        self.line_number = line_number
        where = f"{source}" if line_number is None else f"{source} line {line_number}"
        super().__init__(f"Error parsing {where}: {message}")


class TopologyBuilder:
    """
    Build the frame tree of a flexible ligand from PDBQT lines.

    The builder owns all intermediate structures; nothing is visible to the
    caller until `build()` returns successfully.

    Parameters
    ----------
    lines : List[str]
        Input lines (trailing newlines are ignored)
    source : str
        Label used in error messages, typically the file name
    num_samples : int
        Samples per XS type pair of the pair potential tables, used to
        compute the table offset of each interacting pair
    """

    def __init__(self, lines: List[str], source: str = '<ligand>',
                 num_samples: int = DEFAULT_SAMPLES_PER_TYPE_PAIR):
        self.input_lines = [line.rstrip('\r\n') for line in lines]
        self.source = source
        self.num_samples = num_samples

        self.frames: List[Frame] = [Frame.root()]
        self.heavy_atoms: List[Atom] = []
        self.hydrogens: List[Atom] = []
        self.bonds: List[List[int]] = []
        self.lines: List[str] = []
        self.line_kinds: List[str] = []
        self.num_active_torsions = 0
        self.current = 0

    def _error(self, line_number: Optional[int], message: str) -> LigandParseError:
        return LigandParseError(self.source, line_number, message)

    # =========================================================================
    # Record handlers
    # =========================================================================

    def _add_atom(self, line: str, line_number: int) -> None:
        if self.current != len(self.frames) - 1:
            raise self._error(line_number, "atom record found after the end of its branch")
        try:
            atom = Atom.from_pdbqt_line(line)
        except ValueError as e:
            raise self._error(line_number, f"malformed atom record ({e})") from e

        if atom.is_unsupported:
            logger.debug("%s: skipping atom %d of unsupported type %s",
                         self.source, atom.serial, atom.ad_name)
            self._keep(line, LINE_RECORD)
            return

        f = self.frames[self.current]
        if atom.is_hydrogen:
            if atom.is_polar_hydrogen:
                for i in range(len(self.heavy_atoms) - 1, f.habegin - 1, -1):
                    b = self.heavy_atoms[i]
                    if b.is_hetero and atom.has_covalent_bond(b):
                        b.donorize()
                        break
            self.hydrogens.append(atom)
            self._keep(line, LINE_HYDROGEN)
            return

        index = len(self.heavy_atoms)
        self.bonds.append([])
        candidates = self.heavy_atoms[f.habegin:]
        if candidates:
            distances = cdist(atom.coord[np.newaxis, :], np.array([b.coord for b in candidates]))[0]
            bonded = np.flatnonzero(distances < covalent_radii(candidates) + atom.covalent_radius)
            # Newest first
            for k in bonded[::-1]:
                i = f.habegin + int(k)
                b = self.heavy_atoms[i]
                self.bonds[index].append(i)
                self.bonds[i].append(index)
                if atom.is_hetero and not b.is_hetero:
                    b.dehydrophobicize()
                elif not atom.is_hetero and b.is_hetero:
                    atom.dehydrophobicize()

        if self.current > 0 and atom.serial == f.rotorY_serial:
            f.rotorY_index = index
        self.heavy_atoms.append(atom)
        self._keep(line, LINE_HEAVY_ATOM)

    def _open_branch(self, line: str, line_number: int) -> None:
        try:
            rotorX_serial = int(line[6:10])
            rotorY_serial = int(line[10:14])
        except ValueError as e:
            raise self._error(line_number, f"malformed BRANCH record ({e})") from e

        parent = self.frames[self.current]
        end = len(self.heavy_atoms) if self.current == len(self.frames) - 1 else parent.haend
        rotorX_index = next((i for i in range(parent.habegin, end)
                             if self.heavy_atoms[i].serial == rotorX_serial), None)
        if rotorX_index is None:
            raise self._error(line_number, f"rotorX atom {rotorX_serial} not found in the enclosing frame")

        self.frames.append(Frame(self.current, rotorX_serial, rotorY_serial, rotorX_index,
                                 len(self.heavy_atoms), len(self.hydrogens)))
        new = len(self.frames) - 1
        parent.branches.append(new)
        self.current = new

        previous = self.frames[new - 1]
        previous.haend = len(self.heavy_atoms)
        previous.hyend = len(self.hydrogens)
        self._keep(line, LINE_RECORD)

    def _close_branch(self, line: str, line_number: int) -> None:
        if self.current == 0:
            raise self._error(line_number, "ENDBRANCH without a matching BRANCH")
        f = self.frames[self.current]
        if f.habegin == len(self.heavy_atoms):
            raise self._error(line_number, "an empty BRANCH has been detected, "
                              "indicating the input ligand structure is probably invalid")
        if f.rotorY_index is None:
            raise self._error(line_number, f"rotorY atom {f.rotorY_serial} not found in its branch")

        if self.current == len(self.frames) - 1 and f.habegin + 1 == len(self.heavy_atoms):
            f.active = False
        else:
            self.num_active_torsions += 1

        self.bonds[f.rotorY_index].append(f.rotorX_index)
        self.bonds[f.rotorX_index].append(f.rotorY_index)

        rotorY = self.heavy_atoms[f.rotorY_index]
        rotorX = self.heavy_atoms[f.rotorX_index]
        if rotorY.is_hetero and not rotorX.is_hetero:
            rotorX.dehydrophobicize()
        if rotorX.is_hetero and not rotorY.is_hetero:
            rotorY.dehydrophobicize()

        parent = self.frames[f.parent]
        f.parent_rotorY_to_current_rotorY = rotorY.coord - self.heavy_atoms[parent.rotorY_index].coord
        axis = rotorY.coord - rotorX.coord
        f.parent_rotorX_to_current_rotorY = axis / np.linalg.norm(axis)

        self.current = f.parent
        self._keep(line, LINE_RECORD)

    def _keep(self, line: str, kind: str) -> None:
        self.lines.append(line)
        self.line_kinds.append(kind)

    # =========================================================================
    # Post-processing
    # =========================================================================

    def _make_relative(self) -> None:
        """Express every atom coordinate relative to its frame's rotorY."""
        for f in self.frames:
            origin = self.heavy_atoms[f.rotorY_index].coord.copy()
            for atom in self.heavy_atoms[f.habegin:f.haend]:
                atom.coord = atom.coord - origin
            for atom in self.hydrogens[f.hybegin:f.hyend]:
                atom.coord = atom.coord - origin

    def _assign_torsion_indices(self) -> None:
        t = 0
        for f in self.frames:
            if f.active:
                f.torsion_index = t
                t += 1

    def _neighbors(self, i: int) -> Set[int]:
        """Heavy atoms within three covalent bonds of atom i (i itself included)."""
        neighbors: Set[int] = set()
        for b1 in self.bonds[i]:
            neighbors.add(b1)
            for b2 in self.bonds[b1]:
                neighbors.add(b2)
                neighbors.update(self.bonds[b2])
        return neighbors

    def _find_interacting_pairs(self):
        i1: List[int] = []
        i2: List[int] = []
        offsets: List[int] = []
        frames = self.frames
        for k1, f1 in enumerate(frames):
            for i in range(f1.habegin, f1.haend):
                neighbors = self._neighbors(i)
                for k2 in range(k1 + 1, len(frames)):
                    f2 = frames[k2]
                    f3 = frames[f2.parent]
                    for j in range(f2.habegin, f2.haend):
                        if k1 == f2.parent and (i == f2.rotorX_index or j == f2.rotorY_index):
                            continue
                        if k1 > 0 and f1.parent == f2.parent and i == f1.rotorY_index and j == f2.rotorY_index:
                            continue
                        if f2.parent > 0 and k1 == f3.parent and i == f3.rotorX_index and j == f2.rotorY_index:
                            continue
                        if j in neighbors:
                            continue
                        i1.append(i)
                        i2.append(j)
                        offsets.append(pair_offset(self.heavy_atoms[i].xs, self.heavy_atoms[j].xs,
                                                   self.num_samples))
        return (np.array(i1, dtype=np.intp), np.array(i2, dtype=np.intp),
                np.array(offsets, dtype=np.intp))

    # =========================================================================
    # Entry point
    # =========================================================================

    def build(self) -> Dict[str, Any]:
        """
        Parse the input and return the parts of a Ligand.

        Returns
        -------
        Dict[str, Any]
            Keyword arguments of the Ligand constructor

        Raises
        ------
        LigandParseError
            If the input is structurally invalid
        """
        for line_number, line in enumerate(self.input_lines, start=1):
            record = line[:6]
            if record in ATOM_RECORDS:
                self._add_atom(line, line_number)
            elif record == 'BRANCH':
                self._open_branch(line, line_number)
            elif record == 'ENDBRA':
                self._close_branch(line, line_number)
            elif record.startswith(STRUCTURE_RECORDS):
                self._keep(line, LINE_RECORD)

        if self.current != 0:
            raise self._error(None, f"{self.current} BRANCH record(s) not closed by ENDBRANCH")
        if not self.heavy_atoms:
            raise self._error(None, "no heavy atom found")

        last = self.frames[-1]
        last.haend = len(self.heavy_atoms)
        last.hyend = len(self.hydrogens)

        self._make_relative()
        self._assign_torsion_indices()
        i1, i2, offsets = self._find_interacting_pairs()

        logger.debug("%s: %d frames, %d active torsions, %d heavy atoms, %d hydrogens, %d interacting pairs",
                     self.source, len(self.frames), self.num_active_torsions,
                     len(self.heavy_atoms), len(self.hydrogens), len(i1))

        return {
            'name': self.source,
            'frames': self.frames,
            'heavy_atoms': self.heavy_atoms,
            'hydrogens': self.hydrogens,
            'bonds': self.bonds,
            'pair_i1': i1,
            'pair_i2': i2,
            'pair_offsets': offsets,
            'num_active_torsions': self.num_active_torsions,
            'lines': self.lines,
            'line_kinds': self.line_kinds,
        }
