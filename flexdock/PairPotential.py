#!/usr/bin/env python3
"""
Intramolecular Pair Potential Tables

Read-only lookup tables of a pairwise potential and its radial derivative,
sampled over the squared interatomic distance for every unordered pair of XS
types. The tables themselves are computed elsewhere; this module only stores
and indexes them.

Layout:
    - One block of `num_samples` values per XS type pair
    - Blocks ordered by the triangular index of the type pair
    - Sample k of a block covers r^2 in [k / ns, (k + 1) / ns)
    - `d` holds dE/dr divided by r, so that d * (r2 - r1) is the
      derivative with respect to the second atom position

Functions:
    type_pair_index: Triangular index of an unordered XS type pair
    pair_offset: Base offset of a type pair's block
"""

from pathlib import Path
from typing import Union

import numpy as np

from .AtomTyping import NUM_XS_TYPES


DEFAULT_CUTOFF = 8.0
DEFAULT_SAMPLES_PER_SQUARE_ANGSTROM = 1024
NUM_TYPE_PAIRS = NUM_XS_TYPES * (NUM_XS_TYPES + 1) // 2


def samples_per_type_pair(samples_per_square_angstrom: float, cutoff: float) -> int:
    """Number of table samples stored for each XS type pair."""
    return int(samples_per_square_angstrom * cutoff * cutoff) + 1


DEFAULT_SAMPLES_PER_TYPE_PAIR = samples_per_type_pair(DEFAULT_SAMPLES_PER_SQUARE_ANGSTROM, DEFAULT_CUTOFF)


def type_pair_index(t1: int, t2: int) -> int:
    """
    Triangular index of the unordered type pair (t1, t2).

    Parameters
    ----------
    t1, t2 : int
        XS type indices

    Returns
    -------
    int
        Index in [0, NUM_TYPE_PAIRS), symmetric in its arguments
    """
    if t1 > t2:
        t1, t2 = t2, t1
    return t2 * (t2 + 1) // 2 + t1


def pair_offset(t1: int, t2: int, num_samples: int = DEFAULT_SAMPLES_PER_TYPE_PAIR) -> int:
    """Offset of the first sample of the (t1, t2) block."""
    return num_samples * type_pair_index(t1, t2)


class PairPotential:
    """
    Energy and derivative tables for intramolecular atom pairs.

    Attributes
    ----------
    e : np.ndarray
        Energies, length num_samples * NUM_TYPE_PAIRS
    d : np.ndarray
        Radial derivatives divided by distance, same layout as `e`
    samples_per_square_angstrom : float
        Sampling density ns over r^2
    cutoff : float
        Interaction cutoff in Angstroms
    cutoff_sqr : float
        Squared cutoff
    num_samples : int
        Samples per type pair
    """

    def __init__(self, energies, derivatives,
                 samples_per_square_angstrom: float = DEFAULT_SAMPLES_PER_SQUARE_ANGSTROM,
                 cutoff: float = DEFAULT_CUTOFF):
        self.samples_per_square_angstrom = float(samples_per_square_angstrom)
        self.cutoff = float(cutoff)
        self.cutoff_sqr = self.cutoff * self.cutoff
        self.num_samples = samples_per_type_pair(self.samples_per_square_angstrom, self.cutoff)

        expected = self.num_samples * NUM_TYPE_PAIRS
        self.e = np.array(energies, dtype=np.float64).reshape(-1)
        self.d = np.array(derivatives, dtype=np.float64).reshape(-1)
        if self.e.size != expected or self.d.size != expected:
            raise ValueError(f"Pair potential tables must hold {expected} samples "
                             f"({self.num_samples} per type pair x {NUM_TYPE_PAIRS} pairs), "
                             f"got {self.e.size} energies and {self.d.size} derivatives")
        self.e.setflags(write=False)
        self.d.setflags(write=False)

    @classmethod
    def from_npz(cls, path: Union[str, Path]) -> 'PairPotential':
        """
        Load tables from a numpy archive.

        The archive must contain arrays `e` and `d`, and may contain the
        scalars `samples_per_square_angstrom` and `cutoff`.
        """
        with np.load(path) as data:
            ns = float(data['samples_per_square_angstrom']) if 'samples_per_square_angstrom' in data \
                else DEFAULT_SAMPLES_PER_SQUARE_ANGSTROM
            cutoff = float(data['cutoff']) if 'cutoff' in data else DEFAULT_CUTOFF
            return cls(data['e'], data['d'], samples_per_square_angstrom=ns, cutoff=cutoff)

    def save_npz(self, path: Union[str, Path]) -> None:
        np.savez(path, e=self.e, d=self.d,
                 samples_per_square_angstrom=self.samples_per_square_angstrom,
                 cutoff=self.cutoff)

    def offset(self, t1: int, t2: int) -> int:
        """Offset of the first sample of the (t1, t2) block in these tables."""
        return pair_offset(t1, t2, self.num_samples)

    def lookup(self, offset, r2):
        """
        Energy and radial derivative at squared distance `r2`.

        `offset` and `r2` may be scalars or equal-length arrays; each r2 must
        be below `cutoff_sqr`.
        """
        o = np.asarray(offset, dtype=np.intp) + (self.samples_per_square_angstrom * np.asarray(r2)).astype(np.intp)
        return self.e[o], self.d[o]

    def __repr__(self) -> str:
        return f"PairPotential(cutoff={self.cutoff}, ns={self.samples_per_square_angstrom}, samples={self.num_samples})"
