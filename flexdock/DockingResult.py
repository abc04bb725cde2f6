#!/usr/bin/env python3
"""
Docking Results

Classes:
    DockingResult: One scored pose with its atom coordinates
    ResultCollection: Bounded, energy-ranked set of distinct poses

Main Functions:
    reconstruct: Build a DockingResult from a generalized coordinate vector
"""

import logging
from typing import Iterator, List, Optional

import numpy as np

from .Kinematics import forward_kinematics


logger = logging.getLogger(__name__)


class DockingResult:
    """
    A scored ligand pose.

    Results compare by energy, lower being better.

    Attributes
    ----------
    energy : float
        Predicted free energy of the pose
    heavy_atoms : np.ndarray
        (num_heavy_atoms, 3) world coordinates
    hydrogens : np.ndarray
        (num_hydrogens, 3) world coordinates
    coordinates : np.ndarray
        Generalized coordinates the pose was built from
    """

    def __init__(self, energy: float, heavy_atoms, hydrogens, coordinates):
        self.energy = float(energy)
        self.heavy_atoms = np.array(heavy_atoms, dtype=np.float64).reshape(-1, 3)
        self.hydrogens = np.array(hydrogens, dtype=np.float64).reshape(-1, 3)
        self.coordinates = np.array(coordinates, dtype=np.float64)
        for array in (self.heavy_atoms, self.hydrogens, self.coordinates):
            array.setflags(write=False)

    def __lt__(self, other: 'DockingResult') -> bool:
        return self.energy < other.energy

    def square_error(self, other: 'DockingResult') -> float:
        """Sum of squared heavy-atom deviations from `other`."""
        delta = self.heavy_atoms - other.heavy_atoms
        return float(np.einsum('ij,ij->', delta, delta))

    def rmsd(self, other: 'DockingResult') -> float:
        return float(np.sqrt(self.square_error(other) / len(self.heavy_atoms)))

    def __repr__(self) -> str:
        return f"DockingResult(energy={self.energy:.3f})"


def reconstruct(ligand, energy: float, x) -> DockingResult:
    """
    Rebuild the full pose (heavy atoms and hydrogens) for coordinates `x`.

    Parameters
    ----------
    ligand : Ligand
        Ligand the coordinates refer to
    energy : float
        Energy to attach to the result
    x : array-like
        Generalized coordinates of length `ligand.num_coordinates`

    Returns
    -------
    DockingResult
    """
    state = forward_kinematics(ligand, x, include_hydrogens=True)
    return DockingResult(energy, state.heavy_atoms, state.hydrogens, x)


class ResultCollection:
    """
    Energy-ranked collection of distinct poses.

    A new result that lies within `required_square_error` of a stored one
    (sum of squared heavy-atom deviations) competes only with its nearest
    stored neighbor. Otherwise it is added while there is room, or replaces
    the worst stored result when it is better. Results are kept sorted by
    increasing energy.

    Parameters
    ----------
    capacity : int
        Maximum number of results kept
    required_square_error : float
        Squared-deviation threshold below which two poses count as the same
    """

    def __init__(self, capacity: int, required_square_error: float):
        if capacity < 1:
            raise ValueError(f"Result capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.required_square_error = float(required_square_error)
        self.results: List[DockingResult] = []

    @classmethod
    def for_ligand(cls, ligand, capacity: int) -> 'ResultCollection':
        """Collection treating poses within 2 A RMSD of each other as duplicates."""
        return cls(capacity, 4.0 * ligand.num_heavy_atoms)

    def push(self, result: DockingResult) -> bool:
        """
        Offer a result to the collection.

        Returns
        -------
        bool
            True if the result was stored
        """
        stored = False
        if self.results:
            errors = [result.square_error(r) for r in self.results]
            nearest = int(np.argmin(errors))
            if errors[nearest] < self.required_square_error:
                if result.energy < self.results[nearest].energy:
                    self.results[nearest] = result
                    stored = True
            elif len(self.results) < self.capacity:
                self.results.append(result)
                stored = True
            elif result.energy < self.results[-1].energy:
                self.results[-1] = result
                stored = True
        else:
            self.results.append(result)
            stored = True

        if stored:
            self.results.sort(key=lambda r: r.energy)
        else:
            logger.debug("Discarded result with energy %.3f", result.energy)
        return stored

    @property
    def best(self) -> Optional[DockingResult]:
        return self.results[0] if self.results else None

    def energies(self) -> List[float]:
        return [r.energy for r in self.results]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[DockingResult]:
        return iter(self.results)

    def __getitem__(self, index: int) -> DockingResult:
        return self.results[index]
