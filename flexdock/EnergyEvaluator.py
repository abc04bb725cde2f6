#!/usr/bin/env python3
"""
Energy and Gradient Evaluation

This module scores a ligand pose and differentiates the score with respect
to the generalized coordinates.

Energy terms:
    - Grid term: every heavy atom inside the box reads its XS type's map at
      the lower corner of the enclosing cell; its derivative is the forward
      difference along each axis divided by the cell size. Atoms outside the
      box cost a flat penalty and feel no force.
    - Pair term: every interacting pair closer than the potential cutoff
      reads the tabulated energy and radial derivative at its r^2 bin; the
      derivative acts equal and opposite on the two atoms.

Evaluation is refused (no gradient is computed) when the energy is not
below a caller-supplied upper bound.

Classes:
    EnergyEvaluator: Scores poses of one ligand against one grid and potential
"""

import math
from typing import Optional, Tuple

import numpy as np

from .DockingGrid import DockingGrid
from .Kinematics import aggregate_gradient, forward_kinematics
from .Ligand import Ligand
from .PairPotential import PairPotential


# Energy added for each heavy atom outside the search box
OUT_OF_GRID_PENALTY = 10.0


class EnergyEvaluator:
    """
    Energy and gradient of ligand poses.

    The evaluator keeps no per-call state, so one instance can be shared by
    concurrent trials.

    Parameters
    ----------
    ligand : Ligand
        Ligand to score
    grid : DockingGrid
        Receptor maps; must provide every XS type of the ligand
    potential : PairPotential
        Intramolecular tables; must use the layout the ligand's pair offsets
        were computed for

    Raises
    ------
    ValueError
        If the grid lacks a needed map or the potential layout does not
        match the ligand
    """

    def __init__(self, ligand: Ligand, grid: DockingGrid, potential: PairPotential):
        grid.check_types(ligand.xs_types())
        if ligand.num_samples != potential.num_samples:
            raise ValueError(f"Ligand pair offsets assume {ligand.num_samples} samples per type pair, "
                             f"but the potential has {potential.num_samples}; "
                             f"build the ligand with the same potential")
        self.ligand = ligand
        self.grid = grid
        self.potential = potential
        self._atoms_by_type = [(xs, np.flatnonzero(ligand.xs == xs)) for xs in ligand.xs_types()]

    def _grid_term(self, c: np.ndarray, d: np.ndarray) -> float:
        grid = self.grid
        inside = grid.within_mask(c)
        e = OUT_OF_GRID_PENALTY * float(np.count_nonzero(~inside))
        index = grid.coordinate_to_index(c)
        for xs, atoms in self._atoms_by_type:
            atoms = atoms[inside[atoms]]
            if atoms.size == 0:
                continue
            i, j, k = index[atoms].T
            values = grid.maps[xs]
            e000 = values[i, j, k]
            d[atoms, 0] = (values[i + 1, j, k] - e000) * grid.granularity_inverse
            d[atoms, 1] = (values[i, j + 1, k] - e000) * grid.granularity_inverse
            d[atoms, 2] = (values[i, j, k + 1] - e000) * grid.granularity_inverse
            e += float(e000.sum())
        return e

    def _pair_term(self, c: np.ndarray, d: np.ndarray) -> float:
        pairs = self.ligand.interacting_pairs
        if pairs.i1.size == 0:
            return 0.0
        potential = self.potential
        r = c[pairs.i2] - c[pairs.i1]
        r2 = np.einsum('ij,ij->i', r, r)
        close = r2 < potential.cutoff_sqr
        if not np.any(close):
            return 0.0
        e, d_r = potential.lookup(pairs.offset[close], r2[close])
        derivative = d_r[:, np.newaxis] * r[close]
        np.subtract.at(d, pairs.i1[close], derivative)
        np.add.at(d, pairs.i2[close], derivative)
        return float(e.sum())

    def evaluate(self, x, e_upper_bound: float = math.inf) -> Tuple[bool, float, Optional[np.ndarray]]:
        """
        Score the pose `x`.

        Parameters
        ----------
        x : array-like
            Generalized coordinates of length `ligand.num_coordinates`
        e_upper_bound : float
            Poses whose energy is not below this bound are refused

        Returns
        -------
        Tuple[bool, float, Optional[np.ndarray]]
            (accepted, energy, gradient). The gradient has length
            `ligand.num_variables` and is None when the pose is refused.

        Raises
        ------
        ValueError
            If `x` has the wrong length
        """
        state = forward_kinematics(self.ligand, x)
        c = state.heavy_atoms
        d = np.zeros_like(c)
        e = self._grid_term(c, d) + self._pair_term(c, d)
        if e >= e_upper_bound:
            return False, e, None
        return True, e, aggregate_gradient(self.ligand, state, d)

    def energy(self, x) -> float:
        """Energy of the pose `x`, without bound."""
        return self.evaluate(x)[1]
