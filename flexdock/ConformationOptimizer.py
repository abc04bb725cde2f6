#!/usr/bin/env python3
"""
Conformation Optimizer

Monte Carlo search for low-energy ligand poses. Each trial starts from a
random pose inside the search box and runs a fixed number of generations;
every generation perturbs the position of the best pose found so far,
relaxes it with a BFGS quasi-Newton minimization, and keeps the relaxed pose
if its energy is lower. Trials are independent and seeded, so they can be
run in any order or in parallel and still give reproducible results.

Example:
    optimizer = ConformationOptimizer.from_files('ligand.pdbqt', 'grid.npz', 'potential.npz')
    results = optimizer.run(seeds=range(8), num_generations=300, max_results=9)
    print(results.best.energy)

Classes:
    TrialResult: Outcome of one seeded trial
    ConformationOptimizer: BFGS-based basin hopping over generalized coordinates
"""

import logging
import time
from concurrent.futures import ProcessPoolExecutor
from itertools import repeat
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import numpy as np

from .DockingGrid import DockingGrid
from .DockingResult import DockingResult, ResultCollection, reconstruct
from .EnergyEvaluator import EnergyEvaluator
from .Kinematics import quaternion_multiply, rotation_vector_to_quaternion
from .Ligand import Ligand
from .PairPotential import PairPotential


logger = logging.getLogger(__name__)

# Line search
NUM_ALPHAS = 5
ALPHA_FACTOR = 0.1
SUFFICIENT_DECREASE = 1e-4
CURVATURE = 0.9

# Poses not below this energy per heavy atom are refused
ENERGY_BOUND_PER_HEAVY_ATOM = 40.0

DEFAULT_NUM_GENERATIONS = 300
DEFAULT_MAX_RESULTS = 9


class TrialResult:
    """
    Outcome of one seeded search trial.

    Attributes
    ----------
    seed : int
        Seed of the trial's random generator
    best : DockingResult
        Lowest-energy pose accepted during the trial
    initial_energy : float
        Energy of the starting pose
    energy_history : np.ndarray
        Energy of the best accepted pose after each generation
    num_accepted : int
        Number of generations whose relaxed pose was accepted
    """

    def __init__(self, seed: int, best: DockingResult, initial_energy: float,
                 energy_history: List[float], num_accepted: int):
        self.seed = seed
        self.best = best
        self.initial_energy = initial_energy
        self.energy_history = np.array(energy_history, dtype=np.float64)
        self.num_accepted = num_accepted

    def __repr__(self) -> str:
        return (f"TrialResult(seed={self.seed}, energy={self.best.energy:.3f}, "
                f"generations={len(self.energy_history)}, accepted={self.num_accepted})")


class ConformationOptimizer:
    """
    Basin-hopping search of ligand poses in a receptor grid.

    Parameters
    ----------
    ligand : Ligand
        Ligand to dock
    grid : DockingGrid
        Receptor maps and search box
    potential : PairPotential
        Intramolecular pair potential
    """

    def __init__(self, ligand: Ligand, grid: DockingGrid, potential: PairPotential):
        self.ligand = ligand
        self.grid = grid
        self.evaluator = EnergyEvaluator(ligand, grid, potential)
        self.e_upper_bound = ENERGY_BOUND_PER_HEAVY_ATOM * ligand.num_heavy_atoms

    @classmethod
    def from_files(cls, ligand_file: Union[str, Path], grid_file: Union[str, Path],
                   potential_file: Union[str, Path]) -> 'ConformationOptimizer':
        """
        Create an optimizer from a PDBQT ligand, a grid archive and a potential archive.

        Raises
        ------
        LigandParseError
            If the ligand is invalid
        ValueError
            If the grid lacks a map the ligand needs or an array is malformed
        """
        potential = PairPotential.from_npz(potential_file)
        grid = DockingGrid.from_npz(grid_file)
        ligand = Ligand.from_file(ligand_file, potential=potential)
        return cls(ligand, grid, potential)

    # =========================================================================
    # Moves
    # =========================================================================

    def random_coordinates(self, rng: np.random.Generator) -> np.ndarray:
        """
        Random pose: root inside the search box, random orientation and torsions.
        """
        x = np.empty(self.ligand.num_coordinates)
        x[0:3] = self.grid.center + rng.uniform(-1.0, 1.0, 3) * 0.5 * self.grid.size
        orientation = rng.uniform(-1.0, 1.0, 4)
        x[3:7] = orientation / np.linalg.norm(orientation)
        x[7:] = rng.uniform(-1.0, 1.0, self.ligand.num_active_torsions)
        return x

    @staticmethod
    def _step(x: np.ndarray, p: np.ndarray, alpha: float) -> np.ndarray:
        """Move `x` by `alpha` along the search direction `p`."""
        x2 = np.empty_like(x)
        x2[0:3] = x[0:3] + alpha * p[0:3]
        x2[3:7] = quaternion_multiply(rotation_vector_to_quaternion(alpha * p[3:6]), x[3:7])
        x2[7:] = x[7:] + alpha * p[6:]
        return x2

    def _bfgs(self, x1: np.ndarray, e1: float, g1: np.ndarray) -> Tuple[np.ndarray, float, np.ndarray]:
        """
        Relax a pose with BFGS and a backtracking line search.

        The inverse Hessian approximation starts from the identity. The loop
        ends when no step length satisfies both the sufficient decrease and
        the curvature conditions, or when the curvature along the step
        vanishes.

        Returns
        -------
        Tuple[np.ndarray, float, np.ndarray]
            Relaxed coordinates, energy and gradient
        """
        evaluate = self.evaluator.evaluate
        h = np.eye(self.ligand.num_variables)
        while True:
            p = -(h @ g1)
            pg1 = p @ g1

            alpha = 1.0
            for _ in range(NUM_ALPHAS):
                x2 = self._step(x1, p, alpha)
                accepted, e2, g2 = evaluate(x2, e1 + SUFFICIENT_DECREASE * alpha * pg1)
                if accepted and p @ g2 >= CURVATURE * pg1:
                    break
                alpha *= ALPHA_FACTOR
            else:
                return x1, e1, g1

            y = g2 - g1
            mhy = -(h @ y)
            yhy = -(y @ mhy)
            yp = y @ p
            x1, e1, g1 = x2, e2, g2
            if yp == 0.0:
                return x1, e1, g1

            ryp = 1.0 / yp
            pco = ryp * (ryp * yhy + alpha)
            h += ryp * (np.outer(mhy, p) + np.outer(p, mhy)) + pco * np.outer(p, p)

    # =========================================================================
    # Search
    # =========================================================================

    def search(self, seed: int, num_generations: int = DEFAULT_NUM_GENERATIONS,
               initial_coordinates=None, verbose: bool = False) -> TrialResult:
        """
        Run one seeded trial.

        Parameters
        ----------
        seed : int
            Seed of the trial's own random generator
        num_generations : int
            Number of perturb-relax-accept cycles
        initial_coordinates : array-like, optional
            Starting pose; a random pose inside the box is drawn when omitted.
            Its orientation is rescaled to a unit quaternion.
        verbose : bool
            Print progress

        Returns
        -------
        TrialResult

        Raises
        ------
        ValueError
            If `initial_coordinates` has the wrong length or a zero or
            non-finite orientation
        """
        rng = np.random.Generator(np.random.PCG64(seed))
        if initial_coordinates is None:
            x0 = self.random_coordinates(rng)
        else:
            x0 = self.ligand.check_coordinates(initial_coordinates).copy()
            norm = np.linalg.norm(x0[3:7])
            if not np.isfinite(norm) or norm == 0.0:
                raise ValueError(f"Initial orientation {x0[3:7]} cannot be normalized")
            x0[3:7] /= norm

        evaluate = self.evaluator.evaluate
        _, e0, _ = evaluate(x0, self.e_upper_bound)
        initial_energy = e0
        best = reconstruct(self.ligand, e0, x0)
        history = []
        num_accepted = 0

        for generation in range(num_generations):
            x1 = x0.copy()
            x1[0:3] += rng.uniform(-1.0, 1.0, 3)
            accepted, e1, g1 = evaluate(x1, self.e_upper_bound)
            if accepted:
                x1, e1, g1 = self._bfgs(x1, e1, g1)

            if e1 < e0:
                x0, e0 = x1, e1
                best = reconstruct(self.ligand, e0, x0)
                num_accepted += 1
                logger.debug("Seed %d generation %d: accepted energy %.3f", seed, generation, e0)
            history.append(e0)

        if verbose:
            print(f"  Seed {seed}: energy {initial_energy:.3f} -> {e0:.3f} "
                  f"({num_accepted} of {num_generations} generations accepted)")
        return TrialResult(seed, best, initial_energy, history, num_accepted)

    def run(self, seeds: Iterable[int], num_generations: int = DEFAULT_NUM_GENERATIONS,
            max_results: int = DEFAULT_MAX_RESULTS, max_workers: int = 1,
            verbose: bool = False) -> ResultCollection:
        """
        Run independent trials and collect their best poses.

        Parameters
        ----------
        seeds : Iterable[int]
            One trial per seed
        num_generations : int
            Generations per trial
        max_results : int
            Capacity of the returned collection
        max_workers : int
            Worker processes; trials run in this process when 1
        verbose : bool
            Print progress

        Returns
        -------
        ResultCollection
            Best pose of each trial merged in seed order; poses within
            2 A RMSD of a better one are dropped
        """
        seeds = [int(s) for s in seeds]
        if verbose:
            print(f"\nDocking {self.ligand.name} ({len(seeds)} trials x {num_generations} generations, "
                  f"{self.ligand.num_active_torsions} active torsions)...")
        start_time = time.time()

        if max_workers > 1:
            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                trials = list(executor.map(self.search, seeds, repeat(num_generations),
                                           repeat(None), repeat(verbose)))
        else:
            trials = [self.search(seed, num_generations, verbose=verbose) for seed in seeds]

        results = ResultCollection.for_ligand(self.ligand, max_results)
        for trial in trials:
            results.push(trial.best)

        elapsed = time.time() - start_time
        logger.info("%s: %d trials in %.2f s, %d distinct poses, best energy %.3f",
                    self.ligand.name, len(trials), elapsed, len(results),
                    results.best.energy if results.best is not None else float('nan'))
        if verbose:
            print(f"  Time: {elapsed:.2f} seconds")
        return results
