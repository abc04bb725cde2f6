#!/usr/bin/env python3
"""
Receptor Docking Grid

A DockingGrid holds the precomputed receptor interaction maps: one scalar
field per XS type, sampled on a regular lattice that covers the search box.
Grid construction happens elsewhere; this module loads the maps and answers
box membership and lattice index queries.

Lattice layout:
    - corner0 = center - size / 2, corner1 = corner0 + size
    - Probe (i, j, k) sits at corner0 + granularity * (i, j, k)
    - int(size * (1 / granularity)) + 2 probes per axis, so the upper
      neighbor of any in-box point's cell exists

Classes:
    DockingGrid: Search box with per-XS-type interaction maps
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Union

import numpy as np

from .AtomTyping import NUM_XS_TYPES, XS_TYPE_NAMES


logger = logging.getLogger(__name__)


class DockingGrid:
    """
    Search box and receptor grid maps.

    Attributes
    ----------
    center : np.ndarray
        Box center (3,)
    size : np.ndarray
        Box edge lengths (3,)
    granularity : float
        Lattice spacing in Angstroms
    corner0, corner1 : np.ndarray
        Lower and upper box corners
    num_probes : np.ndarray
        Lattice points per axis
    maps : Dict[int, np.ndarray]
        XS type -> (nx, ny, nz) read-only energy array
    """

    def __init__(self, center, size, granularity: float, maps: Dict[int, np.ndarray]):
        self.center = np.array(center, dtype=np.float64).reshape(3)
        self.size = np.array(size, dtype=np.float64).reshape(3)
        self.granularity = float(granularity)
        if self.granularity <= 0.0:
            raise ValueError(f"Grid granularity must be positive, got {granularity}")
        if np.any(self.size <= 0.0):
            raise ValueError(f"Grid size must be positive along every axis, got {self.size}")
        self.granularity_inverse = 1.0 / self.granularity
        self.corner0 = self.center - 0.5 * self.size
        self.corner1 = self.corner0 + self.size
        self.num_probes = (self.size * self.granularity_inverse).astype(np.intp) + 2

        self.maps: Dict[int, np.ndarray] = {}
        expected = tuple(int(n) for n in self.num_probes)
        for xs, values in maps.items():
            xs = int(xs)
            if not 0 <= xs < NUM_XS_TYPES:
                raise ValueError(f"Unknown XS type index {xs}")
            array = np.array(values, dtype=np.float64)
            if array.shape != expected:
                raise ValueError(f"Grid map {XS_TYPE_NAMES[xs]} has shape {array.shape}, expected {expected}")
            array.setflags(write=False)
            self.maps[xs] = array

    @classmethod
    def from_npz(cls, path: Union[str, Path]) -> 'DockingGrid':
        """
        Load a grid from a numpy archive.

        The archive holds `center`, `size`, `granularity` and one array
        `map_<XS name>` (e.g. `map_C_H`) per available XS type.
        """
        with np.load(path) as data:
            maps = {}
            for xs, name in enumerate(XS_TYPE_NAMES):
                key = f"map_{name}"
                if key in data:
                    maps[xs] = data[key]
            grid = cls(data['center'], data['size'], float(data['granularity']), maps)
        logger.debug("Loaded grid %s: center %s, size %s, granularity %g, %d maps",
                     path, grid.center, grid.size, grid.granularity, len(grid.maps))
        return grid

    def save_npz(self, path: Union[str, Path]) -> None:
        arrays = {f"map_{XS_TYPE_NAMES[xs]}": values for xs, values in self.maps.items()}
        np.savez(path, center=self.center, size=self.size, granularity=self.granularity, **arrays)

    def within(self, coordinate) -> bool:
        """True when corner0 <= coordinate < corner1 along every axis."""
        c = np.asarray(coordinate)
        return bool(np.all(self.corner0 <= c) and np.all(c < self.corner1))

    def within_mask(self, coordinates: np.ndarray) -> np.ndarray:
        """Row-wise `within` for an (n, 3) coordinate array."""
        return np.all((self.corner0 <= coordinates) & (coordinates < self.corner1), axis=1)

    def coordinate_to_index(self, coordinate) -> np.ndarray:
        """
        Lattice index of the cell containing `coordinate` (lower corner).

        Accepts one coordinate or an (n, 3) array. Indices are capped at
        num_probes - 2 so the upper neighbor of an in-box cell always exists.
        """
        index = ((np.asarray(coordinate) - self.corner0) * self.granularity_inverse).astype(np.intp)
        return np.minimum(index, self.num_probes - 2)

    def check_types(self, types: Iterable[int]) -> None:
        """
        Ensure a map is available for every XS type in `types`.

        Raises
        ------
        ValueError
            Naming the missing XS types
        """
        missing = sorted(set(int(t) for t in types) - set(self.maps))
        if missing:
            names = ', '.join(XS_TYPE_NAMES[t] for t in missing)
            raise ValueError(f"Grid has no map for XS type(s): {names}")

    def __repr__(self) -> str:
        return (f"DockingGrid(center={self.center.tolist()}, size={self.size.tolist()}, "
                f"granularity={self.granularity}, maps={len(self.maps)})")
