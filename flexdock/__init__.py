"""
flexdock

This package provides tools for docking flexible ligands into rigid receptors using:
- A tree of rigid frames connected by rotatable bonds (PDBQT ROOT/BRANCH topology)
- Precomputed receptor grid maps and tabulated intramolecular pair potentials
- Monte Carlo search with BFGS relaxation over position, orientation and torsions
"""

__version__ = "1.0.0"

# Import main classes for easier access
from .AtomTyping import Atom, XS_TYPE_NAMES
from .Frame import Frame
from .TopologyBuilder import LigandParseError, TopologyBuilder
from .Ligand import Ligand
from .DockingGrid import DockingGrid
from .PairPotential import PairPotential
from .EnergyEvaluator import EnergyEvaluator, OUT_OF_GRID_PENALTY
from .DockingResult import DockingResult, ResultCollection, reconstruct
from .ConformationOptimizer import ConformationOptimizer, TrialResult
from . import IOTools
from .IOTools import read_ligand_lines, write_models, write_xyz_file

__all__ = [
    'Atom',
    'XS_TYPE_NAMES',
    'Frame',
    'LigandParseError',
    'TopologyBuilder',
    'Ligand',
    'DockingGrid',
    'PairPotential',
    'EnergyEvaluator',
    'OUT_OF_GRID_PENALTY',
    'DockingResult',
    'ResultCollection',
    'reconstruct',
    'ConformationOptimizer',
    'TrialResult',
    'IOTools',
    'read_ligand_lines',
    'write_models',
    'write_xyz_file',
]
