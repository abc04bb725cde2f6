#!/usr/bin/env python3
"""
I/O Tools for Ligand Files

This module provides functions for reading PDBQT ligands and writing docked
poses, as multi-model PDBQT files or XYZ files.
"""

from pathlib import Path
from typing import Iterable, List, Union

from .TopologyBuilder import LINE_HEAVY_ATOM, LINE_HYDROGEN


# Remark line of each written model
ENERGY_REMARK = "REMARK            TOTAL FREE ENERGY PREDICTED BY FLEXDOCK:{:8.3f} KCAL/MOL"


def read_ligand_lines(pathname: Union[str, Path]) -> List[str]:
    """
    Read the lines of a PDBQT ligand file.

    Parameters
    ----------
    pathname : str or Path
        Input file

    Returns
    -------
    List[str]
        Lines without line terminators
    """
    with open(pathname, 'r') as f:
        return f.read().splitlines()


def format_atom_line(line: str, coord) -> str:
    """
    Substitute the coordinates of an ATOM/HETATM record.

    Columns 31-54 receive the new coordinates and the partial charge field
    (columns 71-76) is reset to 0; all other columns are kept.
    """
    return (f"{line[:30]}{coord[0]:8.3f}{coord[1]:8.3f}{coord[2]:8.3f}"
            f"{line[54:70]}{0:6d}{line[76:]}")


def format_model(ligand, result, model_number: int) -> List[str]:
    """Lines of one MODEL ... ENDMDL block for `result`."""
    out = [f"MODEL     {model_number:4d}", ENERGY_REMARK.format(result.energy)]
    heavy_atom = 0
    hydrogen = 0
    for line, kind in zip(ligand.lines, ligand.line_kinds):
        if kind == LINE_HEAVY_ATOM:
            out.append(format_atom_line(line, result.heavy_atoms[heavy_atom]))
            heavy_atom += 1
        elif kind == LINE_HYDROGEN:
            out.append(format_atom_line(line, result.hydrogens[hydrogen]))
            hydrogen += 1
        else:
            out.append(line)
    out.append("ENDMDL")
    return out


def write_models(filepath: Union[str, Path], ligand, results: Iterable) -> int:
    """
    Write docked poses as a multi-model PDBQT file.

    Parameters
    ----------
    filepath : str or Path
        Output file path
    ligand : Ligand
        Ligand the poses belong to; its kept record lines are reproduced
    results : Iterable[DockingResult]
        Poses in the order they should be written (best first)

    Returns
    -------
    int
        Number of models written
    """
    num_models = 0
    with open(filepath, 'w') as f:
        for i, result in enumerate(results, start=1):
            f.write('\n'.join(format_model(ligand, result, i)))
            f.write('\n')
            num_models = i
    return num_models


def write_xyz_file(filepath: Union[str, Path], ligand, result, comment: str = "", append: bool = False) -> None:
    """
    Write one pose in XYZ format, heavy atoms first, then hydrogens.

    Parameters
    ----------
    filepath : str or Path
        Output file path
    ligand : Ligand
        Ligand the pose belongs to
    result : DockingResult
        Pose to write
    comment : str
        Comment line for XYZ file
    append : bool
        If True, append to existing file instead of overwriting (default: False)
    """
    elements = [a.ad.symbol for a in ligand.heavy_atoms] + [a.ad.symbol for a in ligand.hydrogens]
    coords = list(result.heavy_atoms) + list(result.hydrogens)
    mode = 'a' if append else 'w'
    with open(filepath, mode) as f:
        f.write(f"{len(elements)}\n")
        f.write(f"{comment}\n")
        for element, coord in zip(elements, coords):
            f.write(f"{element:<4s} {coord[0]:12.6f} {coord[1]:12.6f} {coord[2]:12.6f}\n")
