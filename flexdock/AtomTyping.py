#!/usr/bin/env python3
"""
Atom Typing

This module classifies ligand atoms read from PDBQT records. Each AutoDock
atom type maps to a chemical element and to an XScore (XS) type; the XS type
selects the receptor grid map and the intramolecular potential used for the
atom.

Conventions:
    - Hydrogens (H, HD) carry no XS type and are not scored
    - Hetero atoms are all heavy atoms other than carbon
    - Covalent bond perception uses 1.1 x the element covalent radius
    - XS types are integers in [0, NUM_XS_TYPES)

Classes:
    Atom: One ATOM/HETATM record with its classification predicates
"""

from typing import Dict, Optional, Tuple

import numpy as np
from openmm.app import Element


# =============================================================================
# XScore types
# =============================================================================

XS_TYPE_NAMES = [
    'C_H', 'C_P', 'N_P', 'N_D', 'N_A', 'N_DA', 'O_A', 'O_DA',
    'S_P', 'P_P', 'F_H', 'Cl_H', 'Br_H', 'I_H', 'Met_D',
]
NUM_XS_TYPES = len(XS_TYPE_NAMES)

XS_C_H, XS_C_P, XS_N_P, XS_N_D, XS_N_A, XS_N_DA, XS_O_A, XS_O_DA, \
    XS_S_P, XS_P_P, XS_F_H, XS_Cl_H, XS_Br_H, XS_I_H, XS_Met_D = range(NUM_XS_TYPES)

XS_HYDROPHOBIC = frozenset([XS_C_H, XS_F_H, XS_Cl_H, XS_Br_H, XS_I_H])
XS_DONOR = frozenset([XS_N_D, XS_N_DA, XS_O_DA, XS_Met_D])

# Donor variant of each acceptor/polar XS type
_DONORIZED = {XS_N_P: XS_N_D, XS_N_A: XS_N_DA, XS_O_A: XS_O_DA}


# =============================================================================
# AutoDock types
# =============================================================================

# AutoDock type -> (element symbol, XS type name)
_AD_TYPE_TABLE = [
    ('H', 'H', None),
    ('HD', 'H', None),
    ('C', 'C', 'C_H'),
    ('A', 'C', 'C_H'),
    ('N', 'N', 'N_P'),
    ('NA', 'N', 'N_A'),
    ('OA', 'O', 'O_A'),
    ('SA', 'S', 'S_P'),
    ('S', 'S', 'S_P'),
    ('Se', 'Se', 'S_P'),
    ('P', 'P', 'P_P'),
    ('F', 'F', 'F_H'),
    ('Cl', 'Cl', 'Cl_H'),
    ('Br', 'Br', 'Br_H'),
    ('I', 'I', 'I_H'),
    ('Zn', 'Zn', 'Met_D'),
    ('Fe', 'Fe', 'Met_D'),
    ('Mg', 'Mg', 'Met_D'),
    ('Ca', 'Ca', 'Met_D'),
    ('Mn', 'Mn', 'Met_D'),
    ('Cu', 'Cu', 'Met_D'),
    ('Na', 'Na', 'Met_D'),
    ('K', 'K', 'Met_D'),
    ('Hg', 'Hg', 'Met_D'),
    ('Ni', 'Ni', 'Met_D'),
    ('Co', 'Co', 'Met_D'),
    ('Cd', 'Cd', 'Met_D'),
    ('As', 'As', 'Met_D'),
    ('Sr', 'Sr', 'Met_D'),
]

# Single-bond covalent radii in Angstroms
_COVALENT_RADII = {
    'H': 0.37, 'C': 0.77, 'N': 0.75, 'O': 0.73, 'S': 1.02, 'Se': 1.16,
    'P': 1.06, 'F': 0.71, 'Cl': 0.99, 'Br': 1.14, 'I': 1.33, 'Zn': 1.31,
    'Fe': 1.25, 'Mg': 1.30, 'Ca': 1.74, 'Mn': 1.39, 'Cu': 1.38, 'Na': 1.54,
    'K': 1.96, 'Hg': 1.49, 'Ni': 1.21, 'Co': 1.26, 'Cd': 1.48, 'As': 1.19,
    'Sr': 1.92,
}

COVALENT_RADIUS_SCALE = 1.1


class ADType:
    """Static properties of one AutoDock atom type."""

    def __init__(self, name: str, symbol: str, xs_name: Optional[str]):
        element = Element.getBySymbol(symbol)
        self.name = name
        self.symbol = element.symbol
        self.atomic_number = element.atomic_number
        self.xs = XS_TYPE_NAMES.index(xs_name) if xs_name is not None else None
        self.covalent_radius = COVALENT_RADIUS_SCALE * _COVALENT_RADII[symbol]

    def __repr__(self) -> str:
        return f"ADType({self.name}, element={self.symbol}, xs={self.xs})"


AD_TYPES: Dict[str, ADType] = {name: ADType(name, symbol, xs_name)
                               for name, symbol, xs_name in _AD_TYPE_TABLE}


def get_ad_type(name: str) -> Optional[ADType]:
    """Return the AutoDock type called `name`, or None if unsupported."""
    return AD_TYPES.get(name)


# =============================================================================
# Atom
# =============================================================================

class Atom:
    """
    A ligand atom read from one ATOM/HETATM record.

    The XS type is mutable only while the topology is being built
    (see `donorize` and `dehydrophobicize`); a finished Ligand never
    changes its atoms.

    Attributes
    ----------
    serial : int
        Atom serial number from the record
    name : str
        Atom name from the record
    coord : np.ndarray
        Cartesian coordinate (3,) in Angstroms
    ad_name : str
        AutoDock type as written in the record
    ad : Optional[ADType]
        Resolved AutoDock type, None when unsupported
    xs : Optional[int]
        XScore type index, None for hydrogens and unsupported atoms
    """

    def __init__(self, serial: int, name: str, coord, ad_name: str):
        self.serial = serial
        self.name = name
        self.coord = np.array(coord, dtype=np.float64)
        self.ad_name = ad_name
        self.ad = get_ad_type(ad_name)
        self.xs = self.ad.xs if self.ad is not None else None

    @classmethod
    def from_pdbqt_line(cls, line: str) -> 'Atom':
        """
        Parse a PDBQT ATOM/HETATM record.

        Parameters
        ----------
        line : str
            Record with the serial in columns 7-11, the name in 13-16,
            coordinates in 31-54 and the AutoDock type in 78-79.

        Returns
        -------
        Atom
            Parsed atom (possibly of an unsupported type)

        Raises
        ------
        ValueError
            If a numeric field cannot be parsed or the type is missing
        """
        ad_name = line[77:79].strip()
        if not ad_name:
            raise ValueError("missing AutoDock atom type in columns 78-79")
        serial = int(line[6:11])
        coord = (float(line[30:38]), float(line[38:46]), float(line[46:54]))
        return cls(serial, line[12:16].strip(), coord, ad_name)

    def __repr__(self) -> str:
        return f"Atom(serial={self.serial}, name={self.name!r}, type={self.ad_name})"

    @property
    def is_unsupported(self) -> bool:
        return self.ad is None

    @property
    def is_hydrogen(self) -> bool:
        return self.ad is not None and self.ad.atomic_number == 1

    @property
    def is_polar_hydrogen(self) -> bool:
        return self.ad_name == 'HD'

    @property
    def is_hetero(self) -> bool:
        return self.ad is not None and self.ad.atomic_number not in (1, 6)

    @property
    def is_hydrophobic(self) -> bool:
        return self.xs in XS_HYDROPHOBIC

    @property
    def is_donor(self) -> bool:
        return self.xs in XS_DONOR

    @property
    def covalent_radius(self) -> float:
        return self.ad.covalent_radius

    def has_covalent_bond(self, other: 'Atom') -> bool:
        """True when the two atoms are closer than the sum of their covalent radii."""
        s = self.covalent_radius + other.covalent_radius
        delta = self.coord - other.coord
        return float(delta @ delta) < s * s

    def donorize(self) -> None:
        """Turn an acceptor or polar nitrogen/oxygen into its donor XS type."""
        self.xs = _DONORIZED.get(self.xs, self.xs)

    def dehydrophobicize(self) -> None:
        """Mark a carbon bonded to a hetero atom as polar."""
        if self.xs == XS_C_H:
            self.xs = XS_C_P


def covalent_radii(atoms) -> np.ndarray:
    """Covalent radii of a sequence of atoms as an array."""
    return np.array([a.covalent_radius for a in atoms], dtype=np.float64)


def xs_type_names(types) -> Tuple[str, ...]:
    """Readable names of a sequence of XS type indices."""
    return tuple(XS_TYPE_NAMES[t] for t in types)
