#!/usr/bin/env python3
"""
Setup script for flexdock - Flexible Ligand Docking.

Installation:
    pip install -e .                    # Development install
    pip install .                       # Regular install

Usage after installation:
    flexdock -l ligand.pdbqt -g grid.npz -p potential.npz -o docked.pdbqt
    python -m flexdock -l ligand.pdbqt -g grid.npz -p potential.npz -o docked.pdbqt
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding='utf-8') if readme_file.exists() else ""

# Read requirements if exists
requirements_file = Path(__file__).parent / "requirements.txt"
if requirements_file.exists():
    requirements = [line.strip() for line in requirements_file.read_text().splitlines()
                   if line.strip() and not line.startswith('#')]
else:
    # Fallback: specify requirements directly
    requirements = [
        'numpy>=1.20.0',
        'scipy>=1.7.0',
        'openmm>=7.7.0',
    ]

setup(
    name="flexdock",
    version="1.0.0",
    description="Flexible ligand docking with BFGS-relaxed Monte Carlo search over precomputed receptor grids",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(include=['flexdock', 'flexdock.*']),
    package_dir={'': '.'},

    # Dependencies
    install_requires=requirements,
    extras_require={
        'test': ['pytest'],
    },

    python_requires='>=3.8',

    # Entry points for command-line tools
    entry_points={
        'console_scripts': [
            'flexdock=flexdock.__main__:main',
        ],
    },

    # Classifiers for PyPI
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Chemistry',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'Programming Language :: Python :: 3',
    ],

    keywords='molecular-docking flexible-ligand pdbqt bfgs monte-carlo',
)
