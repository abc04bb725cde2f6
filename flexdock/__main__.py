#!/usr/bin/env python3
"""
Command-line interface for flexible ligand docking.

This script docks a flexible PDBQT ligand into a precomputed receptor grid by
running independent seeded Monte Carlo trials with BFGS relaxation, and
writes the best distinct poses as a multi-model PDBQT file.

Example usage:
    # After installation
    flexdock -l ligand.pdbqt -g grid.npz -p potential.npz -o docked.pdbqt

    # As a Python module
    python -m flexdock -l ligand.pdbqt -g grid.npz -p potential.npz --trials 16 --workers 4
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import IOTools
from . import __version__


# Custom formatter that removes "(default: False)" from boolean flags
class CustomHelpFormatter(argparse.ArgumentDefaultsHelpFormatter):
    def _get_help_string(self, action: argparse.Action) -> Optional[str]:
        help_str = super()._get_help_string(action)
        if help_str and "(default: False)" in help_str:
            help_str = help_str.replace(" (default: False)", "")
        return help_str


from .ConformationOptimizer import ConformationOptimizer, DEFAULT_MAX_RESULTS, DEFAULT_NUM_GENERATIONS


# Default configuration values
DEFAULT_SEED = 42
DEFAULT_NUM_TRIALS = 8
DEFAULT_NUM_WORKERS = 1
DEFAULT_OUTPUT = 'docked.pdbqt'

LOG_FORMAT = "%(name)s %(asctime)s %(levelname)s %(message)s"


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Flexible ligand docking in a precomputed receptor grid',
        formatter_class=CustomHelpFormatter,
        epilog='For more information, see ConformationOptimizer module documentation.'
    )

    required = parser.add_argument_group('Required Arguments')
    required.add_argument('-l', '--ligand', required=True,
                          help='Ligand structure file (.pdbqt)')
    required.add_argument('-g', '--grid', required=True,
                          help='Receptor grid maps (.npz with center, size, granularity and map_<XS type> arrays)')
    required.add_argument('-p', '--potential', required=True,
                          help='Intramolecular pair potential tables (.npz with e and d arrays)')

    io_group = parser.add_argument_group('Input/Output Files')
    io_group.add_argument('-o', '--output', default=DEFAULT_OUTPUT,
                          help='Output file with the docked poses (multi-model .pdbqt)')
    io_group.add_argument('--xyz', type=str,
                          help='Also write the docked poses to this XYZ file')

    search_group = parser.add_argument_group('Search Parameters')
    search_group.add_argument('--seed', type=int, default=DEFAULT_SEED,
                              help='Seed of the first trial; trial i uses seed + i')
    search_group.add_argument('--trials', type=int, default=DEFAULT_NUM_TRIALS,
                              help='Number of independent trials')
    search_group.add_argument('--generations', type=int, default=DEFAULT_NUM_GENERATIONS,
                              help='Monte Carlo generations per trial')
    search_group.add_argument('--max-results', type=int, default=DEFAULT_MAX_RESULTS,
                              help='Maximum number of poses written')
    search_group.add_argument('--workers', type=int, default=DEFAULT_NUM_WORKERS,
                              help='Number of worker processes')

    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}',
                        help='Show version number and exit')
    parser.add_argument('-v', '--verbose', action='store_true',
                        default=False,
                        help='Print verbose progress output and debug logging')
    args = parser.parse_args(argv)

    if args.trials < 1:
        parser.error(f"--trials must be at least 1, got {args.trials}")
    if args.generations < 0:
        parser.error(f"--generations must not be negative, got {args.generations}")
    if args.max_results < 1:
        parser.error(f"--max-results must be at least 1, got {args.max_results}")
    if args.workers < 1:
        parser.error(f"--workers must be at least 1, got {args.workers}")
    return args


def configure_logging(verbose: bool) -> None:
    """Send package log records to stdout."""
    logger = logging.getLogger('flexdock')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not logger.handlers:
        log_stream_handler = logging.StreamHandler(sys.stdout)
        log_stream_handler.setLevel(logging.DEBUG)
        log_stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(log_stream_handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = parse_arguments(argv)
    verbose = args.verbose
    configure_logging(verbose)

    print("=" * 70)
    print("Flexible Ligand Docking")
    print("=" * 70)
    print(f"\nLigand:    {args.ligand}")
    print(f"Grid:      {args.grid}")
    print(f"Potential: {args.potential}")

    try:
        optimizer = ConformationOptimizer.from_files(args.ligand, args.grid, args.potential)
        if verbose:
            print(f"\n{optimizer.ligand.summary()}")

        seeds = range(args.seed, args.seed + args.trials)
        results = optimizer.run(seeds, args.generations, max_results=args.max_results,
                                max_workers=args.workers, verbose=verbose)

        num_models = IOTools.write_models(args.output, optimizer.ligand, results)
        if args.xyz:
            for i, result in enumerate(results):
                IOTools.write_xyz_file(args.xyz, optimizer.ligand, result,
                                       comment=f"Model {i + 1} energy {result.energy:.3f} kcal/mol",
                                       append=i > 0)

        print("\n" + "=" * 70)
        print("RESULTS")
        print("=" * 70)
        for i, result in enumerate(results, start=1):
            print(f"Model {i:4d}: {result.energy:8.3f} kcal/mol   "
                  f"RMSD from best {result.rmsd(results.best):6.3f} A")
        print(f"\n{num_models} pose(s) saved to: {args.output}")
        print("=" * 70)
        return 0

    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
