"""Command-line interface utilities for self-consistent solver experiments.

This module provides shared argument parsing functionality for all driver scripts.
"""

from argparse import ArgumentParser, BooleanOptionalAction


def create_parser(description: str = "Self-consistent parameter solver") -> ArgumentParser:
    """Create argument parser for solver experiments.

    Options left at ``None`` keep the value from the configuration file.

    Parameters
    ----------
    description : str
        Parser description

    Returns
    -------
    ArgumentParser
        Configured argument parser

    Examples
    --------
    >>> parser = create_parser(description="Zero-temperature solver")
    >>> options = parser.parse_args(["--config", "env.json", "-N", "32"])
    """
    parser = ArgumentParser(description=description)

    # Configuration file
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON Environment file to start from (default: built-in defaults)",
    )

    # Grid size
    parser.add_argument(
        "-N",
        "--grid-length",
        dest="grid_length",
        type=int,
        default=None,
        help="Number of points along each side of the Brillouin zone",
    )

    # Worker pool
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads for grid reductions",
    )

    # Convergence control
    parser.add_argument(
        "--tolerance-scale",
        type=float,
        default=None,
        help="Residual tolerance in units of machine epsilon",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Maximum cascade passes per admitted equation",
    )

    # Kernels
    parser.add_argument(
        "--numba",
        action=BooleanOptionalAction,
        default=None,
        help="Use numba-compiled summation kernels",
    )

    # Output
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output base name for the solved Environment and history (default: auto-generated from N)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log per-cycle residuals and reduction details",
    )

    return parser


def apply_options(env, options) -> None:
    """Copy command-line overrides onto an Environment."""
    overrides = {
        "grid_length": options.grid_length,
        "num_procs": options.workers,
        "tolerance_scale": options.tolerance_scale,
        "max_cycles": options.max_cycles,
        "use_numba": options.numba,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(env, name, value)
