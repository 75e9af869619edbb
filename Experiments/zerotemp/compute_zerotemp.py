"""Solve the zero-temperature self-consistent system for d1, mu and f0.

Loads an Environment (or starts from the defaults), applies command-line
overrides, runs the cascade and saves the solved Environment plus the
convergence history to the data directory.
"""

import logging
import sys

from utils import cli, io
from polecalc import CascadeSolver, Environment, PolecalcError, zero_temp_equations

# Create the argument parser using shared utility
parser = cli.create_parser(description="Zero-temperature self-consistent solver")

# Grab options!
options = parser.parse_args()

logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=logging.DEBUG if options.verbose else logging.INFO,
)

env = Environment.from_file(options.config) if options.config else Environment()
cli.apply_options(env, options)
env.initialize()

equations = zero_temp_equations()
solver = CascadeSolver(tolerance=env.tolerance, max_cycles=env.max_cycles)

try:
    results = solver.solve(equations, env)
except PolecalcError as err:
    print(f"Solver failed: {err}", file=sys.stderr)
    print(env.zero_temp_errors(), file=sys.stderr)
    sys.exit(1)

# Print summary
print(f"Wall time = {results.wall_time:.6f} s")
print(f"Cycles = {results.cycles}")
print(f"Solves per equation = {results.solve_counts}")
print(f"d1 = {env.d1:.12g}, mu = {env.mu:.12g}, f0 = {env.f0:.12g}")
print(env.zero_temp_errors())

# Save results to data directory (automatically mirrors Experiments/ structure)
base_name = options.output or f"zerotemp_N{env.grid_length}"
config = solver.config(equations, grid_length=env.grid_length, num_workers=env.num_procs, use_numba=env.use_numba)
written = io.save_run(io.get_data_dir(), base_name, env, config, results)

print(f"Environment saved to: {written['env']}")
print(f"History saved to: {written['history']}")
