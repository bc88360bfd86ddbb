# main.py
import argparse
import os
import time

import numpy as np

from .debug import check_symmetry
from .definitions import Player, MAX_ITERATIONS, MAX_TIME_STEPS, InfeasibleStateError
from .experiments import EXPERIMENTS, DOMAIN_TYPES, Experiment, get_experiment
from .plotting import plot_convergence, plot_domain, plot_value_slice
from .value_function import ValueFunction


def format_state(x) -> str:
    return "(" + ", ".join(f"{v:g}" for v in x) + ")"


def run_experiment(experiment: Experiment, output_dir: str,
                   max_iterations: int = MAX_ITERATIONS, use_symmetry: bool = True,
                   recompute: bool = False, symmetry_check: bool = False) -> ValueFunction:
    print("=" * 70)
    print(f"EXPERIMENT {experiment.code}: {experiment.description}")
    print("=" * 70)

    game = experiment.build_game()
    game.set_max_iterations(max_iterations)
    game.use_symmetry = use_symmetry
    game.verbose = True
    domain = game.get_domain()

    print(game)
    print(f"width = {domain.get_maximal_resolution_width()}")
    print(f"eps = {experiment.tolerance}")

    os.makedirs(output_dir, exist_ok=True)
    prefix = os.path.join(output_dir, experiment.name)
    plot_domain(domain, f"{prefix}_domain.png")

    vfunc_file = f"{prefix}.vfunc"
    if os.path.exists(vfunc_file) and not recompute:
        vfunc = ValueFunction.load(domain, vfunc_file)
        print(f"\nLoaded value function from {vfunc_file}")
    else:
        start_time = time.time()
        vfunc = game.compute_value_function(experiment.tolerance)
        elapsed = time.time() - start_time
        print(f"  finished with {vfunc.get_iterations()} iterations")
        print(f"\nTotal computation time: {elapsed:.2f} seconds")
        if vfunc.get_iterations() > 0:
            print(f"Time per iteration: {elapsed / vfunc.get_iterations():.3f} seconds")
        vfunc.persist(vfunc_file)
        print(f"Value function saved to {vfunc_file}")
        plot_convergence(game.convergence_history, f"{prefix}_convergence.png")

    if symmetry_check:
        check_symmetry(vfunc, verbose=True)

    for k, x in enumerate(experiment.slices):
        filename = f"{prefix}_slice{k}.png"
        try:
            plot_value_slice(vfunc, Player.PURSUER, x, filename, time_value=True)
        except InfeasibleStateError as e:
            print(f"Skipping slice {format_state(x)}: {e}")
            continue
        print(f"Value slice for pursuer at {format_state(x[:2])} saved to {filename}")

    for k, x in enumerate(experiment.trajectories, start=1):
        print("\nPlotting trajectory for state:")
        print(format_state(x))
        traj_file = f"{prefix}.traj{k}"
        if os.path.exists(traj_file) and not recompute:
            print(f"  {traj_file} exists, skipping")
            continue
        if not domain.is_feasible(np.asarray(x, dtype=float)):
            print("  Start state is not feasible, skipping")
            continue
        steps = game.plot_trajectories(vfunc, x, traj_file, f"{prefix}_traj{k}.png")
        print(f"Time Steps till capture or abort: {steps}")

    print(f"\nResults saved to: {output_dir}/")
    return vfunc


def experiment_from_args(args) -> Experiment:
    if args.experiment is not None:
        return get_experiment(args.experiment)
    return Experiment(
        code="custom",
        description=f"{args.domain} domain from the command line",
        num_nodes=args.nodes,
        control_resolution=args.controls,
        domain=args.domain,
        min_pos=args.min,
        max_pos=args.max,
        hole_min=args.hole_min,
        hole_max=args.hole_max,
        hole_center=tuple(args.hole_center),
        radius=args.radius,
        velocity_pursuer=args.velocity_pursuer,
        velocity_evader=args.velocity_evader,
        allow_standing_still=not args.no_standing_still,
        tolerance=args.tolerance,
        max_time_steps=args.max_time_steps,
        slices=[tuple(s) for s in args.slice or []],
        trajectories=[tuple(s) for s in args.start or []],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Value iteration for a discrete pursuit-evasion game",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--experiment', type=str, default=None,
                        help="Run a predefined experiment, e.g. 0.0.1")
    parser.add_argument('--list', action='store_true', help="List predefined experiments")

    # Domain
    parser.add_argument('--domain', type=str, choices=DOMAIN_TYPES, default='square',
                        help="Domain type")
    parser.add_argument('--min', type=float, default=-2.0, help="Lower bound of every coordinate")
    parser.add_argument('--max', type=float, default=2.0, help="Upper bound of every coordinate")
    parser.add_argument('--nodes', type=int, default=14, help="Grid nodes per axis")
    parser.add_argument('--hole-min', type=float, default=-0.5, help="Square hole lower bound")
    parser.add_argument('--hole-max', type=float, default=0.5, help="Square hole upper bound")
    parser.add_argument('--hole-center', type=float, nargs=2, default=[0.0, 0.0],
                        metavar=('X', 'Y'), help="Round hole center")
    parser.add_argument('--radius', type=float, default=0.5, help="Round hole radius")

    # Game
    parser.add_argument('--controls', type=int, default=8, help="Number of directions")
    parser.add_argument('--velocity-pursuer', type=float, default=2.0, help="Pursuer velocity")
    parser.add_argument('--velocity-evader', type=float, default=1.0, help="Evader velocity")
    parser.add_argument('--no-standing-still', action='store_true',
                        help="Forbid standing still")
    parser.add_argument('--no-symmetry', action='store_true',
                        help="Evaluate every vertex instead of mirroring symmetric ones")

    # Iteration
    parser.add_argument('--tolerance', type=float, default=1e-3, help="Convergence tolerance")
    parser.add_argument('--max-iterations', type=int, default=MAX_ITERATIONS,
                        help="Max value iterations")
    parser.add_argument('--max-time-steps', type=int, default=MAX_TIME_STEPS,
                        help="Max trajectory steps")

    # Output
    parser.add_argument('--start', type=float, nargs=4, action='append',
                        metavar=('XP', 'YP', 'XE', 'YE'), help="Trajectory start state")
    parser.add_argument('--slice', type=float, nargs=4, action='append',
                        metavar=('XP', 'YP', 'XE', 'YE'), help="Value slice with pursuer fixed")
    parser.add_argument('--recompute', action='store_true',
                        help="Ignore cached value functions and trajectories")
    parser.add_argument('--check-symmetry', action='store_true',
                        help="Report reflective symmetry violations of the value function")
    parser.add_argument('--output-dir', type=str, default='./results', help="Output directory")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for code, experiment in EXPERIMENTS.items():
            print(f"{code}: {experiment.description} ({experiment.domain}, "
                  f"n={experiment.num_nodes}, n_c={experiment.control_resolution})")
        return

    try:
        experiment = experiment_from_args(args)
        experiment.build_domain()
    except ValueError as e:
        parser.error(str(e))

    run_experiment(experiment, args.output_dir,
                   max_iterations=args.max_iterations,
                   use_symmetry=not args.no_symmetry,
                   recompute=args.recompute,
                   symmetry_check=args.check_symmetry)


if __name__ == "__main__":
    main()
