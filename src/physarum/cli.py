"""Headless runner: random species configs, N steps, summary on stdout.

    python -m physarum [--steps 200] [--species 4] [--particles 20000]
    python -m physarum --width 512 --height 512 --seed 7 --workers 4
    python -m physarum --kernel gaussian --sigma 1.5 --trig approximate
"""

import argparse
import logging
import math
import sys
import time

import numpy as np

from .blur import BoxBlur, GaussianBlur, identity_kernel
from .config import (
    RANDOM_DECAY,
    PopulationSpec,
    SimulationConfig,
    random_attraction,
    random_population_configs,
)
from .errors import PhysarumError
from .simulation import Simulation
from .spawn import SPAWN_MODES
from .trig import TRIG_STRATEGIES

WIDTH = 320
HEIGHT = 240
STEPS = 200
PARTICLES_PER_SPECIES = 25_000
PERCENTILE = 0.99


def build_parser():
    parser = argparse.ArgumentParser(prog="physarum", description="Headless Physarum simulation")
    parser.add_argument("--steps", type=int, default=STEPS, help=f"Simulation steps (default: {STEPS})")
    parser.add_argument("--species", type=int, default=4, help="Number of species 1-4 (default: 4)")
    parser.add_argument(
        "--particles",
        type=int,
        default=PARTICLES_PER_SPECIES,
        help=f"Particles per species (default: {PARTICLES_PER_SPECIES})",
    )
    parser.add_argument("--width", type=int, default=WIDTH, help=f"Grid width (default: {WIDTH})")
    parser.add_argument("--height", type=int, default=HEIGHT, help=f"Grid height (default: {HEIGHT})")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument("--workers", type=int, default=1, help="Worker threads (default: 1)")
    parser.add_argument("--spawn", choices=list(SPAWN_MODES), default="random")
    parser.add_argument("--trig", choices=list(TRIG_STRATEGIES), default="exact")
    parser.add_argument("--kernel", choices=["box", "gaussian", "identity"], default="box")
    parser.add_argument("--radius", type=int, default=1, help="Box blur radius (default: 1)")
    parser.add_argument("--iterations", type=int, default=2, help="Box blur passes (default: 2)")
    parser.add_argument("--sigma", type=float, default=1.0, help="Gaussian sigma (default: 1.0)")
    parser.add_argument("--decay", type=float, default=RANDOM_DECAY, help=f"Decay factor (default: {RANDOM_DECAY})")
    parser.add_argument("--verbose", action="store_true", help="Log every iteration")
    return parser


def make_config(args):
    num_species = max(1, min(4, args.species))
    # Separate generator from the simulation's own.
    rng = np.random.default_rng(args.seed)
    attraction = random_attraction(rng, num_species)
    configs = random_population_configs(rng, num_species, attraction)

    if args.kernel == "gaussian":
        kernel = GaussianBlur(args.sigma)
    elif args.kernel == "identity":
        kernel = identity_kernel()
    else:
        kernel = BoxBlur(args.radius, args.iterations)

    return SimulationConfig(
        width=args.width,
        height=args.height,
        populations=[PopulationSpec(cfg, args.particles, args.spawn) for cfg in configs],
        seed=args.seed,
        kernel=kernel,
        decay=args.decay,
        workers=args.workers,
        trig=args.trig,
        initial_trail="noise",
    ), attraction


def print_summary(sim, attraction):
    total = sum(len(p) for p in sim.populations)
    print(f"{total} particles on a {sim.width}x{sim.height} grid")
    print()
    print("Species configs:")
    for line in sim.describe():
        print(f"  {line}")
    print()
    print("Attraction matrix:")
    for row in attraction:
        print("  " + "  ".join(f"{v:+.3f}" for v in row))
    print()


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config, attraction = make_config(args)
        sim = Simulation(config)
    except PhysarumError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with sim:
        print_summary(sim, attraction)
        t_start = time.time()
        try:
            for step in range(args.steps):
                sim.step()
                elapsed = time.time() - t_start
                if (step + 1) % 10 == 0 or step == 0:
                    rate = (step + 1) / max(elapsed, 1e-9)
                    eta = (args.steps - step - 1) / rate
                    print(
                        f"  step {step + 1}/{args.steps}  "
                        f"({elapsed:.1f}s elapsed, ~{eta:.0f}s remaining, {rate:.1f} steps/s)"
                    )
        except PhysarumError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        print()
        print(f"Simulation complete: {time.time() - t_start:.1f}s, {sim.iteration_count()} iterations")
        for ch, f in enumerate(sim.fields):
            q = f.quantile(PERCENTILE)
            print(f"  channel {ch}: mass={f.total_mass():.3f}  p{math.floor(PERCENTILE * 100)}={q:.4f}")
    return 0
