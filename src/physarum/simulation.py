"""Simulation: populations, trail fields and the iteration protocol.

One step():

  1. draw one tie-break coin per agent, population by population
  2. every population senses the committed fields and moves; deposits go
     to each field's pending buffer, invisible to sensing
  3. barrier: all populations done
  4. every field commits its deposits and runs diffuse-decay once
  5. barrier: all fields done; iteration_count += 1

Lifecycle: UNINITIALIZED -> READY -> (STEPPING -> READY)* -> STOPPED.
Construction either returns a READY simulation or raises
ConfigurationError; nothing half-built escapes. STOPPED is terminal.

With workers > 1 agents and grid bands run on a thread pool. Results are
bit-identical run to run for a fixed seed and worker count. Changing the
worker count only changes the order in which deposits are summed, so
fields may differ in the last bits of rounding.
"""

import copy
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

import numpy as np

from .config import SimulationConfig, require_int
from .errors import ConfigurationError, SimulationStopped
from .field import TrailField
from .population import Population
from .trig import get_trig

logger = logging.getLogger(__name__)


class SimulationState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STEPPING = "stepping"
    STOPPED = "stopped"


class Simulation:
    def __init__(self, config):
        self.state = SimulationState.UNINITIALIZED
        if not isinstance(config, SimulationConfig):
            raise ConfigurationError(f"Expected a SimulationConfig, got {type(config).__name__}")
        # Later edits to the caller's config must not reach a running simulation.
        config = copy.deepcopy(config)
        config.validate()
        self.config = config
        self.width = config.width
        self.height = config.height
        self.trig = get_trig(config.trig)
        self.dtype = np.dtype(config.dtype)

        self.fields = [
            TrailField(self.width, self.height, self.dtype, channel=ch)
            for ch in range(config.num_channels)
        ]
        self.populations = [
            Population(i, spec, config.num_channels, self.width, self.height, self.trig, config.sampling)
            for i, spec in enumerate(config.populations)
        ]

        self._seed = config.seed
        self._initialize()

        self._executor = None
        if config.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=config.workers, thread_name_prefix="physarum"
            )
        self.state = SimulationState.READY
        logger.info(
            "Simulation ready: %dx%d grid, %d populations, %d agents, %d channels, %d workers",
            self.width,
            self.height,
            len(self.populations),
            sum(len(p) for p in self.populations),
            len(self.fields),
            config.workers,
        )

    def _initialize(self):
        self.rng = np.random.default_rng(self._seed)
        self._iteration = 0
        total = len(self.populations)
        for population in self.populations:
            population.spawn(self.rng, total)
        for f in self.fields:
            f.clear()
            if self.config.initial_trail == "noise":
                f.fill_noise(self.rng, self.config.noise_scale)

    def _require_running(self):
        if self.state == SimulationState.STOPPED:
            raise SimulationStopped("Simulation has been stopped")

    # --- Control surface ---

    def step(self):
        self._require_running()
        self.state = SimulationState.STEPPING
        start = time.perf_counter()
        workers = self.config.workers
        try:
            coins = [self.rng.integers(0, 2, size=len(p)) for p in self.populations]
            for population, coin in zip(self.populations, coins):
                population.advance(
                    self.fields, coin, self._executor, workers, self.config.deposit_policy
                )
            for ch, f in enumerate(self.fields):
                f.diffuse_decay(
                    self.config.kernel_for(ch),
                    self.config.decay_for(ch),
                    self._executor,
                    workers,
                    self.config.check_finite,
                )
            self._iteration += 1
            self.state = SimulationState.READY
        finally:
            # An unfinished step leaves agents moved and deposits uncommitted.
            if self.state == SimulationState.STEPPING:
                self.stop()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "iteration %d: %.1fms, mass=%s",
                self._iteration,
                (time.perf_counter() - start) * 1000,
                ", ".join(f"{m:.3f}" for m in self.total_mass()),
            )

    def step_n(self, count):
        try:
            valid = not isinstance(count, bool) and int(count) == count
        except (TypeError, ValueError, OverflowError):
            valid = False
        if not valid or count < 0:
            raise ValueError(f"Step count must be an integer >= 0, got {count!r}")
        for _ in range(int(count)):
            self.step()

    def reset(self, seed=None):
        """Respawn agents and reinitialize fields. Without a seed, reuse the last one."""
        self._require_running()
        if seed is not None:
            self._seed = require_int("seed", seed, 0)
        self._initialize()
        self.state = SimulationState.READY
        logger.info("Simulation reset with seed %s", self._seed)

    def iteration_count(self):
        return self._iteration

    def stop(self):
        if self.state == SimulationState.STOPPED:
            return
        self.state = SimulationState.STOPPED
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Simulation stopped after %d iterations", self._iteration)

    close = stop

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    # --- Read-only queries ---

    @property
    def seed(self):
        return self._seed

    def field(self, channel):
        return self.fields[channel]

    def snapshot(self, channel):
        """Copy of one channel's committed values, shape (height, width)."""
        return self.fields[channel].snapshot()

    def snapshots(self):
        return [f.snapshot() for f in self.fields]

    def total_mass(self):
        return [f.total_mass() for f in self.fields]

    def describe(self):
        """Per-population parameter summary, one line each."""
        lines = []
        for p in self.populations:
            lines.append(f"[{p.index}] {p.name}: agents={len(p)}  {p.config.describe()}")
        for ch in range(len(self.fields)):
            lines.append(
                f"channel {ch}: decay={self.config.decay_for(ch):.2f}  kernel={self.config.kernel_for(ch)!r}"
            )
        return lines

    def __repr__(self):
        return (
            f"Simulation({self.width}x{self.height}, populations={len(self.populations)}, "
            f"iteration={self._iteration}, state={self.state.value})"
        )
