"""Population: a fixed-size group of agents sharing one PopulationConfig.

Agent state is three float64 arrays (x, y, heading). advance() moves every
agent one step. Agents never read or write each other's state, so the
population is split into contiguous chunks that can run on worker threads:

  sense    reads the combined pre-iteration grid only
  deposit  "partitioned": each chunk fills a private buffer, merged by
           summation in chunk order once every chunk is done
           "shared": each chunk adds through the field's locked deposit()

Tie-break coins are drawn by the caller before dispatch, so the random
stream does not depend on the number of workers.
"""

import numpy as np

from .agent import Agent, AgentBatch, deposit_into, step_agents
from .errors import ConfigurationError
from .field import wrap
from .parallel import bands, run_bands
from .sensor import SensorModel, combined_grid
from .spawn import SPAWN_MODES
from .trig import EXACT

TWO_PI = 2.0 * np.pi


class Population:
    def __init__(self, index, spec, num_channels, width, height, trig=EXACT, sampling="cell"):
        self.index = index
        self.spec = spec
        self.config = spec.config
        self.name = spec.name or f"population-{index}"
        self.width = width
        self.height = height
        self.trig = trig
        self.sensitivity = self.config.sensitivity_vector(num_channels)
        if self.config.channel >= num_channels:
            raise ConfigurationError(
                f"{self.name} deposits into channel {self.config.channel}, "
                f"but there are only {num_channels} channels"
            )
        self.sensor = SensorModel.from_config(self.config, trig, sampling)
        self.x = np.zeros(spec.count)
        self.y = np.zeros(spec.count)
        self.heading = np.zeros(spec.count)

    def __len__(self):
        return self.spec.count

    def __iter__(self):
        for i in range(len(self)):
            yield self.agent(i)

    def agent(self, i):
        return Agent(float(self.x[i]), float(self.y[i]), float(self.heading[i]), self.index)

    # --- Placement ---

    def spawn(self, rng, total=1):
        """Place agents with this population's configured spawn mode."""
        fn = SPAWN_MODES[self.spec.spawn]
        self.x, self.y, self.heading = fn(rng, len(self), self.width, self.height, self.index, total)

    def place(self, x, y, heading):
        """Overwrite every agent's pose. Scalars broadcast to all agents."""
        poses = []
        for name, values in (("x", x), ("y", y), ("heading", heading)):
            arr = np.asarray(values, dtype=np.float64)
            try:
                arr = np.broadcast_to(arr, (len(self),))
            except ValueError:
                raise ConfigurationError(
                    f"Cannot place {len(self)} agents from {name} of shape {arr.shape}"
                ) from None
            if not np.isfinite(arr).all():
                raise ConfigurationError(f"Agent {name} values must be finite")
            poses.append(arr)
        self.x = wrap(poses[0], self.width)
        self.y = wrap(poses[1], self.height)
        self.heading = wrap(poses[2], TWO_PI)

    # --- Stepping ---

    def sensing_grid(self, fields):
        return combined_grid(self.sensitivity, [f.values for f in fields])

    def advance(self, fields, coin, executor=None, parts=1, policy="partitioned"):
        """Advance all agents one step.

        `fields` is the full channel list; it must not be diffused until this
        returns. `coin` holds one 0/1 tie-break draw per agent.
        """
        grid = self.sensing_grid(fields)
        target = fields[self.config.channel]
        chunks = bands(len(self), parts)
        results = {}
        buffers = {}

        def run(start, stop):
            batch = AgentBatch(self.x[start:stop], self.y[start:stop], self.heading[start:stop])
            if policy == "partitioned":
                buffer = target.accumulator()
                buffers[start] = buffer

                def deposit(x, y, amount):
                    deposit_into(buffer, x, y, amount)

            else:
                deposit = target.deposit
            results[start] = step_agents(
                batch,
                coin[start:stop],
                grid,
                self.sensor,
                self.config,
                self.width,
                self.height,
                deposit,
                self.trig,
            )

        run_bands(executor, run, chunks)

        for start, stop in chunks:
            batch = results[start]
            self.x[start:stop] = batch.x
            self.y[start:stop] = batch.y
            self.heading[start:stop] = batch.heading
            if start in buffers:
                target.merge(buffers[start])

    def __repr__(self):
        return f"Population({self.name!r}, agents={len(self)}, channel={self.config.channel})"
