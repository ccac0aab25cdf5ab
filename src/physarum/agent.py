"""Agents and the per-agent step: sense -> rotate -> move -> deposit.

Agents are stored struct-of-arrays (x, y, heading per population, see
population.py) so the step below runs on a whole batch at once. An Agent
is an immutable snapshot of one entry, handy for inspection and tests.

Turns are discrete: a turning agent rotates by the full rotation angle.
An agent with step_distance 0 still senses and turns but never moves.
"""

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from .field import cell_index, wrap
from .trig import EXACT

TWO_PI = 2.0 * np.pi


@dataclass(frozen=True)
class Agent:
    x: float
    y: float
    heading: float
    population: int = 0

    def cell(self, width, height):
        """The (x, y) grid cell this agent deposits into."""
        return int(cell_index(self.x, width)), int(cell_index(self.y, height))


class AgentBatch(NamedTuple):
    x: np.ndarray
    y: np.ndarray
    heading: np.ndarray


def rotate(heading, decision, rotation_angle):
    """Turn by decision * rotation_angle (decision in {-1, 0, +1})."""
    return wrap(heading + decision * rotation_angle, TWO_PI)


def move(x, y, heading, step_distance, width, height, trig=EXACT):
    cos, sin = trig.unit(heading)
    return wrap(x + cos * step_distance, width), wrap(y + sin * step_distance, height)


def deposit_into(buffer, x, y, amount):
    """Unbuffered add of `amount` at each position's cell. Repeated cells accumulate."""
    h, w = buffer.shape
    np.add.at(buffer, (cell_index(y, h), cell_index(x, w)), amount)


def step_agents(batch, coin, sensing_grid, sensor, config, width, height, deposit, trig=EXACT):
    """Advance a batch of agents one step and return the new AgentBatch.

    `sensing_grid` is the population's combined pre-iteration grid and is
    only read. `deposit(x, y, amount)` receives the new positions; it must
    write somewhere other than `sensing_grid`.
    """
    decision = sensor.sense(sensing_grid, batch.x, batch.y, batch.heading, coin)
    heading = rotate(batch.heading, decision, config.rotation_angle)
    x, y = move(batch.x, batch.y, heading, config.step_distance, width, height, trig)
    if config.deposit > 0:
        deposit(x, y, config.deposit)
    return AgentBatch(x, y, heading)
