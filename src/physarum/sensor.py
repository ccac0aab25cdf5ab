"""SensorModel: three forward sensors and the classic Jones (2010) turn rule.

Each agent samples the trail at three points `sensor_distance` ahead:

        L (heading - sensor_angle)
       /
    agent --- C (heading)
       \\
        R (heading + sensor_angle)

and picks a turn:

    C >= max(L, R)   go straight (covers L == C == R)
    L == R > C       random left or right, fair coin per agent per step
    L > R            turn left
    R > L            turn right

The coin on symmetric readings keeps agents facing a symmetric field from
drifting to one side in lockstep.

The value sampled is the population's sensitivity-weighted sum over all
channels, built once per population per iteration by combined_grid().
"""

from enum import IntEnum

import numpy as np

from .field import sample_grid
from .trig import EXACT


class TurnDecision(IntEnum):
    LEFT = -1
    STRAIGHT = 0
    RIGHT = 1


def combined_grid(weights, grids):
    """Blend channel grids by one population's sensitivity weights.

    Positive weights attract, negative weights repel, zero weights are
    skipped entirely.
    """
    result = np.zeros_like(grids[0])
    for w, g in zip(weights, grids):
        if w != 0.0:
            result += result.dtype.type(w) * g
    return result


def decide(left, center, right, coin):
    """Vectorized turn rule. `coin` holds 0 (left) / 1 (right) per agent."""
    left = np.asarray(left)
    center = np.asarray(center)
    right = np.asarray(right)
    coin = np.asarray(coin)

    decision = np.where(left > right, TurnDecision.LEFT, TurnDecision.RIGHT)
    random_turn = np.where(coin == 0, TurnDecision.LEFT, TurnDecision.RIGHT)
    decision = np.where(left == right, random_turn, decision)
    decision = np.where(center >= np.maximum(left, right), TurnDecision.STRAIGHT, decision)
    return decision.astype(np.int8)


class SensorModel:
    def __init__(self, sensor_angle, sensor_distance, trig=EXACT, sampling="cell"):
        self.sensor_angle = sensor_angle
        self.sensor_distance = sensor_distance
        self.trig = trig
        self.sampling = sampling

    @classmethod
    def from_config(cls, config, trig=EXACT, sampling="cell"):
        return cls(config.sensor_angle, config.sensor_distance, trig, sampling)

    def sample(self, grid, x, y, heading, angle_offset):
        angles = heading + angle_offset
        cos, sin = self.trig.unit(angles)
        sx = x + cos * self.sensor_distance
        sy = y + sin * self.sensor_distance
        return sample_grid(grid, sx, sy, self.sampling)

    def readings(self, grid, x, y, heading):
        """Return the (left, center, right) readings for every agent."""
        left = self.sample(grid, x, y, heading, -self.sensor_angle)
        center = self.sample(grid, x, y, heading, 0.0)
        right = self.sample(grid, x, y, heading, self.sensor_angle)
        return left, center, right

    def sense(self, grid, x, y, heading, coin):
        left, center, right = self.readings(grid, x, y, heading)
        return decide(left, center, right, coin)

    def __repr__(self):
        return (
            f"SensorModel(angle={self.sensor_angle:.3f}, distance={self.sensor_distance}, "
            f"trig={self.trig.name}, sampling={self.sampling})"
        )
