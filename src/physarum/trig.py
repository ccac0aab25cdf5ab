"""Pluggable sin/cos evaluation for the agent hot path.

Every agent evaluates three sensor directions and one movement direction
per iteration, so trig is the single most repeated operation. Two
strategies are available:

  exact        numpy's np.cos / np.sin
  approximate  branch-free parabolic approximation (one floor, two abs)

The approximation has a maximum absolute error of 0.002 on each component,
which bounds the direction error of a unit step vector to under 0.003 rad.
That is far below one grid cell over any sensor distance used in practice,
so emergent pattern shape is unaffected. Tests run with exact trig.
"""

import numpy as np

from .errors import ConfigurationError

HALF_PI = 0.5 * np.pi
INV_TWO_PI = 0.5 / np.pi


def approximate_cos(x):
    """Approximate cos(x) for radians, max absolute error 0.002."""
    x = np.asarray(x, dtype=np.float64) * INV_TWO_PI
    x = x - (0.25 + np.floor(x + 0.25))
    x = x * (16.0 * (np.abs(x) - 0.5))
    x = x + 0.225 * x * (np.abs(x) - 1.0)
    return x


def approximate_sin(x):
    return approximate_cos(np.asarray(x, dtype=np.float64) - HALF_PI)


class Trig:
    """A named cos/sin pair with its documented error bounds."""

    def __init__(self, name, cos, sin, max_error, max_angle_error):
        self.name = name
        self.cos = cos
        self.sin = sin
        self.max_error = max_error
        self.max_angle_error = max_angle_error

    def unit(self, angles):
        """Return (cos, sin) of angles as a pair of arrays."""
        return self.cos(angles), self.sin(angles)

    def __repr__(self):
        return f"Trig({self.name!r}, max_error={self.max_error})"


EXACT = Trig("exact", np.cos, np.sin, 0.0, 0.0)
APPROXIMATE = Trig("approximate", approximate_cos, approximate_sin, 0.002, 0.003)

TRIG_STRATEGIES = {
    "exact": EXACT,
    "approximate": APPROXIMATE,
}


def get_trig(name):
    if isinstance(name, Trig):
        return name
    try:
        return TRIG_STRATEGIES[name]
    except (KeyError, TypeError):
        raise ConfigurationError(
            f"Unknown trig strategy '{name}'. Choose from: {', '.join(TRIG_STRATEGIES)}"
        ) from None
