"""Initial agent placement.

Each spawn mode returns (x, y, heading) arrays for one population, with
positions wrapped into the grid and headings in [0, 2*pi):

  random    uniform over the grid, random headings
  ring      circle around the center, every agent facing inward
  center    tight normal cloud at the center, random headings
  clusters  one tight cloud per population, spread along the x axis
"""

import numpy as np

from .field import wrap

TWO_PI = 2.0 * np.pi


def _finish(x, y, heading, width, height):
    return wrap(x, width), wrap(y, height), wrap(heading, TWO_PI)


def spawn_random(rng, count, width, height, index=0, total=1):
    """Scatter agents uniformly across the grid with random headings."""
    x = rng.uniform(0, width, count)
    y = rng.uniform(0, height, count)
    heading = rng.uniform(0, TWO_PI, count)
    return _finish(x, y, heading, width, height)


def spawn_ring(rng, count, width, height, index=0, total=1):
    """Place agents in a ring around the center, all facing inward."""
    cx, cy = width / 2, height / 2
    radius = min(width, height) * 0.35
    angles = np.linspace(0, TWO_PI, count, endpoint=False)
    x = cx + np.cos(angles) * radius
    y = cy + np.sin(angles) * radius
    heading = angles + np.pi
    return _finish(x, y, heading, width, height)


def spawn_center(rng, count, width, height, index=0, total=1):
    cx, cy = width / 2, height / 2
    x = rng.normal(cx, 2, count)
    y = rng.normal(cy, 2, count)
    heading = rng.uniform(0, TWO_PI, count)
    return _finish(x, y, heading, width, height)


def spawn_clusters(rng, count, width, height, index=0, total=1):
    """Each population gets its own cluster between 20% and 80% of the width."""
    if total > 1:
        cx = np.linspace(0.2, 0.8, total)[index] * width
    else:
        cx = width / 2
    x = rng.normal(cx, 3, count)
    y = rng.normal(height / 2, 3, count)
    heading = rng.uniform(0, TWO_PI, count)
    return _finish(x, y, heading, width, height)


SPAWN_MODES = {
    "random": spawn_random,
    "ring": spawn_ring,
    "center": spawn_center,
    "clusters": spawn_clusters,
}
