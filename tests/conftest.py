import math
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from physarum.blur import identity_kernel  # noqa: E402
from physarum.config import PopulationConfig, PopulationSpec, SimulationConfig  # noqa: E402


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def make_population(count=1, spawn="random", **overrides):
    params = dict(
        sensor_angle=math.radians(45),
        sensor_distance=4.0,
        rotation_angle=math.radians(45),
        step_distance=1.0,
        deposit=5.0,
    )
    params.update(overrides)
    return PopulationSpec(PopulationConfig(**params), count, spawn)


def make_config(width=64, height=64, populations=None, **overrides):
    if populations is None:
        populations = [make_population()]
    params = dict(kernel=identity_kernel(), decay=0.9)
    params.update(overrides)
    return SimulationConfig(width, height, populations, **params)


@pytest.fixture
def population_factory():
    return make_population


@pytest.fixture
def config_factory():
    return make_config
