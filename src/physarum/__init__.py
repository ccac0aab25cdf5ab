"""Physarum polycephalum transport-network simulation (Jones 2010).

Agents sense, turn, move and deposit chemoattractant on toroidal trail
fields that diffuse and decay every iteration:

    from physarum import PopulationConfig, PopulationSpec, Simulation, SimulationConfig

    cfg = PopulationConfig(sensor_angle=0.5, sensor_distance=9.0, rotation_angle=0.4)
    sim = Simulation(SimulationConfig(256, 256, [PopulationSpec(cfg, 10_000)]))
    sim.step_n(100)
    trail = sim.snapshot(0)
"""

from .agent import Agent
from .blur import BoxBlur, DiffusionKernel, GaussianBlur, Stencil, identity_kernel, make_kernel
from .config import (
    PopulationConfig,
    PopulationSpec,
    SimulationConfig,
    load_config,
    random_attraction,
    random_population_configs,
)
from .errors import ConfigurationError, NumericAnomaly, PhysarumError, SimulationStopped
from .field import TrailField
from .population import Population
from .sensor import SensorModel, TurnDecision
from .simulation import Simulation, SimulationState
from .trig import APPROXIMATE, EXACT, get_trig

__version__ = "0.1.0"

__all__ = [
    "APPROXIMATE",
    "Agent",
    "BoxBlur",
    "ConfigurationError",
    "DiffusionKernel",
    "EXACT",
    "GaussianBlur",
    "NumericAnomaly",
    "PhysarumError",
    "Population",
    "PopulationConfig",
    "PopulationSpec",
    "SensorModel",
    "Simulation",
    "SimulationConfig",
    "SimulationState",
    "SimulationStopped",
    "Stencil",
    "TrailField",
    "TurnDecision",
    "get_trig",
    "identity_kernel",
    "load_config",
    "make_kernel",
    "random_attraction",
    "random_population_configs",
]
