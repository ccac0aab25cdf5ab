"""Configuration for populations and whole simulations.

Everything is validated when it is built, so a Simulation can never be
constructed from values that would make stepping fail. Angles are in
radians, distances in grid cells.

A population deposits into one channel and senses every channel through
its sensitivity weights (positive = attracted, negative = repelled,
zero = blind). With one channel per population the weights are one row
of the classic attraction matrix:

    [[+1.0, -0.5],
     [-0.5, +1.0]]   two species, each repelled by the other's trail
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from .blur import BoxBlur, make_kernel
from .errors import ConfigurationError
from .field import SAMPLING_MODES, validate_decay
from .spawn import SPAWN_MODES
from .trig import get_trig

DEPOSIT_POLICIES = ("partitioned", "shared")
INITIAL_TRAILS = ("zeros", "noise")
DTYPES = ("float64", "float32")


def require_finite(name, value):
    if isinstance(value, (str, bytes)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value}")
    return value


def require_int(name, value, minimum):
    try:
        valid = not isinstance(value, (bool, str, bytes)) and int(value) == value
    except (TypeError, ValueError, OverflowError):
        valid = False
    if not valid or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return int(value)


def _channel_id(name, value):
    # Mapping keys arrive as strings from JSON.
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            raise ConfigurationError(f"{name} must be an integer >= 0, got {value!r}") from None
    return require_int(name, value, 0)


@dataclass(frozen=True)
class PopulationConfig:
    sensor_angle: float
    sensor_distance: float
    rotation_angle: float
    step_distance: float = 1.0
    deposit: float = 5.0
    channel: int = 0
    sensitivity: object = None

    def __post_init__(self):
        for name in ("sensor_angle", "sensor_distance", "rotation_angle", "step_distance", "deposit"):
            object.__setattr__(self, name, require_finite(name, getattr(self, name)))
        if self.sensor_distance <= 0:
            raise ConfigurationError(f"sensor_distance must be > 0, got {self.sensor_distance}")
        if self.step_distance < 0:
            raise ConfigurationError(f"step_distance must be >= 0, got {self.step_distance}")
        if self.deposit < 0:
            raise ConfigurationError(f"deposit must be >= 0, got {self.deposit}")
        channel = require_int("channel", self.channel, 0)
        object.__setattr__(self, "channel", channel)

        if self.sensitivity is None:
            pairs = ((channel, 1.0),)
        elif isinstance(self.sensitivity, Mapping):
            pairs = tuple(self.sensitivity.items())
        else:
            try:
                pairs = tuple(enumerate(self.sensitivity))
            except TypeError:
                raise ConfigurationError(
                    f"sensitivity must be a mapping or a sequence of weights, got {self.sensitivity!r}"
                ) from None
        normalized = []
        for ch, weight in pairs:
            ch = _channel_id("sensitivity channel", ch)
            normalized.append((ch, require_finite(f"sensitivity[{ch}]", weight)))
        object.__setattr__(self, "sensitivity", tuple(sorted(normalized)))

    @property
    def weights(self):
        return dict(self.sensitivity)

    @property
    def max_channel(self):
        return max([self.channel] + [ch for ch, _ in self.sensitivity])

    def sensitivity_vector(self, num_channels):
        """Resolve the weights into a dense vector indexed by channel id."""
        vector = np.zeros(num_channels, dtype=np.float64)
        for ch, weight in self.sensitivity:
            if ch >= num_channels:
                raise ConfigurationError(
                    f"Sensitivity refers to channel {ch}, but there are only {num_channels} channels"
                )
            vector[ch] = weight
        return vector

    def describe(self):
        return (
            f"StepDist={self.step_distance:.2f}  "
            f"SensorDist={self.sensor_distance:.1f}  "
            f"SensorAngle={math.degrees(self.sensor_angle):.0f}°  "
            f"RotAngle={math.degrees(self.rotation_angle):.0f}°  "
            f"Deposit={self.deposit:.1f}  "
            f"Channel={self.channel}"
        )


@dataclass(frozen=True)
class PopulationSpec:
    """A population's configuration plus how many agents and where they start."""

    config: PopulationConfig
    count: int
    spawn: str = "random"
    name: str = None

    def __post_init__(self):
        if not isinstance(self.config, PopulationConfig):
            raise ConfigurationError(f"Expected a PopulationConfig, got {type(self.config).__name__}")
        object.__setattr__(self, "count", require_int("Population count", self.count, 1))
        if not isinstance(self.spawn, str) or self.spawn not in SPAWN_MODES:
            raise ConfigurationError(
                f"Unknown spawn mode '{self.spawn}'. Choose from: {', '.join(SPAWN_MODES)}"
            )


@dataclass
class SimulationConfig:
    width: int
    height: int
    populations: list
    seed: int = 0
    kernel: object = field(default_factory=BoxBlur)
    decay: float = 0.9
    channel_kernels: dict = field(default_factory=dict)
    channel_decays: dict = field(default_factory=dict)
    num_channels: int = None
    workers: int = 1
    trig: str = "exact"
    sampling: str = "cell"
    deposit_policy: str = "partitioned"
    initial_trail: str = "zeros"
    noise_scale: float = 0.1
    dtype: str = "float64"
    check_finite: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self):
        for name in ("width", "height"):
            setattr(self, name, require_int(f"Grid {name}", getattr(self, name), 1))

        if isinstance(self.populations, (str, bytes, Mapping)):
            raise ConfigurationError(f"populations must be a list, got {type(self.populations).__name__}")
        try:
            self.populations = list(self.populations)
        except TypeError:
            raise ConfigurationError(f"populations must be a list, got {type(self.populations).__name__}") from None
        if not self.populations:
            raise ConfigurationError("At least one population is required")
        for spec in self.populations:
            if not isinstance(spec, PopulationSpec):
                raise ConfigurationError(f"Expected a PopulationSpec, got {type(spec).__name__}")

        if self.seed is not None:
            self.seed = require_int("seed", self.seed, 0)

        self.kernel = make_kernel(self.kernel)
        self.decay = validate_decay(self.decay)
        for name in ("channel_kernels", "channel_decays"):
            if not isinstance(getattr(self, name), Mapping):
                raise ConfigurationError(f"{name} must be a mapping of channel to value")
        self.channel_kernels = {
            _channel_id("channel", ch): make_kernel(k) for ch, k in self.channel_kernels.items()
        }
        self.channel_decays = {
            _channel_id("channel", ch): validate_decay(d) for ch, d in self.channel_decays.items()
        }

        referenced = max(
            [spec.config.max_channel for spec in self.populations]
            + list(self.channel_kernels)
            + list(self.channel_decays)
        )
        if self.num_channels is None:
            self.num_channels = referenced + 1
        else:
            self.num_channels = require_int("num_channels", self.num_channels, 1)
            if referenced >= self.num_channels:
                raise ConfigurationError(
                    f"Channel {referenced} is referenced, but num_channels is {self.num_channels}"
                )

        self.workers = require_int("workers", self.workers, 1)
        get_trig(self.trig)
        if self.sampling not in SAMPLING_MODES:
            raise ConfigurationError(
                f"Unknown sampling mode '{self.sampling}'. Choose from: {', '.join(SAMPLING_MODES)}"
            )
        if self.deposit_policy not in DEPOSIT_POLICIES:
            raise ConfigurationError(
                f"Unknown deposit policy '{self.deposit_policy}'. Choose from: {', '.join(DEPOSIT_POLICIES)}"
            )
        if self.initial_trail not in INITIAL_TRAILS:
            raise ConfigurationError(
                f"Unknown initial trail '{self.initial_trail}'. Choose from: {', '.join(INITIAL_TRAILS)}"
            )
        self.noise_scale = require_finite("noise_scale", self.noise_scale)
        if self.noise_scale < 0:
            raise ConfigurationError(f"noise_scale must be >= 0, got {self.noise_scale}")
        if self.dtype not in DTYPES:
            raise ConfigurationError(f"Unknown dtype '{self.dtype}'. Choose from: {', '.join(DTYPES)}")

    def kernel_for(self, channel):
        return self.channel_kernels.get(channel, self.kernel)

    def decay_for(self, channel):
        return self.channel_decays.get(channel, self.decay)


# --- Loading from plain dictionaries ---

_POPULATION_KEYS = {
    "sensor_angle",
    "sensor_distance",
    "rotation_angle",
    "step_distance",
    "deposit",
    "channel",
    "sensitivity",
    "decay",
    "count",
    "spawn",
    "name",
}

_SIMULATION_KEYS = {
    "width",
    "height",
    "populations",
    "attraction",
    "seed",
    "kernel",
    "decay",
    "channel_kernels",
    "channel_decays",
    "num_channels",
    "workers",
    "trig",
    "sampling",
    "deposit_policy",
    "initial_trail",
    "noise_scale",
    "dtype",
    "check_finite",
}


def load_config(raw):
    """Build a SimulationConfig from nested dicts (e.g. parsed JSON).

    Each population deposits into its own channel unless it says otherwise.
    A per-population "decay" becomes the decay of that population's channel,
    and a top-level "attraction" matrix supplies sensitivity rows for
    populations that do not give their own.
    """
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Expected a mapping, got {type(raw).__name__}")
    unknown = set(raw) - _SIMULATION_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown simulation keys: {', '.join(sorted(unknown))}")

    values = {k: v for k, v in raw.items() if k not in ("populations", "attraction")}
    attraction = raw.get("attraction")
    channel_decays = values.pop("channel_decays", {})
    if not isinstance(channel_decays, Mapping):
        raise ConfigurationError("channel_decays must be a mapping of channel to decay")
    channel_decays = dict(channel_decays)
    entries = raw.get("populations", [])
    if not isinstance(entries, (list, tuple)):
        raise ConfigurationError(f"populations must be a list, got {type(entries).__name__}")

    populations = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Population {index} must be a mapping, got {type(entry).__name__}")
        unknown = set(entry) - _POPULATION_KEYS
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in population {index}: {', '.join(sorted(unknown))}"
            )
        params = dict(entry)
        count = params.pop("count", None)
        spawn = params.pop("spawn", "random")
        name = params.pop("name", None)
        decay = params.pop("decay", None)
        params.setdefault("channel", index)
        if "sensitivity" not in params and attraction is not None:
            try:
                params["sensitivity"] = list(attraction[index])
            except (IndexError, KeyError, TypeError):
                raise ConfigurationError(f"Attraction matrix has no row for population {index}") from None
        try:
            config = PopulationConfig(**params)
        except TypeError as exc:
            raise ConfigurationError(f"Population {index}: {exc}") from None
        if decay is not None:
            channel_decays[config.channel] = decay
        if count is None:
            raise ConfigurationError(f"Population {index} needs a 'count'")
        populations.append(PopulationSpec(config, count, spawn, name))

    try:
        return SimulationConfig(populations=populations, channel_decays=channel_decays, **values)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from None


# --- Random configuration generation ---

# Fogleman-scale ranges, scaled for grids of a few hundred cells.
RANDOM_RANGES = {
    "sensor_angle": (0.6, 1.4),
    "sensor_distance": (12.0, 40.0),
    "rotation_angle": (0.3, 1.4),
    "step_distance": (1.0, 1.7),
}
RANDOM_DEPOSIT = 5.0
RANDOM_DECAY = 0.1


def random_attraction(rng, n):
    """Attraction matrix: positive diagonal, negative off-diagonal."""
    matrix = np.zeros((n, n))
    for i in range(n):
        for j in range(n):
            if i == j:
                matrix[i, j] = rng.uniform(0.5, 1.3)
            else:
                matrix[i, j] = rng.uniform(-1.3, -0.4)
    return matrix


def random_population_configs(rng, n, attraction=None, ranges=RANDOM_RANGES):
    """One random PopulationConfig per channel 0..n-1."""
    if attraction is None:
        attraction = random_attraction(rng, n)
    configs = []
    for i in range(n):
        configs.append(
            PopulationConfig(
                sensor_angle=rng.uniform(*ranges["sensor_angle"]),
                sensor_distance=rng.uniform(*ranges["sensor_distance"]),
                rotation_angle=rng.uniform(*ranges["rotation_angle"]),
                step_distance=rng.uniform(*ranges["step_distance"]),
                deposit=RANDOM_DEPOSIT,
                channel=i,
                sensitivity=list(attraction[i]),
            )
        )
    return configs
