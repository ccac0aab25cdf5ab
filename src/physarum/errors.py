"""Exception hierarchy for the physarum engine."""


class PhysarumError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(PhysarumError, ValueError):
    """Invalid construction input. Raised before any simulation state exists."""


class NumericAnomaly(PhysarumError, ArithmeticError):
    """A trail field stopped being finite. Indicates a modelling bug, not bad input."""


class SimulationStopped(PhysarumError, RuntimeError):
    """The simulation was stopped and accepts no further transitions."""
