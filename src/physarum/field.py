"""TrailField: one toroidal chemoattractant channel.

A field is a (height, width) numpy array indexed [y, x]. Coordinates are
continuous and wrap modulo the grid size, so every finite position maps to
a valid cell and there is no edge handling anywhere.

Deposits never touch the array agents are sensing from. They accumulate in
a pending buffer that only becomes visible when diffuse_decay() commits it:

    committed state ──sample()──> agents
    agents ──deposit()/merge()──> pending
    committed + pending ──blur──> * decay ──> new committed state

Two ways to deposit concurrently:
  - deposit() takes a lock around np.add.at, so any thread may call it
  - accumulator() hands out a private zeroed buffer that a worker fills
    without locking; merge() sums it into pending afterwards

Both are sum semantics. They differ only in floating-point rounding order.
"""

import logging
import threading

import numpy as np

from .errors import ConfigurationError, NumericAnomaly

logger = logging.getLogger(__name__)

SAMPLING_MODES = ("cell", "bilinear")


# --- Toroidal coordinates ---


def wrap(values, size):
    """Wrap continuous coordinates into [0, size), however far out they are."""
    out = np.mod(values, size)
    # mod of a tiny negative number can round up to exactly `size`
    return np.where(out >= size, 0.0, out)


def cell_index(values, size):
    """Integer cell containing each coordinate; cell i covers [i, i + 1)."""
    return np.floor(values).astype(np.intp) % size


def sample_grid(grid, x, y, mode="cell"):
    """Read a 2D array at continuous positions (x, y) with toroidal wrap."""
    h, w = grid.shape
    if mode == "cell":
        return grid[cell_index(y, h), cell_index(x, w)]
    if mode == "bilinear":
        # Cell centers sit at i + 0.5.
        fx = np.asarray(x, dtype=np.float64) - 0.5
        fy = np.asarray(y, dtype=np.float64) - 0.5
        x0 = np.floor(fx)
        y0 = np.floor(fy)
        tx = fx - x0
        ty = fy - y0
        ix0 = x0.astype(np.intp) % w
        iy0 = y0.astype(np.intp) % h
        ix1 = (ix0 + 1) % w
        iy1 = (iy0 + 1) % h
        top = (1.0 - tx) * grid[iy0, ix0] + tx * grid[iy0, ix1]
        bottom = (1.0 - tx) * grid[iy1, ix0] + tx * grid[iy1, ix1]
        return (1.0 - ty) * top + ty * bottom
    raise ConfigurationError(
        f"Unknown sampling mode '{mode}'. Choose from: {', '.join(SAMPLING_MODES)}"
    )


def validate_decay(decay):
    """Return `decay` as a float, or raise if it is not a number in (0, 1]."""
    try:
        value = float(decay)
    except (TypeError, ValueError):
        value = np.nan
    if isinstance(decay, (str, bytes)) or not 0.0 < value <= 1.0:
        raise ConfigurationError(f"Decay factor must be in (0, 1], got {decay!r}")
    return value


# --- Field ---


class TrailField:
    def __init__(self, width, height, dtype=np.float64, channel=0):
        if int(width) != width or int(height) != height:
            raise ConfigurationError(f"Grid dimensions must be integers, got {width}x{height}")
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Grid dimensions must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.channel = channel
        self.dtype = np.dtype(dtype)
        self._data = np.zeros((self.height, self.width), dtype=self.dtype)
        self._pending = np.zeros_like(self._data)
        self._lock = threading.Lock()

    @property
    def shape(self):
        return self._data.shape

    @property
    def values(self):
        """Read-only view of the committed state."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    @property
    def pending(self):
        """Read-only view of deposits not yet committed."""
        view = self._pending.view()
        view.flags.writeable = False
        return view

    def sample(self, x, y, mode="cell"):
        return sample_grid(self._data, x, y, mode)

    def deposit(self, x, y, amount):
        """Add `amount` at the wrapped cell(s) of (x, y). Thread-safe."""
        ix = cell_index(x, self.width)
        iy = cell_index(y, self.height)
        with self._lock:
            np.add.at(self._pending, (iy, ix), amount)

    def accumulator(self):
        """A private zeroed buffer for lock-free deposits, see merge()."""
        return np.zeros_like(self._pending)

    def merge(self, buffer):
        with self._lock:
            self._pending += buffer

    def diffuse_decay(self, kernel, decay, executor=None, parts=1, check_finite=True):
        """Commit pending deposits, blur with `kernel`, then scale by `decay`.

        The kernel reads the pre-pass buffer and writes a fresh one, so no
        cell ever sees a partially updated neighbor.
        """
        decay = validate_decay(decay)
        src = self._data + self._pending
        out = kernel.apply(src, executor, parts)
        out *= decay
        if check_finite and not np.isfinite(out).all():
            bad = int(np.count_nonzero(~np.isfinite(out)))
            msg = f"Channel {self.channel}: {bad} non-finite cells after diffuse-decay"
            logger.critical(msg)
            raise NumericAnomaly(msg)
        self._data = out
        self._pending.fill(0.0)

    # --- Initialization ---

    def assign(self, values):
        """Replace the committed state with custom values."""
        arr = np.asarray(values, dtype=self.dtype)
        if arr.shape != self._data.shape:
            raise ConfigurationError(
                f"Field values must have shape {self._data.shape}, got {arr.shape}"
            )
        if not np.isfinite(arr).all() or (arr < 0).any():
            raise ConfigurationError("Field values must be finite and non-negative")
        self._data[...] = arr

    def fill_noise(self, rng, scale):
        self._data[...] = rng.random(self._data.shape) * scale

    def clear(self):
        self._data.fill(0.0)
        self._pending.fill(0.0)

    # --- Snapshot queries ---

    def snapshot(self):
        return self._data.copy()

    def total_mass(self):
        return float(self._data.sum(dtype=np.float64))

    def quantile(self, fraction):
        """Value below which `fraction` of the cells lie (renderers normalize by this)."""
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"Quantile fraction must be in [0, 1], got {fraction}")
        n = self._data.size
        index = min(int(n * fraction), n - 1)
        return float(np.partition(self._data.ravel(), index)[index])

    def __repr__(self):
        return f"TrailField(channel={self.channel}, {self.width}x{self.height}, dtype={self.dtype})"
