"""Diffusion kernels: the blur half of the diffuse-decay pass.

Every kernel is a normalized weighted average over a small toroidal
neighborhood, so blurring alone conserves total trail mass. Kernels never
write into the array they read: apply() returns a fresh buffer, which makes
the result independent of traversal order and safe to split across threads.

Three families are available:

  Stencil       arbitrary non-negative odd-sized weights (scipy correlate)
  BoxBlur       separable box blur via cumulative sums, O(W*H) per pass
                regardless of radius; N passes of radius r
  GaussianBlur  three box passes whose radii approximate a Gaussian sigma

Work is partitioned into contiguous row bands (and column bands for the
vertical box pass). Each band only reads the source buffer, so bands can
run on any number of worker threads with no synchronization besides
waiting for all of them.
"""

import math

import numpy as np
from scipy.ndimage import correlate

from .errors import ConfigurationError
from .parallel import bands, run_bands


# --- Separable box blur ---


def box_blur_rows(src, dst, radius, start, stop):
    """Horizontal box pass over rows [start, stop), wrapping at the edges.

    The sliding window sum is built from a cumulative sum:
      cs[j + d] - cs[j]  =  sum of the d padded elements starting at j
    """
    d = 2 * radius + 1
    w = src.shape[1]
    block = src[start:stop]
    padded = np.pad(block, ((0, 0), (radius, radius)), mode="wrap")
    cs = np.zeros((block.shape[0], padded.shape[1] + 1), dtype=src.dtype)
    cs[:, 1:] = np.cumsum(padded, axis=1)
    dst[start:stop] = (cs[:, d:] - cs[:, :w]) / d


def box_blur_cols(src, dst, radius, start, stop):
    """Vertical box pass over columns [start, stop), wrapping at the edges."""
    d = 2 * radius + 1
    h = src.shape[0]
    block = src[:, start:stop]
    padded = np.pad(block, ((radius, radius), (0, 0)), mode="wrap")
    cs = np.zeros((padded.shape[0] + 1, block.shape[1]), dtype=src.dtype)
    cs[1:, :] = np.cumsum(padded, axis=0)
    dst[:, start:stop] = (cs[d:, :] - cs[:h, :]) / d


def separable_box_blur(grid, radius, executor=None, parts=1):
    """One two-pass box blur of the given radius. Returns a new array."""
    h, w = grid.shape
    tmp = np.empty_like(grid)
    out = np.empty_like(grid)
    run_bands(
        executor,
        lambda a, b: box_blur_rows(grid, tmp, radius, a, b),
        bands(h, parts),
    )
    run_bands(
        executor,
        lambda a, b: box_blur_cols(tmp, out, radius, a, b),
        bands(w, parts),
    )
    return out


def boxes_for_gaussian(sigma, passes=3):
    """Radii of `passes` box filters whose composition approximates a Gaussian.

    Box sizes are the odd width below the ideal width for the first m passes
    and the odd width above it for the rest, with m chosen so the summed
    variance is as close as possible to sigma**2.
    """
    w_ideal = math.sqrt(12.0 * sigma * sigma / passes + 1.0)
    w = int(w_ideal)
    if w % 2 == 0:
        w -= 1
    m = ((w * w + 4 * w + 3) * passes - 12.0 * sigma * sigma) / (4.0 * (w + 1))
    m = int(math.floor(m + 0.5))
    return [(w - 1) // 2 if i < m else (w + 1) // 2 for i in range(passes)]


# --- Kernels ---


class DiffusionKernel:
    """Base class. Subclasses implement apply(src, executor, parts)."""

    def apply(self, src, executor=None, parts=1):
        raise NotImplementedError


class Stencil(DiffusionKernel):
    """Arbitrary weighted neighborhood, normalized to sum to one."""

    def __init__(self, weights):
        arr = np.asarray(weights, dtype=np.float64)
        if arr.ndim != 2 or arr.size == 0:
            raise ConfigurationError(f"Stencil weights must be a non-empty 2D array, got shape {arr.shape}")
        if arr.shape[0] % 2 == 0 or arr.shape[1] % 2 == 0:
            raise ConfigurationError(f"Stencil dimensions must be odd, got {arr.shape}")
        if not np.isfinite(arr).all():
            raise ConfigurationError("Stencil weights must be finite")
        if (arr < 0).any():
            raise ConfigurationError("Stencil weights must be non-negative")
        total = arr.sum()
        if total <= 0:
            raise ConfigurationError("Stencil weights must not sum to zero")
        self.weights = arr / total

    def apply(self, src, executor=None, parts=1):
        h = src.shape[0]
        ry = self.weights.shape[0] // 2
        weights = self.weights.astype(src.dtype)
        out = np.empty_like(src)

        def run(start, stop):
            # Halo rows make the band self-contained; wrap handles the columns.
            rows = np.arange(start - ry, stop + ry) % h
            blurred = correlate(src[rows], weights, mode="wrap")
            out[start:stop] = blurred[ry : ry + stop - start]

        run_bands(executor, run, bands(h, parts))
        return out

    def __repr__(self):
        return f"Stencil(shape={self.weights.shape})"


class BoxBlur(DiffusionKernel):
    """`iterations` separable box passes of the same radius.

      1 iteration  = flat box
      2 iterations ~ triangular
      3 iterations ~ Gaussian
    """

    def __init__(self, radius=1, iterations=1):
        if int(radius) != radius or radius < 0:
            raise ConfigurationError(f"Blur radius must be a non-negative integer, got {radius}")
        if int(iterations) != iterations or iterations < 1:
            raise ConfigurationError(f"Blur iterations must be a positive integer, got {iterations}")
        self.radii = [int(radius)] * int(iterations)

    def apply(self, src, executor=None, parts=1):
        out = src
        for radius in self.radii:
            out = separable_box_blur(out, radius, executor, parts)
        # Cumulative-sum differences can leave -1e-17 style residue.
        np.maximum(out, 0.0, out=out)
        return out

    def __repr__(self):
        return f"BoxBlur(radii={self.radii})"


class GaussianBlur(BoxBlur):
    """Box passes approximating a Gaussian of standard deviation sigma."""

    def __init__(self, sigma=1.0, passes=3):
        if not math.isfinite(sigma) or sigma < 0:
            raise ConfigurationError(f"Gaussian sigma must be finite and non-negative, got {sigma}")
        if int(passes) != passes or passes < 1:
            raise ConfigurationError(f"Gaussian passes must be a positive integer, got {passes}")
        self.sigma = sigma
        self.radii = boxes_for_gaussian(sigma, int(passes))

    def __repr__(self):
        return f"GaussianBlur(sigma={self.sigma}, radii={self.radii})"


def identity_kernel():
    """No blur at all: decay only."""
    return Stencil([[1.0]])


KERNEL_TYPES = ("identity", "box", "gaussian", "stencil")


def make_kernel(spec):
    """Build a kernel from a DiffusionKernel, a type name, or a dict.

        make_kernel("box")
        make_kernel({"type": "gaussian", "sigma": 2.0})
        make_kernel({"type": "stencil", "weights": [[1, 2, 1], [2, 4, 2], [1, 2, 1]]})
    """
    if isinstance(spec, DiffusionKernel):
        return spec
    if isinstance(spec, str):
        spec = {"type": spec}
    if not isinstance(spec, dict):
        raise ConfigurationError(f"Cannot build a diffusion kernel from {spec!r}")

    params = dict(spec)
    kind = params.pop("type", None)
    try:
        if kind == "identity" and not params:
            return identity_kernel()
        if kind == "box":
            return BoxBlur(**params)
        if kind == "gaussian":
            return GaussianBlur(**params)
        if kind == "stencil":
            return Stencil(**params)
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Bad parameters for '{kind}' kernel: {exc}") from None
    raise ConfigurationError(
        f"Unknown kernel {spec!r}. Choose from: {', '.join(KERNEL_TYPES)}"
    )
