import threading

import numpy as np
import pytest

from physarum.blur import BoxBlur, DiffusionKernel, identity_kernel
from physarum.errors import ConfigurationError, NumericAnomaly
from physarum.field import TrailField, cell_index, sample_grid, wrap


class InfiniteKernel(DiffusionKernel):
    def apply(self, src, executor=None, parts=1):
        return np.full_like(src, np.inf)


def test_wrap_far_outside_bounds():
    assert wrap(64 * 3 + 5, 64) == 5
    assert wrap(-1.0, 64) == 63
    assert wrap(-64 * 7 - 0.5, 64) == pytest.approx(63.5)
    np.testing.assert_allclose(wrap(np.array([0.0, 64.0, 128.25]), 64), [0.0, 0.0, 0.25])


def test_wrap_never_returns_size():
    out = wrap(np.array([-1e-20, -1e-300]), 64)
    assert ((out >= 0) & (out < 64)).all()


def test_cell_index_floors_negative_coordinates():
    np.testing.assert_array_equal(cell_index(np.array([0.5, 1.5, 7.9, -0.5, 8.2]), 8), [0, 1, 7, 7, 0])


def test_sample_cell_and_bilinear():
    grid = np.zeros((4, 4))
    grid[1, 2] = 8.0
    assert sample_grid(grid, 2.3, 1.9) == 8.0
    assert sample_grid(grid, 2.3 + 4 * 5, 1.9 - 4) == 8.0
    # Cell center reads the exact value, half a cell off reads half of it.
    assert sample_grid(grid, 2.5, 1.5, "bilinear") == pytest.approx(8.0)
    assert sample_grid(grid, 3.0, 1.5, "bilinear") == pytest.approx(4.0)
    with pytest.raises(ConfigurationError):
        sample_grid(grid, 0, 0, "nearest-ish")


def test_deposit_stays_pending_until_diffuse_decay():
    field = TrailField(8, 8)
    field.deposit(np.array([3.2, 3.7]), np.array([5.0, 5.9]), 2.0)
    assert field.values.sum() == 0.0
    assert field.pending[5, 3] == 4.0

    field.diffuse_decay(identity_kernel(), 0.5)
    assert field.values[5, 3] == pytest.approx(2.0)
    assert field.pending.sum() == 0.0


def test_concurrent_deposits_sum():
    field = TrailField(4, 4)

    def worker():
        for _ in range(200):
            field.deposit(np.array([1.0, 1.0]), np.array([2.0, 2.0]), 1.0)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert field.pending[2, 1] == 4 * 200 * 2


def test_accumulator_merge():
    field = TrailField(4, 4)
    a = field.accumulator()
    b = field.accumulator()
    a[0, 0] = 1.5
    b[0, 0] = 2.5
    field.merge(a)
    field.merge(b)
    assert field.pending[0, 0] == 4.0
    assert field.values[0, 0] == 0.0


def test_values_view_is_read_only():
    field = TrailField(4, 4)
    with pytest.raises(ValueError):
        field.values[0, 0] = 1.0


def test_snapshot_is_a_copy():
    field = TrailField(4, 4)
    field.assign(np.ones((4, 4)))
    snap = field.snapshot()
    field.diffuse_decay(identity_kernel(), 0.5)
    assert snap[0, 0] == 1.0
    assert field.values[0, 0] == 0.5


def test_decay_only_scales_mass():
    field = TrailField(16, 16)
    field.assign(np.random.default_rng(3).random((16, 16)))
    before = field.total_mass()
    field.diffuse_decay(BoxBlur(1), 0.75)
    assert field.total_mass() == pytest.approx(before * 0.75, rel=1e-12)


def test_non_finite_result_raises_numeric_anomaly():
    field = TrailField(4, 4)
    with pytest.raises(NumericAnomaly):
        field.diffuse_decay(InfiniteKernel(), 0.9)


def test_non_finite_check_can_be_disabled():
    field = TrailField(4, 4)
    field.diffuse_decay(InfiniteKernel(), 0.9, check_finite=False)
    assert np.isinf(field.values).all()


@pytest.mark.parametrize("decay", [0.0, -0.1, 1.5, float("nan")])
def test_decay_out_of_range(decay):
    with pytest.raises(ConfigurationError):
        TrailField(4, 4).diffuse_decay(identity_kernel(), decay)


@pytest.mark.parametrize("width,height", [(0, 4), (4, -1), (2.5, 4)])
def test_invalid_dimensions(width, height):
    with pytest.raises(ConfigurationError):
        TrailField(width, height)


def test_assign_validation():
    field = TrailField(4, 4)
    with pytest.raises(ConfigurationError):
        field.assign(np.ones((3, 4)))
    with pytest.raises(ConfigurationError):
        field.assign(-np.ones((4, 4)))
    bad = np.ones((4, 4))
    bad[1, 1] = np.nan
    with pytest.raises(ConfigurationError):
        field.assign(bad)


def test_quantile():
    field = TrailField(10, 10)
    field.assign(np.arange(100, dtype=float).reshape(10, 10))
    assert field.quantile(1.0) == 99.0
    assert field.quantile(0.0) == 0.0
    # Order statistic at floor(n * fraction), never interpolated.
    assert field.quantile(0.5) == 50.0
    assert field.quantile(0.255) == 25.0
    assert field.quantile(0.999) == 99.0
    with pytest.raises(ValueError):
        field.quantile(1.5)


def test_float32_field_keeps_dtype():
    field = TrailField(8, 8, dtype=np.float32)
    field.deposit(1.0, 1.0, 3.0)
    field.diffuse_decay(BoxBlur(1), 0.9)
    assert field.values.dtype == np.float32
    assert field.total_mass() == pytest.approx(2.7, rel=1e-5)
