import math

import numpy as np

from physarum.sensor import SensorModel, TurnDecision, combined_grid, decide

L, S, R = TurnDecision.LEFT, TurnDecision.STRAIGHT, TurnDecision.RIGHT


def test_decide_table():
    left = np.array([1.0, 0.0, 2.0, 0.0, 1.0, 3.0, 1.0, 2.0])
    center = np.array([1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 0.0, 2.0])
    right = np.array([1.0, 0.0, 0.0, 2.0, 3.0, 2.0, 1.0, 0.0])
    coin = np.zeros(8, dtype=int)
    expected = [S, S, L, R, R, L, L, S]
    np.testing.assert_array_equal(decide(left, center, right, coin), expected)


def test_equal_sides_above_center_use_the_coin():
    ones = np.ones(2)
    zeros = np.zeros(2)
    np.testing.assert_array_equal(decide(ones, zeros, ones, np.array([0, 1])), [L, R])


def test_all_equal_goes_straight_whatever_the_coin():
    ones = np.ones(2)
    np.testing.assert_array_equal(decide(ones, ones, ones, np.array([0, 1])), [S, S])


def test_combined_grid_weights_channels():
    a = np.full((2, 2), 2.0)
    b = np.full((2, 2), 4.0)
    np.testing.assert_allclose(combined_grid([1.0, -0.5], [a, b]), 0.0)
    np.testing.assert_allclose(combined_grid([0.0, 1.0], [a, b]), 4.0)


def test_readings_sample_three_forward_points():
    grid = np.zeros((32, 32))
    grid[16, 20] = 3.0  # ahead
    grid[12, 16] = 1.0  # heading - 90 degrees
    grid[20, 16] = 2.0  # heading + 90 degrees
    sensor = SensorModel(math.pi / 2, 4.0)
    left, center, right = sensor.readings(grid, np.array([16.5]), np.array([16.5]), np.array([0.0]))
    assert (left[0], center[0], right[0]) == (1.0, 3.0, 2.0)


def test_symmetric_field_splits_left_right_evenly():
    grid = np.zeros((32, 32))
    grid[12, 16] = 1.0
    grid[20, 16] = 1.0
    trials = 100_000
    sensor = SensorModel(math.pi / 2, 4.0)
    x = np.full(trials, 16.5)
    y = np.full(trials, 16.5)
    heading = np.zeros(trials)
    coin = np.random.default_rng(42).integers(0, 2, size=trials)

    decisions = sensor.sense(grid, x, y, heading, coin)

    assert not (decisions == S).any()
    share_left = np.count_nonzero(decisions == L) / trials
    assert abs(share_left - 0.5) < 0.01


def test_repelling_weights_turn_away():
    trail = np.zeros((32, 32))
    trail[16, 20] = 1.0  # center sensor
    trail[20, 16] = 1.0  # right sensor
    sensor = SensorModel(math.pi / 2, 4.0)
    pose = (np.array([16.5]), np.array([16.5]), np.array([0.0]))
    coin = np.array([1])

    attracted = sensor.sense(combined_grid([1.0], [trail]), *pose, coin)
    repelled = sensor.sense(combined_grid([-1.0], [trail]), *pose, coin)

    assert attracted[0] == S
    assert repelled[0] == L
