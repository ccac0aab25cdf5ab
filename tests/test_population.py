import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from physarum.agent import Agent
from physarum.errors import ConfigurationError
from physarum.field import TrailField
from physarum.population import Population


def build(spec, num_channels=1, size=64):
    return Population(0, spec, num_channels, size, size)


def test_place_broadcasts_and_wraps(population_factory):
    population = build(population_factory(count=3))
    population.place(64 * 3 + 5, [1.0, 2.0, -1.0], -math.pi / 2)

    np.testing.assert_allclose(population.x, [5.0, 5.0, 5.0])
    np.testing.assert_allclose(population.y, [1.0, 2.0, 63.0])
    np.testing.assert_allclose(population.heading, 1.5 * math.pi)


def test_place_rejects_bad_poses(population_factory):
    population = build(population_factory(count=3))
    with pytest.raises(ConfigurationError):
        population.place([1.0, 2.0], 0.0, 0.0)
    with pytest.raises(ConfigurationError):
        population.place(float("nan"), 0.0, 0.0)


def test_iteration_yields_agents(population_factory):
    population = build(population_factory(count=2))
    population.place([1.0, 2.0], 3.0, 0.5)
    agents = list(population)
    assert agents == [Agent(1.0, 3.0, 0.5, 0), Agent(2.0, 3.0, 0.5, 0)]
    assert population.agent(1).x == 2.0


def test_channel_must_exist(population_factory):
    with pytest.raises(ConfigurationError):
        build(population_factory(channel=2), num_channels=2)


def test_advance_only_touches_pending(population_factory, rng):
    population = build(population_factory(count=50))
    population.spawn(rng)
    fields = [TrailField(64, 64)]
    coin = rng.integers(0, 2, size=50)

    population.advance(fields, coin)

    assert fields[0].values.sum() == 0.0
    assert fields[0].pending.sum() == pytest.approx(50 * 5.0)


@pytest.mark.parametrize("policy", ["partitioned", "shared"])
def test_chunked_advance_matches_single_chunk(population_factory, policy):
    spec = population_factory(count=1000)
    single = build(spec)
    chunked = build(spec)
    single.spawn(np.random.default_rng(3))
    chunked.spawn(np.random.default_rng(3))

    base = np.random.default_rng(4).random((64, 64))
    single_fields = [TrailField(64, 64)]
    chunked_fields = [TrailField(64, 64)]
    single_fields[0].assign(base)
    chunked_fields[0].assign(base)
    coin = np.random.default_rng(5).integers(0, 2, size=1000)

    single.advance(single_fields, coin)
    with ThreadPoolExecutor(max_workers=4) as executor:
        chunked.advance(chunked_fields, coin, executor, 4, policy)

    np.testing.assert_allclose(chunked.x, single.x)
    np.testing.assert_allclose(chunked.heading, single.heading)
    np.testing.assert_allclose(chunked_fields[0].pending, single_fields[0].pending)
