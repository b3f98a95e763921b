import random

import numpy as np
import pytest

from jsa_route.data import DistanceMatrix


class ScriptedRandom:
    """Random source that replays a fixed list of draws."""

    def __init__(self, draws):
        self.draws = list(draws)

    def randrange(self, n):
        return self.draws.pop(0)


@pytest.fixture
def ring4():
    """4 clients where the ring 0-1-2-3-0 costs 1 per edge and every chord costs 10."""
    values = np.full((4, 4), 10.0)
    for i in range(4):
        values[i, (i + 1) % 4] = 1.0
        values[(i + 1) % 4, i] = 1.0
    np.fill_diagonal(values, 0.0)
    return DistanceMatrix(values)


@pytest.fixture
def small_matrix():
    return DistanceMatrix.random(8, seed=11)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def scripted():
    return ScriptedRandom
