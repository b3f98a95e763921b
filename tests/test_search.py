import math
import random
import threading

import pytest

from jsa_route.data import DistanceMatrix
from jsa_route.evaluation import route_cost
from jsa_route.search import JSAConfig, SequentialSearch
from jsa_route.solvers.base import BestSolution, ConfigError, MatrixError, is_permutation
from jsa_route.solvers.operators import initialize_population, perturb


def _replay_sequential(cfg, matrix):
    """Straight-line version of the sequential loop used as an oracle."""
    rng = random.Random(cfg.random_seed)
    population = initialize_population(cfg.population_size, cfg.route_length, rng)
    best_cost, best_route = math.inf, None
    for _ in range(cfg.max_iter):
        for route in population:
            cost = route_cost(matrix, route)
            if cost < best_cost:
                best_cost, best_route = cost, list(route)
            perturb(route, rng)
    return best_cost, best_route


# =============================================================================
# BestSolution
# =============================================================================

class TestBestSolution:

    def test_only_strict_improvements_replace(self):
        best = BestSolution()
        assert best.offer(10.0, [0, 1, 2])
        assert not best.offer(10.0, [2, 1, 0])
        assert best.route == [0, 1, 2]
        assert best.offer(3.0, [1, 0, 2])
        assert best.snapshot() == (3.0, [1, 0, 2])

    def test_stores_a_copy(self):
        best = BestSolution()
        route = [0, 1, 2]
        best.offer(1.0, route)
        route[0], route[1] = route[1], route[0]
        assert best.route == [0, 1, 2]

    def test_concurrent_offers_keep_the_minimum(self):
        best = BestSolution()
        costs = [float(c) for c in range(1000, 0, -1)]

        def offer_all(offset):
            for c in costs[offset::4]:
                best.offer(c, [int(c)])

        threads = [threading.Thread(target=offer_all, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert best.snapshot() == (1.0, [1])


# =============================================================================
# Configuration
# =============================================================================

class TestConfig:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"population_size": 0},
            {"route_length": -3},
            {"max_iter": 0},
            {"cost_backend": "fortran"},
        ],
    )
    def test_validate(self, kwargs):
        with pytest.raises(ConfigError):
            JSAConfig(**kwargs).validate()

    def test_matrix_size_must_match(self, small_matrix):
        with pytest.raises(MatrixError):
            SequentialSearch(JSAConfig(route_length=small_matrix.size + 1), small_matrix)


# =============================================================================
# Sequential search
# =============================================================================

class TestSequentialSearch:

    def test_matches_straight_line_replay(self, small_matrix):
        cfg = JSAConfig(population_size=15, route_length=small_matrix.size, max_iter=30, random_seed=7)
        result = SequentialSearch(cfg, small_matrix).run()
        assert (result.cost, result.route) == _replay_sequential(cfg, small_matrix)

    def test_best_history_is_non_increasing(self, small_matrix):
        cfg = JSAConfig(population_size=10, route_length=small_matrix.size, max_iter=60, random_seed=5)
        result = SequentialSearch(cfg, small_matrix).run()
        assert len(result.history) == 60
        assert all(b <= a for a, b in zip(result.history, result.history[1:]))
        assert result.history[-1] == result.cost

    def test_deterministic_with_same_seed(self, small_matrix):
        cfg = JSAConfig(population_size=12, route_length=small_matrix.size, max_iter=40, random_seed=21)
        first = SequentialSearch(cfg, small_matrix).run()
        second = SequentialSearch(cfg, small_matrix, rng=random.Random(21)).run()
        assert first.cost == second.cost
        assert first.route == second.route

    def test_result_is_consistent(self, small_matrix):
        cfg = JSAConfig(population_size=10, route_length=small_matrix.size, max_iter=20)
        result = SequentialSearch(cfg, small_matrix).run()
        assert result.found
        assert is_permutation(result.route, small_matrix.size)
        assert route_cost(small_matrix, result.route) == result.cost
        assert result.solver_name == "sequential"
        assert result.runtime >= 0

    def test_states(self, small_matrix):
        search = SequentialSearch(JSAConfig(population_size=4, route_length=small_matrix.size, max_iter=2), small_matrix)
        assert search.state == "initializing"
        search.initialize()
        assert search.state == "iterating"
        assert len(search.population) == 4
        search.run()
        assert search.state == "done"
        assert search.iteration == 2

    def test_population_stays_valid(self, small_matrix):
        search = SequentialSearch(JSAConfig(population_size=6, route_length=small_matrix.size, max_iter=25), small_matrix)
        search.run()
        assert all(is_permutation(r, small_matrix.size) for r in search.population)

    def test_finds_the_ring(self, ring4):
        cfg = JSAConfig(population_size=20, route_length=4, max_iter=50, random_seed=3)
        result = SequentialSearch(cfg, ring4).run()
        assert result.cost == 4.0
        rotations = {tuple([0, 1, 2, 3][k:] + [0, 1, 2, 3][:k]) for k in range(4)}
        reflections = {tuple(reversed(r)) for r in rotations}
        assert tuple(result.route) in rotations | reflections

    def test_two_clients(self):
        matrix = DistanceMatrix([[0, 6], [6, 0]])
        result = SequentialSearch(JSAConfig(population_size=3, route_length=2, max_iter=5), matrix).run()
        assert result.cost == 12.0

    @pytest.mark.parametrize("backend", ["numpy", "torch"])
    def test_backend_does_not_change_the_walk(self, small_matrix, backend):
        base = JSAConfig(population_size=8, route_length=small_matrix.size, max_iter=15, random_seed=4)
        other = JSAConfig(population_size=8, route_length=small_matrix.size, max_iter=15, random_seed=4, cost_backend=backend)
        a = SequentialSearch(base, small_matrix).run()
        b = SequentialSearch(other, small_matrix).run()
        assert a.cost == pytest.approx(b.cost)
        assert a.route == b.route
