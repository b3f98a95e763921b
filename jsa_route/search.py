import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .data import DistanceMatrix
from .evaluation import BACKENDS, CostEvaluator
from .solvers.base import BestSolution, ConfigError, MatrixError, Route, SearchResult
from .solvers.operators import initialize_population, perturb


logger = logging.getLogger(__name__)


@dataclass
class JSAConfig:
    population_size: int = 70
    route_length: int = 10
    max_iter: int = 100
    random_seed: int = 123
    cost_backend: str = "python"

    def validate(self) -> None:
        for name in ("population_size", "route_length", "max_iter"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.cost_backend not in BACKENDS:
            raise ConfigError(f"unknown cost backend {self.cost_backend!r}; expected one of {BACKENDS}")


def partition(population_size: int, workers: int, rank: int) -> Tuple[int, int]:
    """Contiguous [start, end) slice owned by `rank`; the last rank takes the remainder."""
    if workers <= 0:
        raise ConfigError(f"workers must be positive, got {workers}")
    if not 0 <= rank < workers:
        raise ConfigError(f"rank {rank} outside [0, {workers})")
    chunk = population_size // workers
    start = chunk * rank
    end = population_size if rank == workers - 1 else chunk * (rank + 1)
    return start, end


def walk(
    population: List[Route],
    indices: Iterable[int],
    evaluate: CostEvaluator,
    best: BestSolution,
    rng: random.Random,
) -> None:
    """One pass over `indices`: score each route, offer it to `best`, then perturb it.

    The offer happens before the move, so `best` only ever sees routes that
    were actually scored. Perturbation is unconditional.
    """
    for i in indices:
        route = population[i]
        best.offer(evaluate(route), route)
        perturb(route, rng)


class SearchLoop(ABC):
    name: str = "base"

    def __init__(self, config: JSAConfig, matrix: DistanceMatrix, rng: Optional[random.Random] = None):
        config.validate()
        if matrix.size != config.route_length:
            raise MatrixError(
                f"route_length={config.route_length} does not match a {matrix.size}x{matrix.size} matrix"
            )
        self.cfg = config
        self.matrix = matrix
        self.rng = rng or random.Random(config.random_seed)
        self.evaluate = CostEvaluator(matrix, config.cost_backend)
        self.population: List[Route] = []
        self.best = BestSolution()
        self.history: List[float] = []
        self.iteration = 0
        self.state = "initializing"

    def initialize(self) -> None:
        self.population = initialize_population(self.cfg.population_size, self.cfg.route_length, self.rng)
        self.best = BestSolution()
        self.history = []
        self.iteration = 0
        self.state = "iterating"
        logger.debug("%s: built %d routes of %d clients", self.name, len(self.population), self.cfg.route_length)

    @abstractmethod
    def step(self) -> None:
        raise NotImplementedError

    def run(self) -> SearchResult:
        start = time.perf_counter()
        self.initialize()
        for _ in range(self.cfg.max_iter):
            before = self.best.cost
            self.step()
            self.iteration += 1
            self.history.append(self.best.cost)
            if self.best.cost < before:
                logger.debug("%s: iteration %d improved best to %.2f", self.name, self.iteration, self.best.cost)
        self.state = "done"
        runtime = time.perf_counter() - start
        cost, route = self.best.snapshot()
        logger.info("%s: best cost %.2f after %d iterations in %.6fs", self.name, cost, self.iteration, runtime)
        return SearchResult(route=route, cost=cost, runtime=runtime, solver_name=self.name, history=list(self.history))


class SequentialSearch(SearchLoop):
    """Single thread; every route evaluation is compared against the all-time best."""

    name = "sequential"

    def step(self) -> None:
        walk(self.population, range(len(self.population)), self.evaluate, self.best, self.rng)
