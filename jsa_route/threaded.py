import concurrent.futures
import random
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .data import DistanceMatrix
from .search import JSAConfig, SearchLoop, partition, walk
from .solvers.base import BestSolution, ConfigError, Route


@dataclass
class ThreadedConfig(JSAConfig):
    workers: int = 8

    def validate(self) -> None:
        super().validate()
        if not isinstance(self.workers, int) or self.workers <= 0:
            raise ConfigError(f"workers must be a positive integer, got {self.workers!r}")


class ThreadedSearch(SearchLoop):
    """Fork-join search over a thread pool.

    Each worker owns a fixed contiguous slice of the population and its own
    random stream, so the result does not depend on thread scheduling. A
    worker reports the best route it scored during the current iteration;
    once all workers have joined, those reports are folded into one
    iteration best and offered to the global record under its lock.

    Promotion therefore happens once per iteration, not after every route as
    in SequentialSearch. The two variants follow different trajectories even
    with a single worker.
    """

    name = "threaded"

    def __init__(
        self,
        config: ThreadedConfig,
        matrix: DistanceMatrix,
        rng: Optional[random.Random] = None,
        worker_rngs: Optional[Sequence[random.Random]] = None,
    ):
        super().__init__(config, matrix, rng=rng)
        self.slices = [partition(config.population_size, config.workers, w) for w in range(config.workers)]
        if worker_rngs is None:
            worker_rngs = [random.Random(config.random_seed + w + 1) for w in range(config.workers)]
        if len(worker_rngs) != config.workers:
            raise ConfigError(f"{len(worker_rngs)} random sources for {config.workers} workers")
        self.worker_rngs = list(worker_rngs)
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    def _work(self, worker: int) -> Tuple[float, Optional[Route]]:
        start, end = self.slices[worker]
        local = BestSolution()
        walk(self.population, range(start, end), self.evaluate, local, self.worker_rngs[worker])
        return local.snapshot()

    def step(self) -> None:
        if self._executor is None:
            reports = [self._work(w) for w in range(self.cfg.workers)]
        else:
            # map() re-raises the first worker exception here.
            reports = list(self._executor.map(self._work, range(self.cfg.workers)))
        iteration_best = BestSolution()
        for cost, route in reports:
            if route is not None:
                iteration_best.offer(cost, route)
        cost, route = iteration_best.snapshot()
        if route is not None:
            self.best.offer(cost, route)

    def run(self):
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.cfg.workers, thread_name_prefix="jsa-worker"
        ) as ex:
            self._executor = ex
            try:
                return super().run()
            finally:
                self._executor = None
