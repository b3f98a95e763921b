"""Rank-parallel JSA: every rank searches its own slice, one min-reduction at the end.

Ranks share nothing but a barrier and a small float buffer. They meet twice:
at the barrier that closes the coordinator's sequential baseline, and at the
end-of-run all-reduce of local best costs (plus a broadcast of the baseline
time). Only the scalar cost is reduced; the best route stays with the rank
that found it.
"""
import logging
import multiprocessing
import queue
import random
import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .data import DistanceMatrix
from .evaluation import CostEvaluator, Timing
from .search import JSAConfig, SequentialSearch, partition, walk
from .solvers.base import BestSolution, CollectiveError, ConfigError, MatrixError, SearchResult
from .solvers.operators import initialize_population


logger = logging.getLogger(__name__)

LAUNCH_MODES = ("process", "thread")


@dataclass
class DistributedConfig(JSAConfig):
    processes: int = 4
    baseline: bool = True
    launch: str = "process"
    timeout: Optional[float] = None
    start_method: Optional[str] = None

    def validate(self) -> None:
        super().validate()
        if not isinstance(self.processes, int) or self.processes <= 0:
            raise ConfigError(f"processes must be a positive integer, got {self.processes!r}")
        if self.launch not in LAUNCH_MODES:
            raise ConfigError(f"unknown launch mode {self.launch!r}; expected one of {LAUNCH_MODES}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")


class GroupCommunicator:
    """Collectives for one rank over a shared barrier and `size + 1` float slots.

    Slot r holds rank r's contribution to a reduction; the last slot carries
    broadcasts. Works with threading or multiprocessing primitives alike.
    """

    def __init__(self, rank: int, size: int, barrier, slots: Sequence[float], timeout: Optional[float] = None):
        if not 0 <= rank < size:
            raise ConfigError(f"rank {rank} outside [0, {size})")
        self.rank = rank
        self.size = size
        self.timeout = timeout
        self._barrier = barrier
        self._slots = slots

    def barrier(self) -> None:
        try:
            self._barrier.wait(self.timeout)
        except threading.BrokenBarrierError as exc:
            raise CollectiveError(f"rank {self.rank}: barrier broken or timed out") from exc

    def allreduce_min(self, value: float) -> float:
        self._slots[self.rank] = value
        self.barrier()
        result = min(self._slots[r] for r in range(self.size))
        # Nobody may overwrite a slot before every rank has read them all.
        self.barrier()
        return result

    def broadcast(self, value: float, root: int = 0) -> float:
        if self.rank == root:
            self._slots[self.size] = value
        self.barrier()
        result = self._slots[self.size]
        self.barrier()
        return result


@dataclass
class RankReport:
    rank: int
    start: int
    end: int
    local_best_cost: float
    global_best_cost: float
    runtime: float
    baseline_runtime: float = 0.0
    baseline: Optional[SearchResult] = None

    @property
    def speedup(self) -> float:
        return Timing(self.baseline_runtime, self.runtime, 1).speedup


@dataclass
class DistributedResult:
    best_cost: float
    reports: List[RankReport] = field(default_factory=list)
    baseline: Optional[SearchResult] = None

    @property
    def processes(self) -> int:
        return len(self.reports)

    @property
    def runtime(self) -> float:
        # The parallel phase ends with its slowest rank.
        return max(r.runtime for r in self.reports)

    @property
    def timing(self) -> Optional[Timing]:
        if self.baseline is None:
            return None
        return Timing(self.baseline.runtime, self.runtime, self.processes)


def run_rank(config: DistributedConfig, matrix: DistanceMatrix, comm: GroupCommunicator) -> RankReport:
    config.validate()
    rng = random.Random(config.random_seed + comm.rank)

    baseline = None
    if comm.rank == 0 and config.baseline:
        baseline = SequentialSearch(config, matrix, rng=rng).run()
        logger.info("rank 0: sequential baseline cost %.2f in %.6fs", baseline.cost, baseline.runtime)
    comm.barrier()

    evaluate = CostEvaluator(matrix, config.cost_backend)
    population = initialize_population(config.population_size, config.route_length, rng)
    start, end = partition(config.population_size, comm.size, comm.rank)
    best = BestSolution()

    t0 = time.perf_counter()
    for _ in range(config.max_iter):
        walk(population, range(start, end), evaluate, best, rng)
    runtime = time.perf_counter() - t0

    global_best = comm.allreduce_min(best.cost)
    baseline_runtime = comm.broadcast(baseline.runtime if baseline is not None else 0.0, root=0)
    logger.info(
        "rank %d: slice [%d, %d) local best %.2f route %s in %.6fs",
        comm.rank, start, end, best.cost, best.route, runtime,
    )
    return RankReport(
        rank=comm.rank,
        start=start,
        end=end,
        local_best_cost=best.cost,
        global_best_cost=global_best,
        runtime=runtime,
        baseline_runtime=baseline_runtime,
        baseline=baseline,
    )


def _rank_main(rank, size, config, matrix, barrier, slots, results) -> None:
    comm = GroupCommunicator(rank, size, barrier, slots, timeout=config.timeout)
    try:
        report = run_rank(config, matrix, comm)
    except Exception:
        # Delivered to the launcher, which fails the whole group.
        results.put((rank, None, traceback.format_exc()))
        return
    results.put((rank, report, None))


def _collect(results, workers, size: int) -> List[RankReport]:
    reports = {}
    while len(reports) < size:
        try:
            rank, report, error = results.get(timeout=0.1)
        except queue.Empty:
            for rank, worker in enumerate(workers):
                exitcode = getattr(worker, "exitcode", None)
                if exitcode not in (None, 0):
                    raise CollectiveError(f"rank {rank} exited with code {exitcode}")
            continue
        if error is not None:
            raise CollectiveError(f"rank {rank} failed:\n{error}")
        reports[rank] = report
    return [reports[r] for r in range(size)]


def run_distributed(config: DistributedConfig, matrix: DistanceMatrix) -> DistributedResult:
    config.validate()
    if matrix.size != config.route_length:
        raise MatrixError(
            f"route_length={config.route_length} does not match a {matrix.size}x{matrix.size} matrix"
        )
    size = config.processes
    if config.launch == "process":
        ctx = multiprocessing.get_context(config.start_method)
        barrier = ctx.Barrier(size)
        slots = ctx.Array("d", size + 1, lock=False)
        results = ctx.Queue()
        workers = [
            ctx.Process(
                target=_rank_main,
                args=(rank, size, config, matrix, barrier, slots, results),
                name=f"jsa-rank-{rank}",
            )
            for rank in range(size)
        ]
    else:
        barrier = threading.Barrier(size)
        slots = [0.0] * (size + 1)
        results = queue.Queue()
        workers = [
            threading.Thread(
                target=_rank_main,
                args=(rank, size, config, matrix, barrier, slots, results),
                name=f"jsa-rank-{rank}",
                daemon=True,
            )
            for rank in range(size)
        ]

    logger.info("launching %d ranks (%s)", size, config.launch)
    for worker in workers:
        worker.start()
    try:
        reports = _collect(results, workers, size)
    except CollectiveError:
        # Fate-sharing: release anyone blocked in a collective and stop the group.
        barrier.abort()
        for worker in workers:
            if hasattr(worker, "terminate") and worker.is_alive():
                worker.terminate()
        raise
    finally:
        for worker in workers:
            worker.join(config.timeout)

    baseline = reports[0].baseline
    return DistributedResult(best_cost=reports[0].global_best_cost, reports=reports, baseline=baseline)
