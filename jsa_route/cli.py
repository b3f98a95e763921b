import argparse
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from jsa_route.data import DistanceMatrix, load_tsplib
from jsa_route.distributed import DistributedConfig, run_distributed
from jsa_route.evaluation import BACKENDS, Timing
from jsa_route.search import JSAConfig, SequentialSearch
from jsa_route.solvers.base import JSAError, SearchResult
from jsa_route.threaded import ThreadedConfig, ThreadedSearch


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", flush=True)


def _load_matrix(args) -> DistanceMatrix:
    if args.tsplib:
        log(f"loading TSPLIB instance from {args.tsplib}")
        return load_tsplib(Path(args.tsplib))
    # Matrix seed is independent of the search seed unless given.
    seed = args.matrix_seed if args.matrix_seed is not None else time.time_ns()
    log(f"generating random {args.clients}x{args.clients} matrix (seed={seed})")
    return DistanceMatrix.random(args.clients, seed=seed, low=args.low, high=args.high)


def _base_config(args, matrix: DistanceMatrix) -> JSAConfig:
    return JSAConfig(
        population_size=args.population,
        route_length=matrix.size,
        max_iter=args.iterations,
        random_seed=args.seed,
        cost_backend=args.backend,
    )


def _print_result(title: str, result: SearchResult, matrix: DistanceMatrix) -> None:
    print(f"==== {title} ====")
    route = " ".join(str(matrix.nodes[i]) for i in result.route) if result.route else "-"
    print(f"best route: {route}")
    print(f"cost: {result.cost:.2f}")
    print(f"time: {result.runtime:.6f}s")


def _print_timing(timing: Timing) -> None:
    print(f"speedup: {timing.speedup:.2f}")
    print(f"efficiency: {timing.efficiency:.2f}")


def sequential(args) -> None:
    matrix = _load_matrix(args)
    cfg = _base_config(args, matrix)
    result = SequentialSearch(cfg, matrix).run()
    _print_result("SEQUENTIAL", result, matrix)


def threads(args) -> None:
    matrix = _load_matrix(args)
    base = _base_config(args, matrix)
    log("baseline run with 1 worker")
    serial = ThreadedSearch(ThreadedConfig(**asdict(base), workers=1), matrix).run()
    log(f"parallel run with {args.workers} workers")
    parallel = ThreadedSearch(ThreadedConfig(**asdict(base), workers=args.workers), matrix).run()
    _print_result("1 WORKER", serial, matrix)
    _print_result(f"{args.workers} WORKERS", parallel, matrix)
    _print_timing(Timing(serial.runtime, parallel.runtime, args.workers))


def distributed(args) -> None:
    matrix = _load_matrix(args)
    cfg = DistributedConfig(
        **asdict(_base_config(args, matrix)),
        processes=args.processes,
        baseline=not args.no_baseline,
        launch=args.launch,
        timeout=args.timeout,
    )
    result = run_distributed(cfg, matrix)
    if result.baseline is not None:
        _print_result("SEQUENTIAL BASELINE (rank 0)", result.baseline, matrix)
    print("==== DISTRIBUTED ====")
    for report in result.reports:
        line = (
            f"rank {report.rank} [{report.start}, {report.end}) "
            f"local best={report.local_best_cost:.2f} time={report.runtime:.6f}s"
        )
        if result.baseline is not None:
            line += f" speedup={report.speedup:.2f}"
        print(line)
    print(f"global best cost: {result.best_cost:.2f}")
    print(f"parallel time (slowest rank): {result.runtime:.6f}s")
    if result.timing is not None:
        _print_timing(result.timing)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--population", type=int, default=70, help="routes per population")
    parser.add_argument("--clients", type=int, default=10, help="clients in a generated matrix")
    parser.add_argument("--iterations", type=int, default=100)
    parser.add_argument("--seed", type=int, default=123, help="search seed")
    parser.add_argument("--matrix-seed", type=int, default=None, help="seed for the generated matrix (default: clock)")
    parser.add_argument("--low", type=int, default=1)
    parser.add_argument("--high", type=int, default=100)
    parser.add_argument("--backend", choices=BACKENDS, default="python", help="edge-sum backend for route costs")
    parser.add_argument("--tsplib", default=None, help="TSPLIB file to use instead of a generated matrix")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, default="WARNING")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jellyfish Search for cyclic routing")
    subparsers = parser.add_subparsers(dest="command", required=True)

    seq_parser = subparsers.add_parser("sequential", help="Single-threaded search")
    _add_common(seq_parser)
    seq_parser.set_defaults(func=sequential)

    thr_parser = subparsers.add_parser("threads", help="Thread-parallel search vs. a 1-worker baseline")
    _add_common(thr_parser)
    thr_parser.add_argument("--workers", type=int, default=8)
    thr_parser.set_defaults(func=threads)

    dist_parser = subparsers.add_parser("distributed", help="Rank-parallel search with a sequential baseline")
    _add_common(dist_parser)
    dist_parser.add_argument("--processes", type=int, default=4)
    dist_parser.add_argument("--launch", choices=("process", "thread"), default="process")
    dist_parser.add_argument(
        "--timeout", type=float, default=None, help="seconds a rank may wait in a collective (default: no limit)"
    )
    dist_parser.add_argument("--no-baseline", action="store_true", help="skip the sequential pass on rank 0")
    dist_parser.set_defaults(func=distributed)
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except JSAError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
