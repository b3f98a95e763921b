from jsa_route.data import DistanceMatrix
from jsa_route.distributed import DistributedConfig, run_distributed
from jsa_route.search import JSAConfig, SequentialSearch
from jsa_route.threaded import ThreadedConfig, ThreadedSearch


def main():
    matrix = DistanceMatrix.random(12, seed=7)
    cfg = JSAConfig(population_size=40, route_length=matrix.size, max_iter=200, random_seed=123)

    seq = SequentialSearch(cfg, matrix).run()
    print(f"sequential: cost={seq.cost:.2f} route={seq.route} time={seq.runtime:.4f}s")

    thr = ThreadedSearch(ThreadedConfig(population_size=40, route_length=matrix.size, max_iter=200, workers=4), matrix).run()
    print(f"threaded:   cost={thr.cost:.2f} route={thr.route} time={thr.runtime:.4f}s")

    dist = run_distributed(
        DistributedConfig(population_size=40, route_length=matrix.size, max_iter=200, processes=2),
        matrix,
    )
    for report in dist.reports:
        print(f"rank {report.rank}: local best={report.local_best_cost:.2f} time={report.runtime:.4f}s")
    print(f"distributed: global best cost={dist.best_cost:.2f} speedup={dist.timing.speedup:.2f}")


if __name__ == "__main__":
    main()
