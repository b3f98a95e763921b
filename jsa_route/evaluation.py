import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import torch

from .data import DistanceMatrix
from .solvers.base import ConfigError, MatrixError


BACKENDS = ("python", "numpy", "torch")


def route_cost(matrix: DistanceMatrix, route: Sequence[int]) -> float:
    """Closed-tour cost: every consecutive edge plus the edge back to the start."""
    dist = matrix.values
    n = len(route)
    total = 0.0
    for i in range(n):
        total += dist[route[i], route[(i + 1) % n]]
    return float(total)


def _route_cost_numpy(dist: np.ndarray, route: Sequence[int]) -> float:
    idx = np.asarray(route, dtype=np.intp)
    return float(dist[idx, np.roll(idx, -1)].sum())


def _route_cost_torch(dist: torch.Tensor, route: Sequence[int]) -> float:
    # Gather + reduce over all edges at once; torch spreads the sum over its intra-op threads.
    idx = torch.tensor(route, device=dist.device, dtype=torch.long)
    return dist[idx, idx.roll(-1)].sum().item()


class CostEvaluator:
    """Scores routes against one matrix with the chosen edge-sum backend."""

    def __init__(self, matrix: DistanceMatrix, backend: str = "python", device=None):
        if backend not in BACKENDS:
            raise ConfigError(f"unknown cost backend {backend!r}; expected one of {BACKENDS}")
        self.matrix = matrix
        self.backend = backend
        self._tensor = None
        if backend == "torch":
            self._tensor = torch.from_numpy(np.array(matrix.values)).to(device or "cpu")

    def __call__(self, route: Sequence[int]) -> float:
        if len(route) != self.matrix.size:
            raise MatrixError(f"route has {len(route)} clients, matrix has {self.matrix.size}")
        if self.backend == "numpy":
            return _route_cost_numpy(self.matrix.values, route)
        if self.backend == "torch":
            return _route_cost_torch(self._tensor, route)
        return route_cost(self.matrix, route)


@dataclass
class Timing:
    sequential: float
    parallel: float
    workers: int

    @property
    def speedup(self) -> float:
        if math.isclose(self.parallel, 0.0):
            return float("inf")
        return self.sequential / self.parallel

    @property
    def efficiency(self) -> float:
        return self.speedup / self.workers
