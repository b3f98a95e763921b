import logging
from pathlib import Path
from typing import Hashable, List, Optional, Sequence

import networkx as nx
import numpy as np
import tsplib95

from .solvers.base import MatrixError


logger = logging.getLogger(__name__)


class DistanceMatrix:
    """Read-only D x D travel-cost matrix held in one contiguous float64 buffer.

    Rows are origins, columns destinations; the matrix need not be symmetric.
    `nodes` maps matrix indices back to the labels of the source instance
    (0..D-1 for generated matrices).
    """

    def __init__(self, values, nodes: Optional[Sequence[Hashable]] = None, name: str = "matrix"):
        arr = np.array(values, dtype=np.float64, order="C", copy=True)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise MatrixError(f"distance matrix must be square, got shape {arr.shape}")
        if arr.shape[0] == 0:
            raise MatrixError("distance matrix must have at least one client")
        if not np.all(np.isfinite(arr)):
            raise MatrixError("distance matrix contains non-finite values")
        if np.any(arr < 0):
            raise MatrixError("distance matrix contains negative distances")
        if np.any(np.diag(arr) != 0):
            raise MatrixError("distance matrix diagonal must be zero")
        arr.setflags(write=False)
        self.values = arr
        self.name = name
        self.nodes: List[Hashable] = list(nodes) if nodes is not None else list(range(arr.shape[0]))
        if len(self.nodes) != arr.shape[0]:
            raise MatrixError(f"{len(self.nodes)} node labels for a matrix of size {arr.shape[0]}")

    @property
    def size(self) -> int:
        return self.values.shape[0]

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, key):
        return self.values[key]

    def __setstate__(self, state):
        # Unpickled arrays come back writeable.
        self.__dict__.update(state)
        self.values.setflags(write=False)

    @classmethod
    def random(cls, size: int, seed: Optional[int] = None, low: int = 1, high: int = 100) -> "DistanceMatrix":
        """Integer distances drawn uniformly from [low, high], zero diagonal."""
        if size <= 0:
            raise MatrixError(f"matrix size must be positive, got {size}")
        if low < 0 or high < low:
            raise MatrixError(f"invalid distance range [{low}, {high}]")
        rng = np.random.default_rng(seed)
        values = rng.integers(low, high + 1, size=(size, size)).astype(np.float64)
        np.fill_diagonal(values, 0.0)
        return cls(values, name=f"random{size}")

    @classmethod
    def from_graph(cls, graph: nx.Graph, weight: str = "weight", name: Optional[str] = None) -> "DistanceMatrix":
        """Dense matrix from a weighted graph; missing edges are rejected, self-loops dropped."""
        nodes = list(graph.nodes())
        if not nodes:
            raise MatrixError("graph has no nodes")
        values = nx.to_numpy_array(graph, nodelist=nodes, weight=weight, nonedge=np.nan)
        np.fill_diagonal(values, 0.0)
        if np.isnan(values).any():
            raise MatrixError("graph is not complete; every ordered pair of clients needs an edge")
        return cls(values, nodes=nodes, name=name or str(graph.name or "graph"))


def load_tsplib(path: Path) -> DistanceMatrix:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"TSPLIB file not found: {path}")
    problem = tsplib95.load(path)
    graph = problem.get_graph()
    matrix = DistanceMatrix.from_graph(graph, name=problem.name or path.stem)
    logger.info("loaded %s with %d clients from %s", matrix.name, matrix.size, path)
    return matrix
