import math
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


Route = List[int]


class JSAError(Exception):
    pass


class ConfigError(JSAError, ValueError):
    pass


class MatrixError(JSAError, ValueError):
    pass


class RandomSourceError(JSAError, RuntimeError):
    pass


class CollectiveError(JSAError, RuntimeError):
    pass


def is_permutation(route: Sequence[int], size: int) -> bool:
    return len(route) == size and sorted(route) == list(range(size))


class BestSolution:
    """Best-ever (cost, route) record.

    `offer` is the only way to change it. The compare-and-replace runs under
    the record's lock, so concurrent callers never lose an improvement and
    the cost never increases.
    """

    def __init__(self):
        self.cost: float = math.inf
        self.route: Optional[Route] = None
        self._lock = threading.Lock()

    def offer(self, cost: float, route: Sequence[int]) -> bool:
        with self._lock:
            if cost < self.cost:
                self.cost = cost
                self.route = list(route)
                return True
            return False

    def snapshot(self):
        with self._lock:
            return self.cost, (list(self.route) if self.route is not None else None)


@dataclass
class SearchResult:
    route: Optional[Route]
    cost: float
    runtime: float
    solver_name: str
    history: List[float] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.route is not None and not math.isinf(self.cost)
