from .base import (
    BestSolution,
    CollectiveError,
    ConfigError,
    JSAError,
    MatrixError,
    RandomSourceError,
    Route,
    SearchResult,
    is_permutation,
)
from .operators import initialize_population, perturb, random_route

__all__ = [
    "BestSolution",
    "CollectiveError",
    "ConfigError",
    "JSAError",
    "MatrixError",
    "RandomSourceError",
    "Route",
    "SearchResult",
    "is_permutation",
    "initialize_population",
    "perturb",
    "random_route",
]
