import numbers
import random
from typing import List

from .base import ConfigError, RandomSourceError, Route


def _draw(rng: random.Random, size: int) -> int:
    # Any object with a random.Random-style randrange() is accepted.
    try:
        idx = rng.randrange(size)
    except Exception as exc:
        raise RandomSourceError(f"random source {rng!r} failed drawing from [0, {size})") from exc
    if not isinstance(idx, numbers.Integral) or not 0 <= idx < size:
        raise RandomSourceError(f"random source {rng!r} returned {idx!r}, expected an int in [0, {size})")
    return int(idx)


def random_route(size: int, rng: random.Random) -> Route:
    """Identity ordering shuffled by swapping each position with a uniform index.

    Every position j is swapped with rng.randrange(size), which is not a uniform
    shuffle; the draw order is kept as is so seeded runs stay reproducible.
    """
    route = list(range(size))
    for j in range(size):
        k = _draw(rng, size)
        route[j], route[k] = route[k], route[j]
    return route


def initialize_population(population_size: int, route_length: int, rng: random.Random) -> List[Route]:
    if population_size <= 0:
        raise ConfigError(f"population_size must be positive, got {population_size}")
    if route_length <= 0:
        raise ConfigError(f"route_length must be positive, got {route_length}")
    return [random_route(route_length, rng) for _ in range(population_size)]


def perturb(route: Route, rng: random.Random) -> None:
    # Brownian move: swap two uniformly drawn positions (a == b is a no-op).
    n = len(route)
    a = _draw(rng, n)
    b = _draw(rng, n)
    route[a], route[b] = route[b], route[a]
