"""
Jellyfish Search over a single-vehicle cyclic route, in sequential, threaded and rank-parallel form.
"""

__all__ = [
    "data",
    "distributed",
    "evaluation",
    "search",
    "threaded",
]
