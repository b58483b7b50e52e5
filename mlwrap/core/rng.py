"""
Explicit random state handling.

Every stochastic call receives a `numpy.random.Generator`; units of work that
may run in parallel get generators spawned from the caller's one before they
are dispatched. The global numpy RNG is never touched.
"""

from __future__ import annotations

import numpy as np

from mlwrap.config import settings

Seed = int | np.random.Generator | np.random.SeedSequence | None

_MAX_INT_SEED = 2**31 - 1


def as_generator(seed: Seed = None) -> np.random.Generator:
    if isinstance(seed, np.random.Generator):
        return seed
    if seed is None:
        seed = settings.DEFAULT_SEED
    return np.random.default_rng(seed)


def spawn(rng: np.random.Generator, n: int) -> list[np.random.Generator]:
    """Independent child generators, one per unit of work."""
    return rng.spawn(n)


def int_seed(rng: np.random.Generator) -> int:
    """Integer seed for libraries that only take `random_state: int`."""
    return int(rng.integers(0, _MAX_INT_SEED))


__all__ = ["Seed", "as_generator", "spawn", "int_seed"]
