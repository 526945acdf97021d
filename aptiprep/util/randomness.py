from __future__ import annotations

"""Randomness helpers for seeding and unbiased selection."""

import logging
import os
import random
from typing import List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def env_seed() -> Optional[int]:
    """Seed from the SEED env var, if set and numeric."""
    seed = os.environ.get("SEED")
    if seed is None:
        return None
    try:
        return int(seed)
    except ValueError:
        logger.warning("Ignoring non-numeric SEED=%r", seed)
        return None


def make_rng(seed: Optional[int | str] = None) -> random.Random:
    """Return an independent RNG; seeded from `seed` or else SEED."""
    return random.Random(env_seed() if seed is None else seed)


def sample_without_replacement(items: Sequence[T], n: int, rng: Optional[random.Random] = None) -> List[T]:
    """Uniformly random subset of size n, in shuffled order.

    Shuffle-then-take over a copy; random.Random.shuffle is Fisher-Yates,
    so every permutation is equally likely.
    """
    rng = rng or random.Random()
    pool = list(items)
    n = max(0, min(int(n), len(pool)))
    rng.shuffle(pool)
    return pool[:n]
