"""Weighted bucket choice and offset sampling for matchup selection."""

from __future__ import annotations

import random
from collections.abc import Callable
from enum import Enum
from math import floor, isfinite

_MAX_ROLL = 0.999999999


class MatchupBucket(str, Enum):
    FEATURED = "featured"
    NORMAL = "normal"


def _bounded_roll(rng: Callable[[], float]) -> float:
    raw = float(rng())
    if not isfinite(raw):
        raw = 0.5
    return max(0.0, min(_MAX_ROLL, raw))


def pick_weighted_bucket(
    featured_count: int,
    normal_count: int,
    featured_weight: int = 2,
    rng: Callable[[], float] = random.random,
) -> MatchupBucket | None:
    """Pick a bucket with featured rows weighted ``featured_weight`` times heavier."""
    featured = max(0, int(featured_count or 0))
    normal = max(0, int(normal_count or 0))
    weight = max(1, int(featured_weight or 1))

    if not featured and not normal:
        return None
    if not normal:
        return MatchupBucket.FEATURED
    if not featured:
        return MatchupBucket.NORMAL

    weighted_featured = featured * weight
    total_weight = weighted_featured + normal
    roll = floor(_bounded_roll(rng) * total_weight)
    return MatchupBucket.FEATURED if roll < weighted_featured else MatchupBucket.NORMAL


def pick_random_offset(count: int, rng: Callable[[], float] = random.random) -> int | None:
    """Uniform ordinal offset in ``[0, count)``; ``None`` for empty buckets."""
    bounded_count = max(0, int(count or 0))
    if bounded_count <= 0:
        return None
    return floor(_bounded_roll(rng) * bounded_count)


__all__ = ["MatchupBucket", "pick_random_offset", "pick_weighted_bucket"]
