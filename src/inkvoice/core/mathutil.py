"""
Numeric helpers shared by every stage of the ink pipeline.

Also hosts the random-source strategy: brush strokes either draw from a
seeded deterministic generator (baked, reproducible) or from the ambient
process-wide source (live preview only).
"""

import math
import random
from typing import Callable, Optional

RandomSource = Callable[[], float]


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def rand_range(lo: float, hi: float, rand: RandomSource = random.random) -> float:
    return lo + (hi - lo) * rand()


def noise1d(x: float, seed: float = 0.0) -> float:
    """Cheap hash noise in [0, 1)."""
    value = math.sin(x * 12.9898 + seed * 78.233) * 43758.5453
    return value - math.floor(value)


def wrap_angle(angle: float) -> float:
    """Wrap an angle difference to (-pi, pi]."""
    return math.atan2(math.sin(angle), math.cos(angle))


def is_finite(*values: float) -> bool:
    try:
        return all(math.isfinite(v) for v in values)
    except TypeError:
        return False


def seeded_source(seed) -> RandomSource:
    """Deterministic uniform [0, 1) source. Same seed, same sequence."""
    return random.Random(seed).random


def ambient_source() -> RandomSource:
    return random.random


def resolve_source(seed=None, rand: Optional[RandomSource] = None) -> RandomSource:
    """
    Pick the random source for a stroke.

    An explicit ``rand`` wins; otherwise a seed selects the deterministic
    generator and no seed selects the ambient one.
    """
    if rand is not None:
        return rand
    if seed is not None:
        return seeded_source(seed)
    return ambient_source()
