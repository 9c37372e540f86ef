"""
Sampling Decider

Probabilistic gate for the best-effort page-view telemetry.
"""

import random

from consent_sync.config import DEFAULT_SAMPLE_RATE


def sample(percentage: int = DEFAULT_SAMPLE_RATE, rng: random.Random | None = None) -> bool:
    """
    Draw a uniform integer in [1, 100] and report a hit when it falls in
    [1, percentage].

    Args:
        percentage: Threshold between 1 and 100
        rng: Random source (defaults to the module-level generator)
    """
    if not 1 <= percentage <= 100:
        raise ValueError(f"percentage must be between 1 and 100, got {percentage}")
    draw = (rng or random).randint(1, 100)
    return 1 <= draw <= percentage
