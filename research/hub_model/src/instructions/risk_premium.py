"""Risk premium samplers, each returns a rate in basis points"""
from typing import Iterable, Union

import numpy as np

from ..constants import PERCENTAGE_FACTOR


class ConstantRiskPremium:
    def __init__(self, bps: int = 0):
        if bps < 0:
            raise ValueError(f"Risk premium must be non-negative, got {bps}")
        self.bps = bps

    def __call__(self) -> int:
        return self.bps


class RandomRiskPremium:
    """Uniform integer rate in [0, max_bps]"""

    def __init__(self, max_bps: int = PERCENTAGE_FACTOR, seed: Union[None, int, np.random.SeedSequence] = None):
        if max_bps < 0:
            raise ValueError(f"max_bps must be non-negative, got {max_bps}")
        self.max_bps = max_bps
        self.rng = np.random.default_rng(seed)

    def __call__(self) -> int:
        return int(self.rng.integers(0, self.max_bps, endpoint=True))


class SequenceRiskPremium:
    """Replays the given rates in order, repeating the last one when exhausted"""

    def __init__(self, values: Iterable[int]):
        self.values = list(values)
        if not self.values:
            raise ValueError("SequenceRiskPremium needs at least one value")
        if any(v < 0 for v in self.values):
            raise ValueError(f"Risk premiums must be non-negative: {self.values}")
        self.position = 0

    def __call__(self) -> int:
        value = self.values[min(self.position, len(self.values) - 1)]
        self.position += 1
        return value
