"""Growth index sources for base debt accrual

A source is called by the hub with the number of ticks elapsed since its
last accrual and returns a ray-scaled multiplier for drawn assets.
"""
from typing import Union

import numpy as np

from ..constants import RAY, PERCENTAGE_FACTOR, TICKS_PER_YEAR
from ..fixed_point import checked_add, checked_mul


def compound_interest(rate: int, time_elapsed: int) -> int:
    """(1 + rate)^time_elapsed in ray, rate is per tick and ray scaled

    Small periods are multiplied out directly, larger ones use a third
    order Taylor expansion.
    """
    if time_elapsed == 0:
        return RAY
    elif time_elapsed == 1:
        return checked_add(RAY, rate)
    elif time_elapsed == 2:
        one_plus_rate = checked_add(RAY, rate)
        return checked_mul(one_plus_rate, one_plus_rate) // RAY
    elif time_elapsed == 3:
        one_plus_rate = checked_add(RAY, rate)
        squared = checked_mul(one_plus_rate, one_plus_rate) // RAY
        return checked_mul(squared, one_plus_rate) // RAY
    elif time_elapsed == 4:
        one_plus_rate = checked_add(RAY, rate)
        squared = checked_mul(one_plus_rate, one_plus_rate) // RAY
        return checked_mul(squared, squared) // RAY

    exp = time_elapsed
    exp_minus_one = time_elapsed - 1
    exp_minus_two = time_elapsed - 2

    base_pow_two = checked_mul(rate, rate) // RAY
    base_pow_three = checked_mul(base_pow_two, rate) // RAY

    second_term = checked_mul(exp, rate)
    third_term = checked_mul(checked_mul(exp, exp_minus_one), base_pow_two) // 2
    fourth_term = checked_mul(
        checked_mul(checked_mul(exp, exp_minus_one), exp_minus_two),
        base_pow_three
    ) // 6

    return checked_add(
        RAY,
        checked_add(second_term, checked_add(third_term, fourth_term))
    )


def per_tick_rate(annual_rate_bps: int, ticks_per_year: int = TICKS_PER_YEAR) -> int:
    """Convert a yearly basis point rate to a ray-scaled per tick rate"""
    if annual_rate_bps < 0:
        raise ValueError(f"annual_rate_bps must be non-negative, got {annual_rate_bps}")
    if ticks_per_year <= 0:
        raise ValueError(f"ticks_per_year must be positive, got {ticks_per_year}")
    return annual_rate_bps * RAY // PERCENTAGE_FACTOR // ticks_per_year


class FixedIndex:
    """Same multiplier on every accrual regardless of elapsed ticks"""

    def __init__(self, index: int = RAY):
        if index < 0:
            raise ValueError(f"index must be non-negative, got {index}")
        self.index = index

    def __call__(self, time_elapsed: int) -> int:
        return self.index


class CompoundingIndex:
    """Compounds a fixed yearly rate over the elapsed ticks"""

    def __init__(self, annual_rate_bps: int, ticks_per_year: int = TICKS_PER_YEAR):
        self.annual_rate_bps = annual_rate_bps
        self.rate = per_tick_rate(annual_rate_bps, ticks_per_year)

    def __call__(self, time_elapsed: int) -> int:
        return compound_interest(self.rate, time_elapsed)


class RandomIndex:
    """Samples a per tick rate uniformly in [0, max_rate_bps] and compounds it"""

    def __init__(self, max_rate_bps: int = 100, seed: Union[None, int, np.random.SeedSequence] = None):
        if max_rate_bps < 0:
            raise ValueError(f"max_rate_bps must be non-negative, got {max_rate_bps}")
        self.max_rate_bps = max_rate_bps
        self.rng = np.random.default_rng(seed)

    def __call__(self, time_elapsed: int) -> int:
        rate_bps = int(self.rng.integers(0, self.max_rate_bps, endpoint=True))
        return compound_interest(rate_bps * RAY // PERCENTAGE_FACTOR, time_elapsed)
