"""External tick counter driving interest accrual"""
from dataclasses import dataclass


@dataclass
class Clock:
    """Monotonic tick source; advancing it is the caller's job"""
    current: int = 1  # a fresh hub (last update 0) accrues once on first use

    def now(self) -> int:
        return self.current

    def skip(self, ticks: int = 1) -> int:
        if ticks < 0:
            raise ValueError(f"Cannot move the clock backwards by {ticks}")
        self.current += ticks
        return self.current
