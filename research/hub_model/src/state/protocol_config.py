"""Protocol configuration"""
from dataclasses import dataclass
from ..constants import (
    MAX_UINT,
    OFFSET_UNITS,
    DEBT_TOLERANCE,
    PERCENTAGE_FACTOR,
)


@dataclass
class ProtocolConfig:
    """Accounting parameters shared by the hub and every spoke and user under it"""
    offset_units: int = OFFSET_UNITS
    max_uint: int = MAX_UINT
    debt_tolerance: int = DEBT_TOLERANCE
    max_risk_premium: int = PERCENTAGE_FACTOR  # bps
    dump_on_failure: bool = True

    def validate(self) -> "ProtocolConfig":
        """Reject parameters the accounting cannot work with"""
        if self.offset_units <= 0:
            raise ValueError(f"offset_units must be positive, got {self.offset_units}")
        if self.max_uint <= 0:
            raise ValueError(f"max_uint must be positive, got {self.max_uint}")
        if self.debt_tolerance < 0:
            raise ValueError(f"debt_tolerance must be non-negative, got {self.debt_tolerance}")
        if not 0 <= self.max_risk_premium <= self.max_uint:
            raise ValueError(f"max_risk_premium out of range: {self.max_risk_premium}")
        return self
