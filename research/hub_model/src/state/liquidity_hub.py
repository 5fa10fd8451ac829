"""Central liquidity pool shared by every spoke

The hub owns the supply and debt exchange rates and the base rate accrual.
Premium debt is tracked per level through three fields: ghost drawn shares
(premium-weighted debt shares), an offset (asset value of the ghost shares
when they were last set) and unrealised premium (premium already crystallised).
"""
import logging
from typing import Any, Callable, Dict, Optional, Union

from ..constants import RAY
from ..fixed_point import Rounding, mul_div, ray_mul
from ..errors import ZeroSharesError
from ..invariants import check_bounds, check_total_debt
from ..instructions.interest_index import FixedIndex
from ..instructions.risk_premium import ConstantRiskPremium
from .clock import Clock
from .debt import Debt
from .protocol_config import ProtocolConfig
from .spoke import Spoke

logger = logging.getLogger(__name__)


class LiquidityHub:
    """Single asset pool; spokes draw from and restore to it"""

    label = "hub"

    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        clock: Optional[Clock] = None,
        index_source: Optional[Callable[[int], int]] = None,
        risk_premium_sampler: Optional[Callable[[], int]] = None,
    ):
        self.config = (config or ProtocolConfig()).validate()
        self.clock = clock or Clock()
        self.index_source = index_source or FixedIndex(RAY)
        self.risk_premium_sampler = risk_premium_sampler or ConstantRiskPremium(0)

        # the hub's own accounting per spoke, keyed by spoke id
        self.spokes: Dict[int, Spoke] = {}
        # spoke ledgers created against this hub, keyed by spoke id
        self.ledgers: Dict[int, Spoke] = {}
        self.last_update_timestamp = 0

        self.base_drawn_shares = 0  # aka totalDrawnShares
        self.ghost_drawn_shares = 0
        self.offset = 0
        self.unrealised_premium = 0

        self.drawn_assets = 0
        self.available_liquidity = 0
        self.supplied_shares = 0

    def total_drawn_assets(self) -> int:
        return self.drawn_assets + self.config.offset_units

    def total_drawn_shares(self) -> int:
        return self.base_drawn_shares + self.config.offset_units

    # drawn assets exclude outstanding premium so the base rate accrues separately
    def to_drawn_assets(self, shares: int, rounding: Rounding = Rounding.FLOOR) -> int:
        self.accrue()
        return mul_div(shares, self.total_drawn_assets(), self.total_drawn_shares(), rounding)

    def to_drawn_shares(self, assets: int, rounding: Rounding = Rounding.FLOOR) -> int:
        self.accrue()
        return mul_div(assets, self.total_drawn_shares(), self.total_drawn_assets(), rounding)

    def total_outstanding_premium(self, rounding: Rounding = Rounding.FLOOR) -> int:
        return (
            self.to_drawn_assets(self.ghost_drawn_shares, rounding)
            - self.offset
            + self.unrealised_premium
        )

    def total_supply_assets(self, rounding: Rounding = Rounding.FLOOR) -> int:
        self.accrue()
        return (
            self.available_liquidity
            + self.drawn_assets
            + self.total_outstanding_premium(rounding)
            + self.config.offset_units
        )

    def total_supply_shares(self) -> int:
        return self.supplied_shares + self.config.offset_units

    def to_supply_assets(self, shares: int, rounding: Rounding = Rounding.FLOOR) -> int:
        return mul_div(shares, self.total_supply_assets(rounding), self.total_supply_shares(), rounding)

    def to_supply_shares(self, assets: int, rounding: Rounding = Rounding.FLOOR) -> int:
        return mul_div(assets, self.total_supply_shares(), self.total_supply_assets(rounding), rounding)

    def accrue(self) -> None:
        """Compound drawn assets once per tick; premium does not accrue here"""
        now = self.clock.now()
        if self.last_update_timestamp == now:
            return
        elapsed = now - self.last_update_timestamp
        self.last_update_timestamp = now
        index = self.index_source(elapsed)
        drawn_before = self.drawn_assets
        self.drawn_assets = ray_mul(self.drawn_assets, index)
        logger.debug("accrue tick=%s index=%s drawnAssets %s -> %s", now, index, drawn_before, self.drawn_assets)

    def supply(self, amount: int, spoke: Spoke) -> int:
        supplied_shares = self.to_supply_shares(amount)
        if supplied_shares == 0:
            raise ZeroSharesError(f"supply of {amount} resolves to zero shares")

        self.supplied_shares += supplied_shares
        self.available_liquidity += amount

        self.get_spoke(spoke).supplied_shares += supplied_shares

        return supplied_shares

    def withdraw(self, amount: int, spoke: Spoke) -> int:
        supplied_shares = self.to_supply_shares(amount, Rounding.CEIL)

        self.supplied_shares -= supplied_shares
        self.available_liquidity -= amount

        self.get_spoke(spoke).supplied_shares -= supplied_shares

        return supplied_shares

    def draw(self, amount: int, spoke: Spoke) -> int:
        """Lend base debt to a spoke; premium fields are left for `refresh`"""
        drawn_shares = self.to_drawn_shares(amount, Rounding.CEIL)

        self.available_liquidity -= amount

        self.base_drawn_shares += drawn_shares
        self.drawn_assets += amount

        self.get_spoke(spoke).base_drawn_shares += drawn_shares

        return drawn_shares

    def restore(self, base_amount: int, premium_amount: int, spoke: Spoke) -> int:
        """Take back base and premium debt; premium fields are left for `refresh`"""
        base_drawn_shares_restored = self.to_drawn_shares(base_amount, Rounding.CEIL)

        self.available_liquidity += base_amount + premium_amount

        self.drawn_assets -= base_amount
        self.base_drawn_shares -= base_drawn_shares_restored

        self.get_spoke(spoke).base_drawn_shares -= base_drawn_shares_restored

        return base_drawn_shares_restored

    def refresh(
        self,
        ghost_drawn_shares_delta: int,
        offset_delta: int,
        unrealised_premium_delta: int,
        spoke: Spoke,
    ) -> None:
        """Apply premium deltas to the hub and to its record of the spoke

        Total debt may only go down here, up to the rounding tolerance.
        """
        total_debt_before = self.get_total_debt(Rounding.CEIL)
        self.ghost_drawn_shares += ghost_drawn_shares_delta
        self.offset += offset_delta
        self.unrealised_premium += unrealised_premium_delta
        check_bounds(self)
        check_total_debt(total_debt_before, self)

        record = self.get_spoke(spoke)
        total_debt_before = record.get_total_debt(Rounding.CEIL)
        record.ghost_drawn_shares += ghost_drawn_shares_delta
        record.offset += offset_delta
        record.unrealised_premium += unrealised_premium_delta
        check_bounds(record)
        check_total_debt(total_debt_before, record)

    def sample_risk_premium(self) -> int:
        risk_premium = self.risk_premium_sampler()
        if not 0 <= risk_premium <= self.config.max_risk_premium:
            raise ValueError(
                f"Risk premium {risk_premium} outside [0, {self.config.max_risk_premium}]"
            )
        return risk_premium

    def get_spoke(self, spoke: Union[Spoke, int]) -> Spoke:
        """The hub's own record for a spoke, created zeroed on first reference"""
        spoke_id = spoke if isinstance(spoke, int) else spoke.id
        record = self.spokes.get(spoke_id)
        if record is None:
            # clone to maintain independent accounting
            record = self.spokes.setdefault(spoke_id, Spoke(self, spoke_id, register=False))
            logger.debug("hub registered spoke %s", spoke_id)
        return record

    def register_ledger(self, spoke: Spoke) -> None:
        if self.ledgers.setdefault(spoke.id, spoke) is not spoke:
            raise ValueError(f"Hub already has a different spoke ledger with id {spoke.id}")

    def get_debt(self, rounding: Rounding = Rounding.FLOOR) -> Debt:
        self.accrue()
        return Debt(
            base_debt=self.to_drawn_assets(self.base_drawn_shares, rounding),
            premium_debt=self.total_outstanding_premium(rounding),
        )

    def get_total_debt(self, rounding: Rounding = Rounding.FLOOR) -> int:
        return self.get_debt(rounding).total

    def bound_fields(self) -> Dict[str, int]:
        return {
            "base_drawn_shares": self.base_drawn_shares,
            "ghost_drawn_shares": self.ghost_drawn_shares,
            "offset": self.offset,
            "unrealised_premium": self.unrealised_premium,
            "supplied_shares": self.supplied_shares,
            "available_liquidity": self.available_liquidity,
            "drawn_assets": self.drawn_assets,
        }

    def derived_bound_fields(self) -> Dict[str, int]:
        """Aggregates bounded alongside the raw fields, valued with CEIL

        Every offset is the CEIL value of its ghost shares when it was set, so
        right after a borrow or risk premium update the FLOOR value of the same
        ghost shares sits one unit below the offset. Read at FLOOR, a premium
        that is fully offset would show as -1 and fail the bound. The same
        applies to debt reads: `get_debt()` at FLOOR may report a premium of
        -1 in the tick a position is opened, where the CEIL read is exactly 0.
        """
        return {
            "total_supply_assets": self.total_supply_assets(Rounding.CEIL),
            "total_outstanding_premium": self.total_outstanding_premium(Rounding.CEIL),
        }

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.bound_fields())
        data["last_update_timestamp"] = self.last_update_timestamp
        if all(value >= 0 for value in self.bound_fields().values()):
            debt = self.get_debt()
            data["ghost_debt"] = self.to_drawn_assets(self.ghost_drawn_shares, Rounding.CEIL) - self.offset
            data["total_supply_assets"] = self.total_supply_assets()
            data["total_outstanding_premium"] = self.total_outstanding_premium()
            data["base_debt"] = debt.base_debt
            data["premium_debt"] = debt.premium_debt
            data["total_debt"] = debt.total
        return data

    def dump(self, spokes: bool = False, users: bool = False) -> None:
        logger.error("--- Hub ---")
        for name, value in self.snapshot().items():
            logger.error("hub.%-28s %s", name, value)
        if spokes:
            for record in self.spokes.values():
                record.dump()
        if users:
            for ledger in self.ledgers.values():
                for user in ledger.users.values():
                    user.dump()
