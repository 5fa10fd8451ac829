"""User account state"""
import logging
from typing import Any, Dict, Optional

from ..fixed_point import Rounding
from .ids import IdSequence

logger = logging.getLogger(__name__)

_user_ids = IdSequence()


class User:
    """Leaf account; every action is carried out by the owning spoke"""

    def __init__(self, user_id: Optional[int] = None, risk_premium: int = 0, spoke=None):
        self.id = _user_ids.claim(user_id)
        # not strictly needed, derivable from ghost / base shares
        self.risk_premium = risk_premium
        self.spoke = None
        self.hub = None

        self.base_drawn_shares = 0
        self.ghost_drawn_shares = 0
        self.offset = 0
        self.unrealised_premium = 0

        self.supplied_shares = 0

        if spoke is not None:
            spoke.add_user(self)

    @property
    def config(self):
        return self.hub.config

    @property
    def label(self) -> str:
        return f"user {self.id}"

    def supply(self, amount: int) -> int:
        logger.info("action supply id=%s amount=%s", self.id, amount)
        return self.spoke.supply(amount, self)

    def withdraw(self, amount: int) -> int:
        logger.info("action withdraw id=%s amount=%s", self.id, amount)
        return self.spoke.withdraw(amount, self)

    def borrow(self, amount: int) -> int:
        logger.info("action borrow id=%s amount=%s", self.id, amount)
        return self.spoke.borrow(amount, self)

    def repay(self, amount: int) -> int:
        logger.info("action repay id=%s amount=%s", self.id, amount)
        return self.spoke.repay(amount, self)

    def update_risk_premium(self) -> None:
        logger.info("action updateRiskPremium id=%s", self.id)
        self.spoke.update_user_risk_premium(self)

    def assign_spoke(self, spoke) -> None:
        self.spoke = spoke
        self.hub = spoke.hub

    def get_debt(self):
        return self.spoke.get_user_debt(self)

    def get_total_debt(self, rounding: Rounding = Rounding.FLOOR) -> int:
        return self.spoke.get_user_total_debt(self, rounding)

    def get_supplied_balance(self) -> int:
        return self.hub.to_supply_assets(self.supplied_shares)

    def bound_fields(self) -> Dict[str, int]:
        return {
            "base_drawn_shares": self.base_drawn_shares,
            "ghost_drawn_shares": self.ghost_drawn_shares,
            "offset": self.offset,
            "unrealised_premium": self.unrealised_premium,
            "supplied_shares": self.supplied_shares,
        }

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "risk_premium": self.risk_premium, **self.bound_fields()}
        if self.spoke is not None and all(value >= 0 for value in self.bound_fields().values()):
            debt = self.get_debt()
            data["ghost_debt"] = (
                self.hub.to_drawn_assets(self.ghost_drawn_shares, Rounding.CEIL) - self.offset
            )
            data["base_debt"] = debt.base_debt
            data["premium_debt"] = debt.premium_debt
            data["total_debt"] = debt.total
        return data

    def dump(self, spoke: bool = False, hub: bool = False) -> None:
        logger.error("--- User %s ---", self.id)
        for name, value in self.snapshot().items():
            logger.error("user.%-27s %s", name, value)
        if spoke:
            self.spoke.dump()
        if hub:
            self.hub.dump()
