"""Spoke ledger: per-market accounting for a set of users

Borrow, repay and risk premium updates live here. Each one changes the
user's ghost shares, offset and unrealised premium and pushes the same
deltas to the spoke aggregate and then to the hub through `refresh`.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Tuple, Union

from ..constants import REPAY_ALL
from ..errors import OverRestorationError
from ..fixed_point import Rounding, abs_diff, percent_mul
from ..invariants import check_bounds, check_total_debt
from .debt import Debt
from .ids import IdSequence
from .user import User

logger = logging.getLogger(__name__)

_spoke_ids = IdSequence()


class Spoke:
    def __init__(self, hub, spoke_id: Optional[int] = None, register: bool = True):
        self.hub = hub
        self.id = _spoke_ids.claim(spoke_id)
        self.registered = register
        self.users: Dict[int, User] = {}

        self.base_drawn_shares = 0
        self.ghost_drawn_shares = 0
        self.offset = 0
        self.unrealised_premium = 0

        self.supplied_shares = 0

        if register:
            hub.register_ledger(self)

    @property
    def config(self):
        return self.hub.config

    @property
    def label(self) -> str:
        return f"spoke {self.id}" if self.registered else f"hub record of spoke {self.id}"

    @contextmanager
    def _atomic(self, user: User):
        """Undo every level's changes if the operation fails part way"""
        hub = self.hub
        entities = (hub, hub.get_spoke(self), self, user)
        saved = [(entity, entity.bound_fields()) for entity in entities]
        risk_premium = user.risk_premium
        last_update_timestamp = hub.last_update_timestamp
        try:
            yield
        except Exception:
            for entity, fields in saved:
                for name, value in fields.items():
                    setattr(entity, name, value)
            user.risk_premium = risk_premium
            hub.last_update_timestamp = last_update_timestamp
            logger.warning("%s: rolled back operation for user %s", self.label, user.id)
            raise

    def supply(self, amount: int, who: Union[User, int]) -> int:
        user = self.get_user(who)
        with self._atomic(user):
            self.hub.accrue()
            supplied_shares = self.hub.supply(amount, self)

            self.supplied_shares += supplied_shares
            user.supplied_shares += supplied_shares

            self.update_user_risk_premium(user)

        return supplied_shares

    def withdraw(self, amount: int, who: Union[User, int]) -> int:
        user = self.get_user(who)
        with self._atomic(user):
            self.hub.accrue()
            supplied_shares = self.hub.withdraw(amount, self)

            self.supplied_shares -= supplied_shares
            user.supplied_shares -= supplied_shares

            self.update_user_risk_premium(user)

        return supplied_shares

    def borrow(self, amount: int, who: Union[User, int]) -> int:
        user = self.get_user(who)
        with self._atomic(user):
            self.hub.accrue()

            # accrued premium, new offset and the refresh debt checks all read the post-draw rate
            drawn_shares = self.hub.draw(amount, self)

            old_user_ghost_drawn_shares = user.ghost_drawn_shares
            old_user_offset = user.offset
            accrued_premium_debt = (
                self.hub.to_drawn_assets(old_user_ghost_drawn_shares, Rounding.CEIL) - old_user_offset
            )

            self.base_drawn_shares += drawn_shares
            user.base_drawn_shares += drawn_shares
            user.risk_premium = self.hub.sample_risk_premium()

            user.ghost_drawn_shares = percent_mul(user.base_drawn_shares, user.risk_premium)
            user.offset = self.hub.to_drawn_assets(user.ghost_drawn_shares, Rounding.CEIL)
            user.unrealised_premium += accrued_premium_debt

            self.refresh(
                user.ghost_drawn_shares - old_user_ghost_drawn_shares,
                user.offset - old_user_offset,
                accrued_premium_debt,
                user,
            )

        return drawn_shares

    def repay(self, amount: int, who: Union[User, int]) -> int:
        """Pay premium debt first, then base debt; REPAY_ALL repays everything"""
        user = self.get_user(who)
        with self._atomic(user):
            self.hub.accrue()
            base_debt, premium_debt = self.get_user_debt(user)
            base_debt_restored, premium_debt_restored = self.deduct_from_premium(
                base_debt, premium_debt, amount, user
            )

            # settle premium debt
            user_ghost_drawn_shares = user.ghost_drawn_shares
            user_offset = user.offset
            user_unrealised_premium = user.unrealised_premium
            user.ghost_drawn_shares = 0
            user.offset = 0
            user.unrealised_premium = premium_debt - premium_debt_restored
            self.refresh(
                user.ghost_drawn_shares - user_ghost_drawn_shares,
                user.offset - user_offset,
                user.unrealised_premium - user_unrealised_premium,
                user,
            )

            # settle base debt
            drawn_shares = self.hub.restore(base_debt_restored, premium_debt_restored, self)

            self.base_drawn_shares -= drawn_shares
            user.base_drawn_shares -= drawn_shares
            user.risk_premium = self.hub.sample_risk_premium()

            # ghost and offset were zeroed above, so the new values are the deltas
            user.ghost_drawn_shares = percent_mul(user.base_drawn_shares, user.risk_premium)
            user.offset = self.hub.to_drawn_assets(user.ghost_drawn_shares)

            self.refresh(user.ghost_drawn_shares, user.offset, 0, user)

        return drawn_shares

    def deduct_from_premium(
        self, base_debt: int, premium_debt: int, amount: int, user: User
    ) -> Tuple[int, int]:
        """Split a repayment into (base restored, premium restored)"""
        if amount == REPAY_ALL:
            return base_debt, premium_debt

        if amount < premium_debt:
            base_debt_restored = 0
            premium_debt_restored = amount
        else:
            base_debt_restored = amount - premium_debt
            premium_debt_restored = premium_debt

        # sanity
        if base_debt_restored > base_debt:
            self._over_restored(user, "base", base_debt_restored, base_debt)
        if premium_debt_restored > premium_debt:
            self._over_restored(user, "premium", premium_debt_restored, premium_debt)

        return base_debt_restored, premium_debt_restored

    def _over_restored(self, user: User, kind: str, restored: int, outstanding: int) -> None:
        if self.config.dump_on_failure:
            user.dump(True, True)
        logger.error(
            "%sDebtRestored, %sDebt, diff %s %s %s",
            kind, kind, restored, outstanding, abs_diff(restored, outstanding),
        )
        raise OverRestorationError(kind, restored, outstanding, user.snapshot())

    def update_user_risk_premium(self, who: Union[User, int]) -> None:
        """Resample the user's rate and crystallise the premium accrued so far"""
        user = self.get_user(who)
        with self._atomic(user):
            user.risk_premium = self.hub.sample_risk_premium()

            old_user_ghost_drawn_shares = user.ghost_drawn_shares
            old_user_offset = user.offset

            user.ghost_drawn_shares = percent_mul(user.base_drawn_shares, user.risk_premium)
            user.offset = self.hub.to_drawn_assets(user.ghost_drawn_shares, Rounding.CEIL)

            new_unrealised_premium = (
                self.hub.to_drawn_assets(old_user_ghost_drawn_shares, Rounding.CEIL) - old_user_offset
            )
            user.unrealised_premium += new_unrealised_premium

            self.refresh(
                user.ghost_drawn_shares - old_user_ghost_drawn_shares,
                user.offset - old_user_offset,
                new_unrealised_premium,
                user,
            )

    def refresh(
        self,
        ghost_drawn_shares_delta: int,
        offset_delta: int,
        unrealised_premium_delta: int,
        user: User,
    ) -> None:
        """Apply a user's premium deltas to this spoke, then to the hub"""
        check_bounds(user)

        total_debt_before = self.get_total_debt(Rounding.CEIL)
        self.ghost_drawn_shares += ghost_drawn_shares_delta
        self.offset += offset_delta
        self.unrealised_premium += unrealised_premium_delta
        check_bounds(self)
        check_total_debt(total_debt_before, self)

        self.hub.refresh(ghost_drawn_shares_delta, offset_delta, unrealised_premium_delta, self)

    def _debt_of(self, base_drawn_shares: int, ghost_drawn_shares: int, offset: int,
                 unrealised_premium: int, rounding: Rounding) -> Debt:
        self.hub.accrue()
        return Debt(
            base_debt=self.hub.to_drawn_assets(base_drawn_shares, rounding),
            premium_debt=(
                self.hub.to_drawn_assets(ghost_drawn_shares, rounding) - offset + unrealised_premium
            ),
        )

    def get_debt(self, rounding: Rounding = Rounding.FLOOR) -> Debt:
        return self._debt_of(
            self.base_drawn_shares, self.ghost_drawn_shares, self.offset,
            self.unrealised_premium, rounding,
        )

    def get_total_debt(self, rounding: Rounding = Rounding.FLOOR) -> int:
        return self.get_debt(rounding).total

    def get_user_debt(self, who: Union[User, int], rounding: Rounding = Rounding.FLOOR) -> Debt:
        user = self.get_user(who)
        return self._debt_of(
            user.base_drawn_shares, user.ghost_drawn_shares, user.offset,
            user.unrealised_premium, rounding,
        )

    def get_user_total_debt(self, who: Union[User, int], rounding: Rounding = Rounding.FLOOR) -> int:
        return self.get_user_debt(who, rounding).total

    def add_user(self, user: User) -> User:
        # keep the caller's object, users are never cloned
        known = self.users.setdefault(user.id, user)
        if known is not user:
            raise ValueError(f"{self.label} already has a different user with id {user.id}")
        user.assign_spoke(self)
        logger.debug("spoke %s registered user %s", self.id, user.id)
        return user

    def get_user(self, user: Union[User, int]) -> User:
        """Look up a user by object or id, registering it on first reference"""
        if isinstance(user, int):
            known = self.users.get(user)
            return known if known is not None else self.add_user(User(user))
        if self.users.get(user.id) is user:
            return user
        return self.add_user(user)

    def bound_fields(self) -> Dict[str, int]:
        return {
            "base_drawn_shares": self.base_drawn_shares,
            "ghost_drawn_shares": self.ghost_drawn_shares,
            "offset": self.offset,
            "unrealised_premium": self.unrealised_premium,
            "supplied_shares": self.supplied_shares,
        }

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, **self.bound_fields()}
        if all(value >= 0 for value in self.bound_fields().values()):
            debt = self.get_debt()
            data["ghost_debt"] = (
                self.hub.to_drawn_assets(self.ghost_drawn_shares, Rounding.CEIL) - self.offset
            )
            data["base_debt"] = debt.base_debt
            data["premium_debt"] = debt.premium_debt
            data["total_debt"] = debt.total
        return data

    def dump(self, hub: bool = False, users: bool = False) -> None:
        logger.error("--- %s ---", self.label.capitalize())
        for name, value in self.snapshot().items():
            logger.error("spoke.%-26s %s", name, value)
        if hub:
            self.hub.dump()
        if users:
            for user in self.users.values():
                user.dump()
