"""Debt split shared by every accounting level"""
from typing import NamedTuple


class Debt(NamedTuple):
    base_debt: int
    premium_debt: int

    @property
    def total(self) -> int:
        return self.base_debt + self.premium_debt
