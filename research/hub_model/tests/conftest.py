import pytest

from hub_model.src.constants import WAD
from hub_model.src.instructions.interest_index import FixedIndex
from hub_model.src.instructions.risk_premium import ConstantRiskPremium
from hub_model.src.state.clock import Clock
from hub_model.src.state.liquidity_hub import LiquidityHub
from hub_model.src.state.spoke import Spoke
from hub_model.src.state.user import User

RISK_PREMIUM = 1000  # 10%


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def hub(clock):
    return LiquidityHub(
        clock=clock,
        index_source=FixedIndex(),
        risk_premium_sampler=ConstantRiskPremium(RISK_PREMIUM),
    )


@pytest.fixture
def spoke(hub):
    return Spoke(hub)


@pytest.fixture
def lender(hub):
    """User with 1000 units supplied on its own spoke"""
    user = User(spoke=Spoke(hub))
    user.supply(1000 * WAD)
    return user


@pytest.fixture
def borrower(hub, lender):
    """User with 400 units borrowed on a second spoke, against the lender's liquidity"""
    user = User(spoke=Spoke(hub))
    user.borrow(400 * WAD)
    return user
