"""Spoke borrow / repay / risk premium algorithms"""
import pytest

from hub_model.src.constants import RAY, REPAY_ALL, WAD
from hub_model.src.errors import BoundsViolationError, OverRestorationError
from hub_model.src.fixed_point import Rounding, mul_div, percent_mul
from hub_model.src.instructions.interest_index import FixedIndex
from hub_model.src.instructions.risk_premium import ConstantRiskPremium, SequenceRiskPremium
from hub_model.src.invariants import check_bounds, check_hub
from hub_model.src.state.debt import Debt
from hub_model.src.state.spoke import Spoke
from hub_model.src.state.user import User

from conftest import RISK_PREMIUM

GROWTH = RAY * 11 // 10


def accrue_once(hub, clock, index=GROWTH):
    hub.index_source = FixedIndex(index)
    clock.skip()
    hub.accrue()


def test_supply_registers_user_and_mirrors_shares(hub, spoke):
    user = User()
    shares = spoke.supply(1000 * WAD, user)

    assert shares == 1000 * WAD
    assert spoke.users[user.id] is user
    assert user.spoke is spoke and user.hub is hub
    assert user.supplied_shares == spoke.supplied_shares == hub.supplied_shares == shares
    assert hub.get_spoke(spoke).supplied_shares == shares
    # supply resamples the rate but there is no debt to weight
    assert user.risk_premium == RISK_PREMIUM
    assert user.ghost_drawn_shares == 0
    check_hub(hub)


def test_get_user_by_id_creates_user_once(spoke):
    spoke.supply(10 * WAD, 42)
    user = spoke.get_user(42)
    assert user.id == 42
    assert spoke.get_user(42) is user
    assert user.supplied_shares == 10 * WAD


def test_withdraw(hub, spoke):
    user = User(spoke=spoke)
    user.supply(1000 * WAD)
    shares = spoke.withdraw(250 * WAD, user)
    assert shares == 250 * WAD
    assert user.supplied_shares == spoke.supplied_shares == 750 * WAD
    assert hub.available_liquidity == 750 * WAD
    check_hub(hub)


def test_borrow_sets_ghost_and_offset(hub, borrower):
    spoke = borrower.spoke
    assert borrower.base_drawn_shares == 400 * WAD
    assert borrower.risk_premium == RISK_PREMIUM
    assert borrower.ghost_drawn_shares == percent_mul(400 * WAD, RISK_PREMIUM) == 40 * WAD
    assert borrower.offset == hub.to_drawn_assets(40 * WAD, Rounding.CEIL) == 40 * WAD
    assert borrower.unrealised_premium == 0

    assert (spoke.base_drawn_shares, spoke.ghost_drawn_shares, spoke.offset) == (400 * WAD, 40 * WAD, 40 * WAD)
    assert hub.available_liquidity == 600 * WAD
    assert hub.ghost_drawn_shares == 40 * WAD
    assert borrower.get_debt() == Debt(400 * WAD, 0)
    check_hub(hub)


def test_borrow_beyond_liquidity_violates_bounds(hub, lender):
    spoke = Spoke(hub)
    user = User(spoke=spoke)
    levels = (hub, hub.get_spoke(spoke), spoke, user)
    before = [level.bound_fields() for level in levels]

    with pytest.raises(BoundsViolationError) as exc:
        user.borrow(1001 * WAD)

    assert exc.value.entity == "hub"
    assert "available_liquidity" in exc.value.fields
    # rolled back, draw included
    assert [level.bound_fields() for level in levels] == before
    check_hub(hub)


def test_borrow_again_crystallises_accrued_premium(hub, clock, borrower):
    accrue_once(hub, clock)

    borrower.borrow(100 * WAD)

    # valued at the rate left by the new draw
    accrued = hub.to_drawn_assets(40 * WAD, Rounding.CEIL) - 40 * WAD
    assert accrued > 0
    assert borrower.unrealised_premium == accrued
    assert borrower.spoke.unrealised_premium == accrued
    assert hub.unrealised_premium == accrued
    assert borrower.ghost_drawn_shares == percent_mul(borrower.base_drawn_shares, RISK_PREMIUM)
    check_hub(hub)


def test_repay_goes_to_premium_first(hub, clock, borrower):
    accrue_once(hub, clock)
    base_debt, premium_debt = borrower.get_debt()
    assert premium_debt > WAD
    available = hub.available_liquidity

    restored_shares = borrower.repay(WAD)

    assert restored_shares == 0
    assert borrower.base_drawn_shares == 400 * WAD
    assert borrower.get_debt() == Debt(base_debt, premium_debt - WAD)
    assert borrower.unrealised_premium == premium_debt - WAD
    assert hub.available_liquidity == available + WAD
    check_hub(hub)


def test_repay_past_premium_reduces_base(hub, clock, borrower):
    accrue_once(hub, clock)
    base_debt, premium_debt = borrower.get_debt()
    expected_shares = mul_div(100 * WAD, hub.total_drawn_shares(), hub.total_drawn_assets(), Rounding.CEIL)

    restored_shares = borrower.repay(premium_debt + 100 * WAD)

    assert restored_shares == expected_shares
    assert borrower.base_drawn_shares == 400 * WAD - expected_shares
    assert borrower.unrealised_premium == 0
    new_base_debt, new_premium_debt = borrower.get_debt()
    assert new_premium_debt == 0
    assert abs(new_base_debt - (base_debt - 100 * WAD)) <= 3
    check_hub(hub)


def test_repay_all_clears_user_debt(hub, clock, borrower):
    accrue_once(hub, clock)
    debt_before = hub.get_total_debt(Rounding.CEIL)

    borrower.repay(REPAY_ALL)

    assert borrower.get_debt() == Debt(0, 0)
    assert borrower.base_drawn_shares == 0
    assert borrower.ghost_drawn_shares == borrower.offset == borrower.unrealised_premium == 0
    assert hub.base_drawn_shares == 0
    assert hub.get_total_debt(Rounding.CEIL) < debt_before
    check_hub(hub)


def test_overpaying_is_an_over_restoration(hub, clock, borrower):
    accrue_once(hub, clock)
    total_debt = borrower.get_total_debt()
    available = hub.available_liquidity

    with pytest.raises(OverRestorationError) as exc:
        borrower.repay(total_debt + 10 * WAD)

    assert exc.value.kind == "base"
    assert exc.value.restored - exc.value.outstanding == 10 * WAD
    # rejected before anything moved
    assert borrower.base_drawn_shares == 400 * WAD
    assert hub.available_liquidity == available


@pytest.mark.parametrize("amount, expected", [
    (5, (0, 5)),
    (10, (0, 10)),
    (50, (40, 10)),
    (110, (100, 10)),
    (REPAY_ALL, (100, 10)),
])
def test_deduct_from_premium(spoke, amount, expected):
    user = spoke.get_user(User())
    assert spoke.deduct_from_premium(100, 10, amount, user) == expected


def test_deduct_from_premium_rejects_excess(spoke):
    user = spoke.get_user(User())
    with pytest.raises(OverRestorationError) as exc:
        spoke.deduct_from_premium(100, 10, 111, user)
    assert (exc.value.kind, exc.value.restored, exc.value.outstanding) == ("base", 101, 100)


def test_update_user_risk_premium(hub, clock, borrower):
    accrue_once(hub, clock)
    accrued = hub.to_drawn_assets(40 * WAD, Rounding.CEIL) - 40 * WAD
    hub.risk_premium_sampler = ConstantRiskPremium(2 * RISK_PREMIUM)

    borrower.spoke.update_user_risk_premium(borrower)

    assert borrower.risk_premium == 2 * RISK_PREMIUM
    assert borrower.base_drawn_shares == 400 * WAD
    assert borrower.ghost_drawn_shares == 80 * WAD
    assert borrower.offset == hub.to_drawn_assets(80 * WAD, Rounding.CEIL)
    assert borrower.unrealised_premium == accrued
    assert borrower.get_debt().premium_debt >= accrued - 1
    check_hub(hub)


def test_invalid_sampled_risk_premium(hub, lender):
    user = User(spoke=Spoke(hub))
    hub.risk_premium_sampler = ConstantRiskPremium(hub.config.max_risk_premium + 1)
    with pytest.raises(ValueError):
        user.borrow(WAD)
    assert user.base_drawn_shares == hub.base_drawn_shares == 0
    assert hub.available_liquidity == 1000 * WAD
    check_hub(hub)


def test_spoke_debt_matches_user_sum(hub, clock, lender):
    spoke = Spoke(hub)
    first, second = User(spoke=spoke), User(spoke=spoke)
    first.borrow(100 * WAD)
    second.borrow(50 * WAD)
    accrue_once(hub, clock)

    spoke_debt = spoke.get_debt()
    assert spoke.get_user_debt(first).base_debt + spoke.get_user_debt(second).base_debt <= spoke_debt.base_debt
    assert spoke.get_total_debt() == spoke_debt.total
    assert spoke.get_user_total_debt(first.id) == first.get_total_debt()
    check_hub(hub)


def test_snapshot_and_label(hub, spoke):
    spoke.supply(WAD, User())
    snapshot = spoke.snapshot()
    assert snapshot["id"] == spoke.id
    assert snapshot["supplied_shares"] == WAD
    assert snapshot["total_debt"] == 0
    assert spoke.label == f"spoke {spoke.id}"
    assert hub.get_spoke(spoke).label == f"hub record of spoke {spoke.id}"


def test_reborrow_at_uneven_rate_stays_within_tolerance(hub, clock):
    hub.risk_premium_sampler = SequenceRiskPremium([0, 8793, 9633, 8793])
    User(spoke=Spoke(hub)).supply(10**6 * WAD)
    spoke = Spoke(hub)
    first, second = User(spoke=spoke), User(spoke=spoke)
    first.borrow(9046 * WAD // 100)
    second.borrow(781 * WAD // 1000)
    old_ghost_drawn_shares = first.ghost_drawn_shares
    assert first.offset == old_ghost_drawn_shares

    accrue_once(hub, clock, 10265585852 * RAY // 10**10)
    debt_before = spoke.get_total_debt(Rounding.CEIL)
    first.borrow(63759 * WAD // 1000)

    assert first.risk_premium == 8793
    assert first.unrealised_premium == (
        hub.to_drawn_assets(old_ghost_drawn_shares, Rounding.CEIL) - old_ghost_drawn_shares
    )
    assert spoke.get_total_debt(Rounding.CEIL) > debt_before
    check_hub(hub)


def test_fresh_position_premium_reads(hub, clock, borrower):
    accrue_once(hub, clock)
    spoke = Spoke(hub)
    user = User(spoke=spoke)
    user.borrow(123 * WAD + 456)

    assert spoke.get_user_debt(user, Rounding.CEIL).premium_debt == 0
    assert -1 <= spoke.get_user_debt(user).premium_debt <= 0
    check_bounds(hub)


def test_auto_user_id_skips_explicit_ids(spoke):
    explicit_id = User().id + 1
    spoke.supply(10 * WAD, explicit_id)

    user = User(spoke=spoke)
    assert user.id != explicit_id
    assert user.spoke is spoke
    user.supply(WAD)

    assert spoke.get_user(explicit_id).supplied_shares == 10 * WAD
    assert user.supplied_shares == WAD
    check_hub(spoke.hub)


def test_different_user_with_taken_id_rejected(spoke):
    first = User(spoke=spoke)
    with pytest.raises(ValueError):
        User(user_id=first.id, spoke=spoke)
    with pytest.raises(ValueError):
        spoke.supply(WAD, User(user_id=first.id))
    assert spoke.users[first.id] is first
    assert spoke.supplied_shares == 0
