"""Runtime invariant checks run after every hub, spoke and user mutation"""
import logging
from typing import Iterable, Optional

from .errors import AggregationError, BoundsViolationError, DebtIncreaseError
from .fixed_point import Rounding
from .state.protocol_config import ProtocolConfig

logger = logging.getLogger(__name__)

AGGREGATED_FIELDS = (
    "base_drawn_shares",
    "ghost_drawn_shares",
    "offset",
    "unrealised_premium",
    "supplied_shares",
)


def _out_of_bounds(fields, max_uint: int):
    return [name for name, value in fields.items() if value < 0 or value > max_uint]


def _fail(entity, config: ProtocolConfig) -> None:
    if config.dump_on_failure:
        entity.dump(True)


def check_bounds(entity, config: Optional[ProtocolConfig] = None) -> None:
    """Every tracked field of entity must lie in [0, max_uint]

    Raw fields are checked before derived aggregates since the derived ones
    cannot be computed from negative inputs.
    """
    config = config or entity.config
    failed = _out_of_bounds(entity.bound_fields(), config.max_uint)
    if not failed and hasattr(entity, "derived_bound_fields"):
        failed = _out_of_bounds(entity.derived_bound_fields(), config.max_uint)
    if failed:
        _fail(entity, config)
        raise BoundsViolationError(entity.label, failed, entity.snapshot())


def check_total_debt(total_debt_before: int, entity, config: Optional[ProtocolConfig] = None) -> int:
    """Total debt (rounded up) may not grow by more than the tolerance

    Returns the change in total debt, negative for a decrease.
    """
    config = config or entity.config
    total_debt_after = entity.get_total_debt(Rounding.CEIL)
    diff = total_debt_after - total_debt_before
    if diff > config.debt_tolerance:
        _fail(entity, config)
        logger.error(
            "totalDebtAfter > totalDebtBefore, diff %s %s %s",
            total_debt_after, total_debt_before, diff,
        )
        raise DebtIncreaseError(entity.label, total_debt_before, total_debt_after, entity.snapshot())
    return diff


def check_aggregates(parent, children: Iterable, fields=AGGREGATED_FIELDS) -> None:
    """Each parent field must equal the sum over its children"""
    children = list(children)
    for field in fields:
        expected = sum(getattr(child, field) for child in children)
        actual = getattr(parent, field)
        if expected != actual:
            raise AggregationError(parent.label, field, expected, actual, parent.snapshot())


def check_hub(hub) -> None:
    """Aggregation checks over the whole hub, spoke and user tree"""
    check_aggregates(hub, hub.spokes.values())
    for spoke_id, ledger in hub.ledgers.items():
        check_aggregates(ledger, ledger.users.values())
        record = hub.spokes.get(spoke_id)
        if record is None:
            continue
        for field in AGGREGATED_FIELDS:
            expected = getattr(ledger, field)
            actual = getattr(record, field)
            if expected != actual:
                raise AggregationError(record.label, field, expected, actual, record.snapshot())
