"""Custom errors for the hub/spoke accounting model"""
from typing import Any, Dict, Optional, Sequence


class ProtocolError(Exception):
    """Base error class for protocol errors"""
    pass


class ArithmeticError(ProtocolError):
    """Error for arithmetic overflow/underflow"""
    pass


class ZeroSharesError(ProtocolError):
    """Error for a supply that resolves to zero shares"""
    pass


class OverRestorationError(ProtocolError):
    """Error for a repayment restoring more debt than is outstanding"""

    def __init__(self, kind: str, restored: int, outstanding: int,
                 snapshot: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.restored = restored
        self.outstanding = outstanding
        self.snapshot = snapshot or {}
        super().__init__(
            f"{kind}DebtRestored exceeds {kind}Debt: "
            f"{restored} > {outstanding} (diff {restored - outstanding})"
        )


class InvariantViolation(ProtocolError):
    """Base error for accounting invariant failures

    Carries the label of the offending entity and a snapshot of its fields
    taken when the check failed.
    """

    def __init__(self, message: str, entity: str, snapshot: Dict[str, Any]):
        self.entity = entity
        self.snapshot = snapshot
        super().__init__(f"{entity}: {message}")


class BoundsViolationError(InvariantViolation):
    """Error for a tracked field outside [0, MAX_UINT]"""

    def __init__(self, entity: str, fields: Sequence[str], snapshot: Dict[str, Any]):
        self.fields = list(fields)
        super().__init__(f"underflow/overflow in {', '.join(self.fields)}", entity, snapshot)


class DebtIncreaseError(InvariantViolation):
    """Error for total debt growing on a debt-neutral operation"""

    def __init__(self, entity: str, before: int, after: int, snapshot: Dict[str, Any]):
        self.before = before
        self.after = after
        super().__init__(
            f"totalDebt increased: {before} -> {after} (diff {after - before})",
            entity,
            snapshot,
        )


class AggregationError(InvariantViolation):
    """Error for a parent field that is not the sum of its children"""

    def __init__(self, entity: str, field: str, expected: int, actual: int,
                 snapshot: Dict[str, Any]):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{field} is {actual} but children sum to {expected}", entity, snapshot
        )
