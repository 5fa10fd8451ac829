"""Id allocation for spokes and users"""
from typing import Optional


class IdSequence:
    """Auto-assigned ids that never reuse one claimed explicitly"""

    def __init__(self, start: int = 1):
        self.next_id = start

    def claim(self, explicit_id: Optional[int] = None) -> int:
        claimed = self.next_id if explicit_id is None else explicit_id
        self.next_id = max(self.next_id, claimed + 1)
        return claimed
