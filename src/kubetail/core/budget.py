"""
Processing budget shared across concurrent delivery callbacks.
"""

import threading
from enum import Enum

DEFAULT_MESSAGE_LIMIT = 1_000_000


class BudgetOutcome(str, Enum):
    """Result of consuming one slot of the budget."""

    WITHIN = "within"
    # This message is the one that reached the limit
    EXHAUSTED = "exhausted"
    # The limit was already reached by an earlier message
    OVER = "over"


class ProcessingBudget:
    """
    Lock-guarded message counter.

    The lock covers only the increment-and-compare, so exactly one
    caller ever sees EXHAUSTED.
    """

    def __init__(self, limit: int = DEFAULT_MESSAGE_LIMIT) -> None:
        if limit <= 0:
            raise ValueError("Budget limit must be positive")
        self.limit = limit
        self.count = 0
        self._lock = threading.Lock()

    def consume(self) -> BudgetOutcome:
        """Count one inbound message and report where the budget stands."""
        with self._lock:
            self.count += 1
            count = self.count

        if count < self.limit:
            return BudgetOutcome.WITHIN
        if count == self.limit:
            return BudgetOutcome.EXHAUSTED
        return BudgetOutcome.OVER

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit
