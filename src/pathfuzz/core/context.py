"""
Run context - Shared, explicitly synchronized state for one run.

Every component receives the same RunContext instead of reaching for
module-level globals. The cancellation flag has a single writer (the run
controller) and many readers (the workers).
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog


@dataclass
class RunStats:
    """Counters updated by the scheduler"""
    dispatched: int = 0
    attempts: int = 0
    retries: int = 0
    in_flight: int = 0
    peak_in_flight: int = 0
    accepted: int = 0
    anomalous: int = 0
    errored: int = 0
    cancelled: int = 0
    worker_errors: int = 0
    by_outcome: Counter = field(default_factory=Counter)


class RunContext:
    """
    Cancellation token and statistics shared by all workers.

    Example:
        >>> ctx = RunContext()
        >>> ctx.cancel("operator_interrupt")
        >>> ctx.cancelled
        True
    """

    def __init__(self):
        self._cancelled = False
        self.cancel_reason: Optional[str] = None
        self.stats = RunStats()
        self.logger = structlog.get_logger(__name__)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled"):
        """Stop new dispatches; in-flight requests are left to finish"""
        if self._cancelled:
            return
        self._cancelled = True
        self.cancel_reason = reason
        self.logger.warning("run_cancelled", reason=reason)

    def request_started(self):
        self.stats.attempts += 1
        self.stats.in_flight += 1
        self.stats.peak_in_flight = max(self.stats.peak_in_flight, self.stats.in_flight)

    def request_finished(self):
        self.stats.in_flight -= 1

    def get_stats(self) -> Dict[str, Any]:
        return {
            "dispatched": self.stats.dispatched,
            "attempts": self.stats.attempts,
            "retries": self.stats.retries,
            "peak_in_flight": self.stats.peak_in_flight,
            "accepted": self.stats.accepted,
            "anomalous": self.stats.anomalous,
            "errored": self.stats.errored,
            "cancelled": self.stats.cancelled,
            "worker_errors": self.stats.worker_errors,
            "by_outcome": dict(self.stats.by_outcome),
            "cancel_reason": self.cancel_reason,
        }
