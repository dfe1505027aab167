"""
Result Sink - Append-only collector of reportable probe results.

Records are kept in completion order. Appends from any worker are
serialized by one lock; observers (console output) are notified outside
of it.
"""

import threading
from collections import Counter
from typing import Any, Callable, Dict, List, Tuple

import structlog

from .matcher import MatchDecision
from .models import ExportRecord, ProbeResult

Observer = Callable[[ExportRecord], None]


class ResultSink:
    """
    Thread-safe, order-stable result collector.

    Accepted and anomalous results are always recorded; errored results
    (timeouts, network errors) are recorded too so they show up in the
    summary. Rejected successes are only counted.

    Example:
        >>> sink = ResultSink()
        >>> sink.record(result, decision)
        >>> sink.accepted()
    """

    def __init__(self):
        self._records: List[ExportRecord] = []
        self._lock = threading.Lock()
        self._rejected = 0
        self.observers: List[Observer] = []
        self.logger = structlog.get_logger(__name__)

    def subscribe(self, observer: Observer):
        """
        Subscribe to newly recorded results (Observer pattern).

        Args:
            observer: Callback receiving each ExportRecord
        """
        self.observers.append(observer)
        self.logger.debug("observer_subscribed", observer=getattr(observer, "__name__", repr(observer)))

    def record(self, result: ProbeResult, decision: MatchDecision) -> bool:
        """
        Record a result if it is reportable or errored.

        Returns:
            True if a record was appended
        """
        if not (decision.reportable or result.errored):
            with self._lock:
                self._rejected += 1
            return False

        record = ExportRecord.from_result(result, decision)
        with self._lock:
            self._records.append(record)

        for observer in self.observers:
            try:
                observer(record)
            except Exception as e:
                self.logger.error("observer_error", error=str(e))
        return True

    def records(self) -> Tuple[ExportRecord, ...]:
        """Snapshot of every record in completion order"""
        with self._lock:
            return tuple(self._records)

    def accepted(self) -> List[ExportRecord]:
        return [r for r in self.records() if r.accepted]

    def errored(self) -> List[ExportRecord]:
        return [r for r in self.records() if r.outcome in ("timeout", "network_error")]

    def export_records(self, include_errors: bool = False) -> List[ExportRecord]:
        """Records for the external serializer, in completion order"""
        return [
            r for r in self.records()
            if r.accepted or r.anomalous or (include_errors and r.outcome != "success")
        ]

    def get_statistics(self) -> Dict[str, Any]:
        records = self.records()
        return {
            "recorded": len(records),
            "accepted": sum(1 for r in records if r.accepted),
            "anomalous": sum(1 for r in records if r.anomalous),
            "errored": sum(1 for r in records if r.outcome in ("timeout", "network_error")),
            "rejected": self._rejected,
            "by_status": dict(Counter(r.status for r in records if r.accepted)),
            "by_origin": dict(Counter(r.origin for r in records if r.accepted)),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"ResultSink(records={len(self)}, rejected={self._rejected})"
