"""
Probe result data structures.

A ProbeResult is created exactly once per candidate that completes,
exhausts its retries or is cancelled before dispatch. Only its
ExportRecord projection outlives the worker that produced it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..sources.candidate import Candidate


class Outcome(Enum):
    """Final state of a probe"""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    CANCELLED = "cancelled"


@dataclass
class ProbeResult:
    """Outcome of one candidate, including all retries"""
    candidate: Candidate
    outcome: Outcome
    attempt_count: int
    elapsed: float  # seconds, first attempt to final answer
    status_code: Optional[int] = None
    body_length: Optional[int] = None
    content_type: Optional[str] = None
    error: Optional[str] = None
    body: Optional[str] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def errored(self) -> bool:
        return self.outcome in (Outcome.TIMEOUT, Outcome.NETWORK_ERROR)


@dataclass(frozen=True)
class ExportRecord:
    """Flat, serializer-friendly projection of a recorded ProbeResult"""
    url: str
    status: Optional[int]
    length: Optional[int]
    elapsed: float
    origin: str
    outcome: str
    attempts: int
    depth: int = 0
    payload: Optional[str] = None
    accepted: bool = False
    anomalous: bool = False
    reflected: bool = False
    error_detected: bool = False
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: ProbeResult, decision) -> "ExportRecord":
        return cls(
            url=result.candidate.target_url,
            status=result.status_code,
            length=result.body_length,
            elapsed=round(result.elapsed, 4),
            origin=result.candidate.origin.value,
            outcome=result.outcome.value,
            attempts=result.attempt_count,
            depth=result.candidate.depth,
            payload=result.candidate.payload_tag,
            accepted=decision.accepted,
            anomalous=decision.anomalous,
            reflected=decision.reflected,
            error_detected=decision.error_detected,
            error=result.error,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/CSV serialization"""
        return {
            "url": self.url,
            "status": self.status,
            "length": self.length,
            "elapsed": self.elapsed,
            "origin": self.origin,
            "outcome": self.outcome,
            "attempts": self.attempts,
            "depth": self.depth,
            "payload": self.payload,
            "accepted": self.accepted,
            "anomalous": self.anomalous,
            "reflected": self.reflected,
            "error_detected": self.error_detected,
            "error": self.error,
        }


EXPORT_FIELDS = tuple(ExportRecord.__dataclass_fields__)
