"""
Matcher - Classifies probe results.

Acceptance is exactly ``status_code in status_codes``. Body-length
anomalies, reflected payloads and error signatures are reported as
separate signals and never change acceptance.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

import structlog

from .models import ProbeResult

DEFAULT_STATUS_CODES: FrozenSet[int] = frozenset({200, 301, 302, 401, 403, 405, 500})

ERROR_PATTERNS = (
    "internal server error",
    "exception",
    "traceback",
    "fatal",
    "stack trace",
    "syntax error",
    "sql error",
    "not allowed",
    "access denied",
    "unhandled",
)

_ERROR_RE = re.compile("|".join(re.escape(p) for p in ERROR_PATTERNS))


@dataclass(frozen=True)
class MatchDecision:
    """Derived classification of one ProbeResult"""
    accepted: bool
    anomalous: bool = False
    reflected: bool = False
    error_detected: bool = False

    @property
    def reportable(self) -> bool:
        return self.accepted or self.anomalous


class Matcher:
    """
    Status-code matcher with an auxiliary length-anomaly signal.

    Example:
        >>> matcher = Matcher(status_codes={200})
        >>> matcher.classify(result)
        True
    """

    def __init__(
        self,
        status_codes: Optional[Iterable[int]] = None,
        anomaly_threshold: Optional[float] = None,
        baseline_length: Optional[int] = None,
    ):
        """
        Initialize the matcher.

        Args:
            status_codes: Accepted status codes (defaults to DEFAULT_STATUS_CODES)
            anomaly_threshold: Relative body-length deviation that counts as
                anomalous, e.g. 0.2 for 20% (None = disabled)
            baseline_length: Reference body length for anomaly detection
        """
        self.status_codes = frozenset(
            DEFAULT_STATUS_CODES if status_codes is None else status_codes
        )
        self.anomaly_threshold = anomaly_threshold
        self.baseline_length = baseline_length
        self.logger = structlog.get_logger(__name__)

    def set_baseline(self, length: int):
        self.baseline_length = length
        self.logger.info(
            "anomaly_baseline_set",
            baseline_length=length,
            threshold=self.anomaly_threshold,
        )

    def classify(self, result: ProbeResult) -> bool:
        """Pure acceptance rule"""
        return result.ok and result.status_code in self.status_codes

    def is_anomalous(self, result: ProbeResult) -> bool:
        if (
            not result.ok
            or self.anomaly_threshold is None
            or self.baseline_length is None
            or result.body_length is None
        ):
            return False
        reference = max(self.baseline_length, 1)
        deviation = abs(result.body_length - self.baseline_length) / reference
        return deviation > self.anomaly_threshold

    def evaluate(self, result: ProbeResult) -> MatchDecision:
        """Classify and compute the auxiliary signals"""
        if not result.ok:
            return MatchDecision(accepted=False)

        body = (result.body or "").lower()
        tag = result.candidate.payload_tag
        return MatchDecision(
            accepted=self.classify(result),
            anomalous=self.is_anomalous(result),
            reflected=bool(tag) and tag.lower() in body,
            error_detected=bool(body) and _ERROR_RE.search(body) is not None,
        )
