"""
Core module - Dispatch, classification and result collection.

This package contains the components that execute a fuzzing run:
the rate gate, the HTTP transport, the worker pool and the result sink.
The wiring of a complete run lives in ``pathfuzz.core.engine``.
"""

from .context import RunContext, RunStats
from .matcher import DEFAULT_STATUS_CODES, MatchDecision, Matcher
from .models import ExportRecord, Outcome, ProbeResult
from .rate_limiter import RateLimiter, RetryPolicy
from .scheduler import Scheduler
from .sink import ResultSink
from .transport import HttpResponse, HttpTransport


__all__ = [
    # Run state
    "RunContext",
    "RunStats",
    # Results
    "ProbeResult",
    "ExportRecord",
    "Outcome",
    # Classification
    "Matcher",
    "MatchDecision",
    "DEFAULT_STATUS_CODES",
    # Dispatch
    "Scheduler",
    "RateLimiter",
    "RetryPolicy",
    "HttpTransport",
    "HttpResponse",
    # Collection
    "ResultSink",
]
