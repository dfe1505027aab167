"""
Error taxonomy for PathFuzz.

Only setup failures (configuration, OpenAPI when it is the sole origin)
terminate a run early. Per-request failures are raised by the transport
and converted into ProbeResult outcomes by the scheduler.
"""

from typing import Any, Dict, Optional


class PathFuzzError(Exception):
    """Base exception for all PathFuzz errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(PathFuzzError):
    """Raised before any dispatch when the configuration is unusable"""
    pass


class SpecError(PathFuzzError):
    """Raised when an OpenAPI document lacks the fields we need"""
    pass


class ExportError(PathFuzzError):
    """Raised when results cannot be written to disk"""
    pass


class AnalyzeError(PathFuzzError):
    """Raised when an exported file cannot be analyzed"""
    pass


class TransportError(PathFuzzError):
    """Base exception for a failed network attempt"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, {"url": url} if url else None)
        self.url = url


class NetworkError(TransportError):
    """
    Connection refused/reset, DNS failure and similar.

    ``transient`` is False for failures a retry cannot fix, such as an
    invalid URL; the scheduler records those after one attempt.
    """

    def __init__(self, message: str, url: Optional[str] = None, transient: bool = True):
        super().__init__(message, url)
        self.transient = transient


class RequestTimeout(TransportError):
    """The per-request deadline expired"""
    pass
