"""
Structured logging setup for PathFuzz.

Modules log through ``structlog.get_logger(__name__)`` with snake_case
event names. The CLI calls :func:`configure_logging` once; log lines go
to stderr so stdout only carries match lines and the summary.
"""

import logging
import sys
from typing import Union

import structlog

_LevelT = Union[int, str]


def configure_logging(level: _LevelT = "WARNING", json_logs: bool = False) -> None:
    """
    (Re)configure structlog for the whole process.

    Args:
        level: Numeric or textual level (e.g. ``"DEBUG"``)
        json_logs: Render JSON lines instead of the console format
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
