from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def setup_logging(
    filename: str | Path | None = None,
    level: int = logging.INFO,
    *,
    force: bool = False,
) -> structlog.BoundLogger:
    """Set up structured logging for the codedigest package.

    The first call wins unless ``force`` is set; the CLI forces a second
    configuration once it knows the requested verbosity and log file.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum stdlib logging level that is emitted.
        force: Reconfigure even if logging was already set up.

    Returns:
        A structlog logger instance configured for the codedigest package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if force or not _LOGGING_CONFIGURED:
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format="%(message)s",
            force=force,
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("codedigest")


def verbosity_level(*, quiet: bool, ultra_quiet: bool) -> int:
    """Map the CLI quiet flags to a logging level.

    Returns:
        int: ERROR for ultra-quiet, WARNING for quiet, INFO otherwise.
    """
    if ultra_quiet:
        return logging.ERROR
    if quiet:
        return logging.WARNING
    return logging.INFO


logger = setup_logging()
