from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_LEVEL = "WARNING"

_LOGGING_CONFIGURED = False


def setup_logging(
    filename: str | Path | None = None,
    level: str | None = None,
    *,
    force: bool = False,
) -> structlog.BoundLogger:
    """Set up structured logging for the concat_tree module.

    Logs never go to stdout, which is reserved for the concatenated stream.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Name of the minimum level to emit (e.g. "DEBUG"). Defaults to WARNING.
        force: Reconfigure even if logging was already set up (used once the CLI
            knows the requested log file and level).

    Returns:
        A structlog logger instance configured for the concat_tree module.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if force or not _LOGGING_CONFIGURED:
        numeric_level = logging.getLevelName((level or DEFAULT_LEVEL).upper())
        if not isinstance(numeric_level, int):
            numeric_level = logging.WARNING

        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=numeric_level,
            handlers=handlers,
            format="%(message)s",
            force=True,
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("concat_tree")


logger = setup_logging()
