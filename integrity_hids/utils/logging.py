"""structlog setup for the monitor: event logs on stderr, optionally mirrored to a rotating file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import structlog

LOG_FILE_NAME = "integrity_hids.log"


def _attach(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)


def setup_logging(
    debug: bool = False,
    log_dir: str | None = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
) -> None:
    """Route structlog events through the stdlib root logger.

    stdout is reserved for hash listings, summaries and reports, so events
    always go to stderr. With ``log_dir`` set they are also written to
    ``integrity_hids.log`` there. ``debug`` switches from JSON lines to the
    console renderer and lowers the level to DEBUG.
    """
    level = logging.DEBUG if debug else logging.INFO
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(level)
    # Called again once the configuration file has been read
    root.handlers.clear()
    _attach(root, logging.StreamHandler(sys.stderr), level)

    if not log_dir:
        return
    try:
        os.makedirs(log_dir, exist_ok=True)
        rotating = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        root.warning("Log directory %s unusable, logging to stderr only: %s", log_dir, e)
        return
    _attach(root, rotating, level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
