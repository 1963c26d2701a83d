"""structlog configuration for the cohe CLI."""

import logging
import sys

import structlog


_configured = False


def setup_logging(log_level: str = "WARNING", *, force: bool = False) -> None:
    """Configure structlog once per process.

    Log events go to stderr so that command output on stdout (including
    ``auto rotate --json``) stays machine readable.

    Args:
        log_level: Minimum level name, e.g. "INFO"
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _configured = True
