"""Logging setup for audiocat."""

import logging
import sys

import structlog


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for CLI use.

    Log lines go to stderr so they never mix with rich output on stdout.

    Args:
        verbose: Emit debug events when True, otherwise warnings and above.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
