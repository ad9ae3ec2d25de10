from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(debug: bool = False, use_json: bool = False) -> None:
    """
    Configure structlog for the CLI.
    - console renderer by default, JSON lines when use_json is set
    - written to stderr so generated output on stdout stays clean
    """
    processors: list[structlog.types.Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if use_json:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
