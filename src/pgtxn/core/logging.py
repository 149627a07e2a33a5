"""structlog setup.

Everything is logged to stderr; stdout carries only decoded rows. With
json_logs each event is one JSON object per line, for log collectors.
Transaction context (isolation, profile) is bound through contextvars by
the query command and shows up on every event logged inside it.
"""

import logging
import sys
from typing import Any

import structlog


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger; CliRunner replaces it between runs.
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Configure structlog: DEBUG when verbose, INFO otherwise."""
    renderer: Any
    if json_logs:
        renderer = structlog.processors.JSONRenderer(default=str)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(**context: Any) -> Any:
    """Logger bound with context. Call inside functions, after setup_logging()."""
    return structlog.get_logger(**context)
