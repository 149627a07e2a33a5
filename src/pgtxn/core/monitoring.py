"""Sentry integration for error tracking and performance monitoring.

Sentry is initialized in the CLI entry point after logging setup, and
only when a DSN is configured.
"""

from __future__ import annotations

import os

import sentry_sdk

from pgtxn.__about__ import __version__


def setup_sentry(dsn: str | None = None, environment: str = "local") -> bool:
    """Initialize Sentry if a DSN is given or SENTRY_DSN is set.

    Returns True when Sentry was initialized.
    """
    dsn = dsn or os.environ.get("SENTRY_DSN")
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.03,
        environment=environment,
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
    return True
