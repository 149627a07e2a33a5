"""Shared release-on-zero counter.

A Transaction and every Result or Statement it spawns hold one count each.
They may finish in any order; the release action (returning the pooled
handle) runs exactly once, when the last of them lets go.
"""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING

import structlog

from pgtxn.core.exceptions import RefCountError

if TYPE_CHECKING:
    from collections.abc import Callable


class RefCount:
    """Counter with a one-shot release action fired when it reaches zero."""

    def __init__(self, release: Callable[[], None], count: int = 1) -> None:
        if count < 1:
            msg = f"Initial count must be at least 1, got {count}"
            raise ValueError(msg)
        self._release = release
        self._count = count
        self._released = False
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    @property
    def released(self) -> bool:
        return self._released

    def increment(self) -> None:
        with self._lock:
            if self._released:
                msg = "Cannot increment a reference count that has been released"
                raise RefCountError(msg)
            self._count += 1

    def decrement(self) -> None:
        with self._lock:
            if self._count == 0:
                msg = "Reference count decremented below zero"
                raise RefCountError(msg)
            self._count -= 1
            fire = self._count == 0 and not self._released
            if fire:
                self._released = True

        if fire:
            # Holders dropped during interpreter shutdown cannot log.
            if not sys.is_finalizing():
                structlog.get_logger().debug("reference count reached zero, releasing")
            self._release()

    def lease(self) -> Lease:
        """Increment and return a Lease owning the new count."""
        self.increment()
        return Lease(self)


class Lease:
    """Ownership of exactly one count on a RefCount.

    release() is idempotent, so every exit path of the owner may call it.
    """

    def __init__(self, refcount: RefCount) -> None:
        self._refcount = refcount
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._refcount.decrement()
