"""Transactions over a handle borrowed from a connection pool.

A Transaction is Active while it holds its handle and becomes terminal
(committed or rolled back) once the handle is dropped. It shares a
RefCount with every Result and Statement it spawns; the pool's release
callback runs once, after the transaction and all of those have finished.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from pgtxn.core.exceptions import TransactionError
from pgtxn.core.models import IsolationLevel
from pgtxn.core.pooled import PooledResult, PooledStatement
from pgtxn.core.refcount import Lease, RefCount

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from types import TracebackType

    from pgtxn.core.pooled import Statement
    from pgtxn.core.result import Result

_TERMINATED = "The transaction has been committed or rolled back"

# Implicit rollbacks scheduled from __del__; held here so the event loop
# does not drop the task before it runs.
_pending_rollbacks: set[asyncio.Task[None]] = set()


@runtime_checkable
class Handle(Protocol):
    """Connection capability a Transaction drives."""

    async def query(self, sql: str) -> Result: ...

    async def prepare(self, sql: str) -> Statement: ...

    async def execute(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> Result: ...

    async def notify(self, channel: str, payload: str = "") -> Result: ...

    def quote_string(self, data: str) -> str: ...

    def quote_name(self, name: str) -> str: ...

    def is_alive(self) -> bool: ...

    def get_last_used_at(self) -> float: ...


class Transaction:
    """Active -> Committed | RolledBack wrapper around a pooled handle."""

    def __init__(
        self,
        handle: Handle,
        release: Callable[[], None],
        isolation: IsolationLevel | str = IsolationLevel.COMMITTED,
    ) -> None:
        try:
            self._isolation = IsolationLevel(isolation)
        except ValueError:
            msg = f"Isolation must be a valid transaction isolation level, got {isolation!r}"
            raise ValueError(msg) from None

        self._handle: Handle | None = handle
        self._refcount = RefCount(release)
        self._own = Lease(self._refcount)

    def __del__(self) -> None:
        handle = getattr(self, "_handle", None)
        if handle is None or sys.is_finalizing():
            return
        self._handle = None
        if handle.is_alive():
            _schedule_rollback(handle, self._own)
        else:
            self._own.release()

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._handle is None:
            return
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    # -- state --

    def is_alive(self) -> bool:
        return self._handle is not None and self._handle.is_alive()

    def is_active(self) -> bool:
        return self._handle is not None

    def get_isolation_level(self) -> IsolationLevel:
        return self._isolation

    def get_last_used_at(self) -> float:
        return self._require_handle().get_last_used_at()

    @property
    def refcount(self) -> RefCount:
        return self._refcount

    # -- dispatch --

    async def query(self, sql: str) -> PooledResult:
        handle = self._require_handle()
        lease = self._refcount.lease()
        try:
            result = await handle.query(sql)
        except BaseException:
            lease.release()
            raise
        return PooledResult(result, self._refcount, lease)

    async def execute(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> PooledResult:
        handle = self._require_handle()
        lease = self._refcount.lease()
        try:
            result = await handle.execute(sql, params)
        except BaseException:
            lease.release()
            raise
        return PooledResult(result, self._refcount, lease)

    async def prepare(self, sql: str) -> PooledStatement:
        handle = self._require_handle()
        lease = self._refcount.lease()
        try:
            statement = await handle.prepare(sql)
        except BaseException:
            lease.release()
            raise
        return PooledStatement(statement, self._refcount, lease)

    async def notify(self, channel: str, payload: str = "") -> Result:
        """Send a notification; not tied to the transaction's lifetime."""
        return await self._require_handle().notify(channel, payload)

    # -- termination --

    async def commit(self) -> None:
        """Commit the transaction and make it inactive."""
        await self._finish("COMMIT")

    async def rollback(self) -> None:
        """Roll back the transaction and make it inactive."""
        await self._finish("ROLLBACK")

    async def close(self) -> None:
        """Commit if still active, otherwise do nothing."""
        if self._handle is not None:
            await self.commit()

    # -- savepoints --

    async def create_savepoint(self, identifier: str) -> None:
        await self._run(f"SAVEPOINT {self.quote_name(identifier)}")

    async def rollback_to(self, identifier: str) -> None:
        await self._run(f"ROLLBACK TO {self.quote_name(identifier)}")

    async def release_savepoint(self, identifier: str) -> None:
        await self._run(f"RELEASE SAVEPOINT {self.quote_name(identifier)}")

    # -- quoting --

    def quote_string(self, data: str) -> str:
        return self._require_handle().quote_string(data)

    def quote_name(self, name: str) -> str:
        return self._require_handle().quote_name(name)

    # -- internals --

    def _require_handle(self) -> Handle:
        if self._handle is None:
            raise TransactionError(_TERMINATED)
        return self._handle

    async def _run(self, sql: str) -> None:
        result = await self.query(sql)
        await result.aclose()

    async def _finish(self, sql: str) -> None:
        handle = self._require_handle()
        self._handle = None
        log = structlog.get_logger()
        log.debug("ending transaction", statement=sql, isolation=self._isolation.value)
        try:
            result = await handle.query(sql)
            await result.aclose()
        finally:
            self._own.release()


async def begin_transaction(
    handle: Handle,
    release: Callable[[], None],
    isolation: IsolationLevel | str = IsolationLevel.COMMITTED,
) -> Transaction:
    """Start a transaction on a borrowed handle.

    On failure the handle is given back through release before the
    error propagates.
    """
    log = structlog.get_logger()
    try:
        level = IsolationLevel(isolation)
    except ValueError:
        release()
        raise

    try:
        result = await handle.query(f"START TRANSACTION ISOLATION LEVEL {level.value}")
        await result.aclose()
    except BaseException:
        release()
        raise

    log.debug("transaction started", isolation=level.value)
    return Transaction(handle, release, level)


def _schedule_rollback(handle: Handle, lease: Lease) -> None:
    log = structlog.get_logger()
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Without a loop no ROLLBACK can be sent. The lease stays held so the
        # handle never goes back to the pool mid-transaction.
        log.error("active transaction discarded outside an event loop, handle withheld from pool")
        return

    log.warning("active transaction discarded, rolling back")
    task = loop.create_task(_implicit_rollback(handle, lease))
    _pending_rollbacks.add(task)
    task.add_done_callback(_pending_rollbacks.discard)


async def _implicit_rollback(handle: Handle, lease: Lease) -> None:
    try:
        if handle.is_alive():
            result = await handle.query("ROLLBACK")
            await result.aclose()
    except Exception as e:
        structlog.get_logger().error("implicit rollback failed", error=str(e))
    finally:
        lease.release()
