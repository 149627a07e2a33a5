"""Result and Statement wrappers that hold a share of a pooled handle.

Each wrapper owns one Lease on the RefCount of the Transaction that
spawned it. The lease is given back when the wrapper is done with the
handle: rows exhausted (and the follow-on result claimed), closed
explicitly, failed, or dropped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pgtxn.core.exceptions import QueryError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Mapping, Sequence
    from types import TracebackType

    from pgtxn.core.models import ColumnMeta, DecodedRow
    from pgtxn.core.refcount import Lease, RefCount
    from pgtxn.core.result import Result

    Params = Sequence[Any] | Mapping[str, Any]


@runtime_checkable
class Statement(Protocol):
    """Prepared statement bound to one handle."""

    async def execute(self, params: Params | None = None) -> Result: ...

    def get_query(self) -> str: ...

    def is_alive(self) -> bool: ...

    def get_last_used_at(self) -> float: ...

    async def close(self) -> None: ...


class PooledResult:
    """Result that releases its lease once the handle is no longer needed."""

    def __init__(self, result: Result, refcount: RefCount, lease: Lease) -> None:
        self._result = result
        self._refcount = refcount
        self._lease = lease
        self._next_loaded = False
        self._next: PooledResult | None = None
        self._rows = self._produce()

    def __aiter__(self) -> AsyncIterator[DecodedRow]:
        return self._rows

    async def __aenter__(self) -> PooledResult:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __del__(self) -> None:
        lease = getattr(self, "_lease", None)
        if lease is not None:
            lease.release()

    @property
    def columns(self) -> tuple[ColumnMeta, ...]:
        return self._result.columns

    @property
    def released(self) -> bool:
        return self._lease.released

    def get_row_count(self) -> int:
        return self._result.get_row_count()

    def get_column_count(self) -> int:
        return self._result.get_column_count()

    async def get_next_result(self) -> PooledResult | None:
        await self._claim_next()
        return self._next

    async def aclose(self) -> None:
        try:
            # Closing a started row generator releases the lease in its
            # finally block, so the follow-on result is claimed first.
            await self._claim_next()
            await self._rows.aclose()
            await self._result.aclose()
        finally:
            self._lease.release()

    async def _produce(self) -> AsyncGenerator[DecodedRow, None]:
        try:
            async for row in self._result:
                yield row
            # Claim the follow-on result before giving the lease back so the
            # handle cannot return to the pool with results still pending.
            await self._claim_next()
        finally:
            try:
                await self._result.aclose()
            finally:
                self._lease.release()

    async def _claim_next(self) -> None:
        if self._next_loaded:
            return
        result = await self._result.get_next_result()
        if result is not None:
            self._next = PooledResult(result, self._refcount, self._refcount.lease())
        self._next_loaded = True


class PooledStatement:
    """Statement whose executions and lifetime are tied to a lease."""

    def __init__(self, statement: Statement, refcount: RefCount, lease: Lease) -> None:
        self._statement = statement
        self._refcount = refcount
        self._lease = lease

    async def __aenter__(self) -> PooledStatement:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __del__(self) -> None:
        lease = getattr(self, "_lease", None)
        if lease is not None:
            lease.release()

    @property
    def released(self) -> bool:
        return self._lease.released

    def get_query(self) -> str:
        return self._statement.get_query()

    def is_alive(self) -> bool:
        return not self._lease.released and self._statement.is_alive()

    def get_last_used_at(self) -> float:
        return self._statement.get_last_used_at()

    async def execute(self, params: Params | None = None) -> PooledResult:
        """Execute the statement; the returned result holds its own lease."""
        if self._lease.released:
            msg = "The statement has been closed"
            raise QueryError(msg)

        lease = self._refcount.lease()
        try:
            result = await self._statement.execute(params)
        except BaseException:
            lease.release()
            raise
        return PooledResult(result, self._refcount, lease)

    async def close(self) -> None:
        try:
            await self._statement.close()
        finally:
            self._lease.release()
