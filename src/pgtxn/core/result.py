"""Lazy, single-pass streams of decoded rows.

A ResultStream owns one raw result resource. Column metadata and counts
are captured once at construction; rows are fetched and decoded one at a
time as the stream is iterated. The resource is released exactly once,
whether the stream is fully consumed, abandoned early or fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from pgtxn.core.decoder import process_row
from pgtxn.core.exceptions import FetchError
from pgtxn.core.models import ColumnMeta
from pgtxn.core.registry import default_registry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Sequence
    from types import TracebackType

    from pgtxn.core.models import DecodedRow
    from pgtxn.core.registry import TypeRegistry

    NextResult = Callable[[], Awaitable["Result | None"]]


@runtime_checkable
class RawResult(Protocol):
    """Raw result resource returned by a connection for one statement."""

    @property
    def row_count(self) -> int: ...

    @property
    def column_count(self) -> int: ...

    def field_name(self, index: int) -> str: ...

    def field_type(self, index: int) -> int: ...

    async def fetch_row(self) -> Sequence[str | None] | None:
        """Return the next row's text fields, or None if the fetch failed."""
        ...

    def error_message(self) -> str: ...

    def release(self) -> None: ...


@runtime_checkable
class Result(Protocol):
    """Async sequence of decoded rows plus result metadata."""

    columns: tuple[ColumnMeta, ...]

    def __aiter__(self) -> AsyncIterator[DecodedRow]: ...

    async def get_next_result(self) -> Result | None: ...

    def get_row_count(self) -> int: ...

    def get_column_count(self) -> int: ...

    async def aclose(self) -> None: ...


class ResultStream:
    """Result over one raw result resource."""

    def __init__(
        self,
        raw: RawResult,
        next_result: NextResult | None = None,
        registry: TypeRegistry | None = None,
    ) -> None:
        self._raw = raw
        self._registry = registry if registry is not None else default_registry()
        self._next_result = next_result
        self._next_loaded = False
        self._next: Result | None = None
        self._released = False

        column_count = raw.column_count
        self._column_count = column_count
        self._row_count = raw.row_count
        self.columns: tuple[ColumnMeta, ...] = tuple(
            ColumnMeta(name=raw.field_name(i), type_oid=raw.field_type(i))
            for i in range(column_count)
        )
        self._rows = self._produce()

    def __aiter__(self) -> AsyncIterator[DecodedRow]:
        return self._rows

    async def __aenter__(self) -> ResultStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __del__(self) -> None:
        # Backstop for streams dropped without aclose(); timing is up to the
        # garbage collector.
        if not getattr(self, "_released", True):
            self._release(quiet=True)

    def get_row_count(self) -> int:
        return self._row_count

    def get_column_count(self) -> int:
        return self._column_count

    @property
    def released(self) -> bool:
        return self._released

    async def get_next_result(self) -> Result | None:
        """Return the result of the next statement in a multi-statement query."""
        if not self._next_loaded:
            if self._next_result is not None:
                self._next = await self._next_result()
            self._next_loaded = True
        return self._next

    async def aclose(self) -> None:
        """Stop iteration early and release the raw resource."""
        await self._rows.aclose()
        self._release()

    async def _produce(self) -> AsyncGenerator[DecodedRow, None]:
        try:
            for _ in range(self._row_count):
                fields = await self._raw.fetch_row()
                if fields is None:
                    raise FetchError(self._raw.error_message())
                yield process_row(self.columns, fields, self._registry)
        finally:
            self._release()

    def _release(self, quiet: bool = False) -> None:
        if self._released:
            return
        self._released = True
        if not quiet:
            structlog.get_logger().debug(
                "releasing result", rows=self._row_count, columns=self._column_count
            )
        self._raw.release()
