"""psycopg-backed connection handle.

Wraps a psycopg v3 AsyncConnection in autocommit mode so transactions are
driven explicitly by Transaction. Results are read as raw text straight
from libpq result objects and decoded by ResultStream, so the type
registry rather than psycopg's loaders decides how values come out.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import psycopg
import psycopg.errors
import sentry_sdk
import structlog
from psycopg import sql as pgsql

from pgtxn.core.exceptions import NetworkError, QueryError, TimeoutError
from pgtxn.core.registry import CATALOG_TYPES_SQL, TypeRegistry, default_registry
from pgtxn.core.result import ResultStream

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from psycopg.pq.abc import PGresult

    from pgtxn.core.config import Settings

    Params = Sequence[Any] | Mapping[str, Any]


class PgRawResult:
    """Raw result resource over one libpq result in text format."""

    def __init__(self, pgresult: PGresult, encoding: str = "utf-8") -> None:
        self._pgresult = pgresult
        self._encoding = encoding
        self._position = 0
        self._error = ""

    @property
    def row_count(self) -> int:
        return self._pgresult.ntuples

    @property
    def column_count(self) -> int:
        return self._pgresult.nfields

    def field_name(self, index: int) -> str:
        name = self._pgresult.fname(index)
        return name.decode(self._encoding) if name is not None else ""

    def field_type(self, index: int) -> int:
        return self._pgresult.ftype(index)

    async def fetch_row(self) -> list[str | None] | None:
        if self._position >= self._pgresult.ntuples:
            self._error = f"Row {self._position} is out of range"
            return None

        row: list[str | None] = []
        for column in range(self._pgresult.nfields):
            value = self._pgresult.get_value(self._position, column)
            row.append(None if value is None else bytes(value).decode(self._encoding))
        self._position += 1
        return row

    def error_message(self) -> str:
        message = self._pgresult.error_message
        if message:
            return message.decode(self._encoding, "replace").strip()
        return self._error or "Unknown error while fetching row"

    def release(self) -> None:
        self._pgresult.clear()


class PgStatement:
    """Server-side prepared statement on a PgHandle."""

    def __init__(self, handle: PgHandle, query: str) -> None:
        self._handle = handle
        self._query = query
        self._closed = False
        self._last_used_at = time.time()

    def get_query(self) -> str:
        return self._query

    def is_alive(self) -> bool:
        return not self._closed and self._handle.is_alive()

    def get_last_used_at(self) -> float:
        return self._last_used_at

    async def execute(self, params: Params | None = None) -> ResultStream:
        if self._closed:
            msg = "The statement has been closed"
            raise QueryError(msg)
        self._last_used_at = time.time()
        return await self._handle._run(self._query, params, prepare=True)

    async def close(self) -> None:
        self._closed = True


class PgHandle:
    """Handle over a psycopg AsyncConnection."""

    def __init__(
        self,
        connection: psycopg.AsyncConnection[Any],
        registry: TypeRegistry | None = None,
    ) -> None:
        self.connection = connection
        self.registry = registry if registry is not None else default_registry()
        self._last_used_at = time.time()

    @property
    def encoding(self) -> str:
        return self.connection.info.encoding

    async def query(self, sql: str) -> ResultStream:
        return await self._run(sql, None)

    async def execute(self, sql: str, params: Params | None = None) -> ResultStream:
        return await self._run(sql, params)

    async def prepare(self, sql: str) -> PgStatement:
        self._check_open()
        return PgStatement(self, sql)

    async def notify(self, channel: str, payload: str = "") -> ResultStream:
        return await self._run("SELECT pg_notify(%s, %s)", (channel, payload))

    def quote_string(self, data: str) -> str:
        return pgsql.Literal(data).as_string(self.connection)

    def quote_name(self, name: str) -> str:
        return pgsql.Identifier(name).as_string(self.connection)

    def is_alive(self) -> bool:
        return not self.connection.closed and not self.connection.broken

    def get_last_used_at(self) -> float:
        return self._last_used_at

    async def close(self) -> None:
        await self.connection.close()

    def _check_open(self) -> None:
        if not self.is_alive():
            msg = "Connection is closed"
            raise NetworkError(msg)

    def _wrap(self, cursor: psycopg.AsyncCursor[Any]) -> ResultStream:
        pgresult = cursor.pgresult
        if pgresult is None:
            msg = "Statement returned no result"
            raise QueryError(msg)

        async def next_result() -> ResultStream | None:
            if not cursor.nextset():
                await cursor.close()
                return None
            return self._wrap(cursor)

        return ResultStream(
            PgRawResult(pgresult, self.encoding),
            next_result=next_result,
            registry=self.registry,
        )

    async def _run(
        self, sql: str, params: Params | None, *, prepare: bool | None = None
    ) -> ResultStream:
        log = structlog.get_logger()
        self._check_open()

        sql_normalized = " ".join(sql.split())
        span_description = sql_normalized[:100]
        log.debug("executing query", sql=sql_normalized)
        with sentry_sdk.start_span(op="db.query", description=span_description) as span:
            start_time = time.monotonic()
            self._last_used_at = time.time()
            cursor = self.connection.cursor()
            try:
                await cursor.execute(sql, params, prepare=prepare)  # type: ignore[arg-type]
                result = self._wrap(cursor)
            except psycopg.errors.QueryCanceled as e:
                await cursor.close()
                duration_ms = (time.monotonic() - start_time) * 1000
                span.set_data("duration_ms", duration_ms)
                span.set_status("deadline_exceeded")
                log.error("query timeout", sql=sql_normalized, duration_ms=f"{duration_ms:.1f}")
                raise TimeoutError(f"Query timed out: {e}") from e
            except psycopg.OperationalError as e:
                await cursor.close()
                span.set_status("unavailable")
                log.error("database error", sql=sql_normalized, error=str(e))
                raise NetworkError(f"Database error: {e}") from e
            except psycopg.Error as e:
                await cursor.close()
                span.set_status("invalid_argument")
                log.error("query error", sql=sql_normalized, error=str(e))
                raise QueryError(f"SQL error: {e}") from e

            duration_ms = (time.monotonic() - start_time) * 1000
            span.set_data("row_count", result.get_row_count())
            span.set_data("duration_ms", duration_ms)
            log.debug(
                "query complete",
                duration_ms=f"{duration_ms:.1f}",
                row_count=result.get_row_count(),
            )
            return result


async def connect(settings: Settings, registry: TypeRegistry | None = None) -> PgHandle:
    """Open an autocommit connection described by settings.

    statement_timeout is set through the startup options, so it applies
    before the first query without an extra round trip.
    """
    params = settings.connection
    timeout_ms = int(settings.statement_timeout * 1000)
    try:
        connection = await psycopg.AsyncConnection.connect(
            autocommit=True,
            options=f"-c statement_timeout={timeout_ms}",
            **params.connect_kwargs(),
        )
    except psycopg.OperationalError as e:
        msg = f"Connection failed to {params.describe()}: {e}"
        raise NetworkError(msg) from e

    return PgHandle(connection, registry if registry is not None else settings.registry())


async def load_catalog_registry(handle: PgHandle) -> TypeRegistry:
    """Build a TypeRegistry from the server's pg_type catalog."""
    result = await handle.query(CATALOG_TYPES_SQL)
    rows = [
        (
            row["oid"],
            row["typname"],
            row["typcategory"],
            row["typdelim"],
            row["typelem"],
        )
        async for row in result
    ]
    return TypeRegistry.from_catalog(rows)
