"""CSV formatter for decoded rows (RFC 4180 compliant)."""

from __future__ import annotations

import csv
import json
from io import StringIO
from typing import TYPE_CHECKING

from pgtxn.formatters.base import column_names, registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow, Value


def _write_row(values: list[str]) -> str:
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(values)
    return buf.getvalue().rstrip("\r\n")


def _cell(value: Value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class CSVFormatter:
    def __init__(self, no_header: bool = False) -> None:
        self.no_header = no_header

    def format(
        self, columns: Sequence[ColumnMeta], rows: Iterable[DecodedRow]
    ) -> Iterator[str]:
        names = column_names(columns)
        if not self.no_header:
            yield _write_row(names)
        for row in rows:
            yield _write_row([_cell(row.get(name)) for name in names])

    async def aformat(
        self, columns: Sequence[ColumnMeta], rows: AsyncIterable[DecodedRow]
    ) -> AsyncIterator[str]:
        names = column_names(columns)
        if not self.no_header:
            yield _write_row(names)
        async for row in rows:
            yield _write_row([_cell(row.get(name)) for name in names])


registry.register("csv", CSVFormatter)
