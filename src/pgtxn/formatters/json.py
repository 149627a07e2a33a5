"""JSON formatter for decoded rows.

Array mode writes one element per line between ``[`` and ``]`` so rows can
be written as they are fetched; each element except the last carries a
trailing comma, which needs one row of lookahead.
"""

from __future__ import annotations

import json
import textwrap
from typing import TYPE_CHECKING

from pgtxn.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow


class JSONFormatter:
    """Whole result as one JSON array, or one object per line when lines=True."""

    def __init__(self, compact: bool = False, lines: bool = False) -> None:
        self.compact = compact
        self.lines = lines

    def format(
        self, columns: Sequence[ColumnMeta], rows: Iterable[DecodedRow]
    ) -> Iterator[str]:
        if self.lines:
            for row in rows:
                yield json.dumps(row, default=str)
            return

        yield "["
        pending: DecodedRow | None = None
        for row in rows:
            if pending is not None:
                yield self._element(pending) + ","
            pending = row
        if pending is not None:
            yield self._element(pending)
        yield "]"

    async def aformat(
        self, columns: Sequence[ColumnMeta], rows: AsyncIterable[DecodedRow]
    ) -> AsyncIterator[str]:
        if self.lines:
            async for row in rows:
                yield json.dumps(row, default=str)
            return

        yield "["
        pending: DecodedRow | None = None
        async for row in rows:
            if pending is not None:
                yield self._element(pending) + ","
            pending = row
        if pending is not None:
            yield self._element(pending)
        yield "]"

    def _element(self, row: DecodedRow) -> str:
        if self.compact:
            return json.dumps(row, default=str)
        return textwrap.indent(json.dumps(row, indent=2, default=str), "  ")


registry.register("json", JSONFormatter)
