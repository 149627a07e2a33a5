"""Rich table formatter for decoded rows."""

from __future__ import annotations

import json
import shutil
from io import StringIO
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from pgtxn.formatters.base import column_names, registry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow, Value

_NO_RESULTS = "No results"


def _render(value: Value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return json.dumps(value)
    if isinstance(value, bool):
        return "t" if value else "f"
    return str(value)


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 1] + "…"


class TableFormatter:
    """Boxed table; buffers the whole result to size the columns."""

    def __init__(self, width: int = 40) -> None:
        self.width = width

    def format(
        self, columns: Sequence[ColumnMeta], rows: Iterable[DecodedRow]
    ) -> Iterator[str]:
        rows = list(rows)
        if not rows:
            yield _NO_RESULTS
            return

        names = column_names(columns)
        table = Table(show_edge=True, pad_edge=True)
        for name in names:
            table.add_column(name, no_wrap=True)

        for row in rows:
            table.add_row(*(_truncate(_render(row.get(name)), self.width) for name in names))

        buf = StringIO()
        term_width = shutil.get_terminal_size((120, 24)).columns
        console = Console(file=buf, force_terminal=False, width=term_width)
        console.print(table)
        yield buf.getvalue().rstrip("\n")


registry.register("table", TableFormatter)
