"""Output format selection and writing."""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import TYPE_CHECKING

from pgtxn.formatters.base import StreamingFormatter

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable, Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow
    from pgtxn.formatters.base import Formatter


class OutputFormat(StrEnum):
    JSON = "json"
    JSONL = "jsonl"
    CSV = "csv"
    TABLE = "table"


def get_formatter(
    format_flag: str | None = None,
    *,
    compact: bool = False,
    no_header: bool = False,
) -> Formatter:
    """Build and return the appropriate formatter instance."""
    # Import here to trigger registry population from formatter modules.
    import pgtxn.formatters.csv  # noqa: F401
    import pgtxn.formatters.json  # noqa: F401
    import pgtxn.formatters.table  # noqa: F401
    from pgtxn.formatters.base import registry

    fmt_name = format_flag or OutputFormat.JSON

    kwargs: dict[str, object] = {}
    if fmt_name == OutputFormat.JSONL:
        fmt_name = OutputFormat.JSON
        kwargs["lines"] = True
    elif fmt_name == OutputFormat.JSON:
        kwargs["compact"] = compact
    elif fmt_name == OutputFormat.CSV:
        kwargs["no_header"] = no_header

    return registry.get(str(fmt_name), **kwargs)


def write_output(
    formatter: Formatter,
    columns: Sequence[ColumnMeta],
    rows: Iterable[DecodedRow],
) -> None:
    """Write formatted output to stdout."""
    for line in formatter.format(columns, rows):
        sys.stdout.write(line + "\n")


async def stream_output(
    formatter: Formatter,
    columns: Sequence[ColumnMeta],
    rows: AsyncIterable[DecodedRow],
) -> None:
    """Write rows to stdout as they are fetched.

    Formatters that cannot stream get the rows buffered first.
    """
    if isinstance(formatter, StreamingFormatter):
        async for line in formatter.aformat(columns, rows):
            sys.stdout.write(line + "\n")
        return

    buffered = [row async for row in rows]
    write_output(formatter, columns, buffered)
