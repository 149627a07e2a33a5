"""Row decoding: raw text fields to typed Python values."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pgtxn.core.exceptions import DecodeError
from pgtxn.core.registry import default_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow, Value
    from pgtxn.core.registry import TypeRegistry


def cast(oid: int, text: str, registry: TypeRegistry | None = None) -> Value:
    """Decode one non-null text field of type oid."""
    if registry is None:
        registry = default_registry()
    return registry.cast(oid, text)


def process_row(
    columns: Sequence[ColumnMeta],
    fields: Sequence[str | None],
    registry: TypeRegistry | None = None,
) -> DecodedRow:
    """Decode one raw row into a column name -> value mapping.

    Null fields stay None and never reach cast(). When two columns share
    a name the later one wins.
    """
    if len(fields) != len(columns):
        msg = f"Row has {len(fields)} fields but result has {len(columns)} columns"
        raise DecodeError(msg)

    if registry is None:
        registry = default_registry()

    row: DecodedRow = {}
    for col, field in zip(columns, fields):
        row[col.name] = None if field is None else registry.cast(col.type_oid, field)
    return row
