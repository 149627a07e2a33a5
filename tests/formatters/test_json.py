"""Tests for JSONFormatter."""

import json

import pytest

from pgtxn.core.models import ColumnMeta
from pgtxn.formatters.base import Formatter, StreamingFormatter
from pgtxn.formatters.json import JSONFormatter

COLUMNS = [
    ColumnMeta(name="id", type_oid=23),
    ColumnMeta(name="tags", type_oid=1009),
]
ROWS = [
    {"id": 1, "tags": ["a", "b"]},
    {"id": 2, "tags": None},
]


@pytest.mark.unit
def test_implements_protocol():
    assert isinstance(JSONFormatter(), Formatter)


@pytest.mark.unit
def test_pretty_array():
    lines = list(JSONFormatter().format(COLUMNS, ROWS))
    assert lines[0] == "["
    assert lines[-1] == "]"
    assert json.loads("\n".join(lines)) == ROWS


@pytest.mark.unit
def test_compact_array_one_row_per_line():
    lines = list(JSONFormatter(compact=True).format(COLUMNS, ROWS))
    assert lines == [
        "[",
        '{"id": 1, "tags": ["a", "b"]},',
        '{"id": 2, "tags": null}',
        "]",
    ]


@pytest.mark.unit
def test_lines_mode():
    lines = list(JSONFormatter(lines=True).format(COLUMNS, ROWS))
    assert [json.loads(line) for line in lines] == ROWS


@pytest.mark.unit
def test_empty_result():
    assert list(JSONFormatter(compact=True).format(COLUMNS, [])) == ["[", "]"]
    assert list(JSONFormatter(lines=True).format(COLUMNS, [])) == []


@pytest.mark.unit
def test_nested_arrays_and_floats():
    rows = [{"m": [[1.5, None], [2.0, 3.25]], "ok": True}]
    lines = JSONFormatter(compact=True).format([], rows)
    assert json.loads("\n".join(lines)) == rows


@pytest.mark.unit
def test_streams_lazily():
    def rows():
        yield {"id": 1}
        raise AssertionError("consumed too far")

    lines = JSONFormatter(lines=True).format([], rows())
    assert next(lines) == '{"id": 1}'


@pytest.mark.unit
def test_array_holds_back_one_row():
    def rows():
        yield {"id": 1}
        yield {"id": 2}
        raise AssertionError("consumed too far")

    lines = JSONFormatter(compact=True).format([], rows())
    assert next(lines) == "["
    assert next(lines) == '{"id": 1},'


async def _rows(items):
    for item in items:
        yield item


@pytest.mark.unit
@pytest.mark.asyncio
async def test_aformat_matches_format():
    for formatter in (JSONFormatter(), JSONFormatter(compact=True), JSONFormatter(lines=True)):
        streamed = [line async for line in formatter.aformat(COLUMNS, _rows(ROWS))]
        assert streamed == list(formatter.format(COLUMNS, ROWS))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_aformat_empty_result():
    assert [line async for line in JSONFormatter().aformat(COLUMNS, _rows([]))] == ["[", "]"]


@pytest.mark.unit
def test_is_streaming():
    assert isinstance(JSONFormatter(), StreamingFormatter)
