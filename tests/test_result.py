"""Tests for ResultStream."""

import gc

import pytest

from pgtxn.core.exceptions import FetchError
from pgtxn.core.logging import setup_logging
from pgtxn.core.models import ColumnMeta
from pgtxn.core.result import RawResult, Result, ResultStream
from tests.fakes import FakeRawResult, make_stream

COLUMNS = [("id", 23), ("tags", 1009), ("active", 16)]
ROWS = [
    ["1", "{a,b}", "t"],
    ["2", None, "f"],
    ["3", '{"x,y"}', None],
]


@pytest.mark.unit
def test_fake_satisfies_protocols():
    stream, raw = make_stream(COLUMNS, ROWS)
    assert isinstance(raw, RawResult)
    assert isinstance(stream, Result)


@pytest.mark.unit
class TestMetadata:
    def test_counts(self):
        stream, _ = make_stream(COLUMNS, ROWS)
        assert stream.get_row_count() == 3
        assert stream.get_column_count() == 3

    def test_columns(self):
        stream, _ = make_stream(COLUMNS, ROWS)
        assert stream.columns == (
            ColumnMeta(name="id", type_oid=23),
            ColumnMeta(name="tags", type_oid=1009),
            ColumnMeta(name="active", type_oid=16),
        )

    def test_metadata_read_once(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        reads = raw.metadata_reads
        stream.get_row_count()
        stream.get_column_count()
        assert raw.metadata_reads == reads == 2

    @pytest.mark.asyncio
    async def test_counts_invariant_during_consumption(self):
        stream, _ = make_stream(COLUMNS, ROWS)
        async for _ in stream:
            assert stream.get_row_count() == 3
            assert stream.get_column_count() == 3
        assert stream.get_row_count() == 3
        assert stream.get_column_count() == 3


@pytest.mark.unit
class TestIteration:
    @pytest.mark.asyncio
    async def test_decodes_rows(self):
        stream, _ = make_stream(COLUMNS, ROWS)
        rows = [row async for row in stream]
        assert rows == [
            {"id": 1, "tags": ["a", "b"], "active": True},
            {"id": 2, "tags": None, "active": False},
            {"id": 3, "tags": ["x,y"], "active": None},
        ]

    @pytest.mark.asyncio
    async def test_lazy_one_fetch_per_row(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        assert raw.fetches == 0
        rows = aiter(stream)
        await anext(rows)
        assert raw.fetches == 1
        await anext(rows)
        assert raw.fetches == 2

    @pytest.mark.asyncio
    async def test_single_pass(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        first = [row async for row in stream]
        second = [row async for row in stream]
        assert len(first) == 3
        assert second == []
        assert raw.fetches == 3

    @pytest.mark.asyncio
    async def test_empty_result(self):
        stream, raw = make_stream()
        assert [row async for row in stream] == []
        assert raw.releases == 1


@pytest.mark.unit
class TestRelease:
    @pytest.mark.asyncio
    async def test_released_after_full_consumption(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        async for _ in stream:
            assert raw.releases == 0
        assert raw.releases == 1
        assert stream.released

    @pytest.mark.asyncio
    async def test_released_on_early_close(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        rows = aiter(stream)
        await anext(rows)
        await stream.aclose()
        assert raw.releases == 1
        assert raw.fetches == 1

    @pytest.mark.asyncio
    async def test_released_when_never_iterated(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        await stream.aclose()
        assert raw.releases == 1
        assert raw.fetches == 0

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        async for _ in stream:
            pass
        await stream.aclose()
        await stream.aclose()
        assert raw.releases == 1

    @pytest.mark.asyncio
    async def test_break_then_context_exit(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        async with stream:
            async for _ in stream:
                break
        assert raw.releases == 1

    @pytest.mark.asyncio
    async def test_released_on_drop(self):
        stream, raw = make_stream(COLUMNS, ROWS)
        del stream
        gc.collect()
        assert raw.releases == 1

    @pytest.mark.asyncio
    async def test_drop_releases_without_logging(self, capsys):
        setup_logging(verbose=True)
        stream, raw = make_stream(COLUMNS, ROWS)
        del stream
        gc.collect()
        assert raw.releases == 1
        assert "releasing result" not in capsys.readouterr().err


@pytest.mark.unit
class TestFetchFailure:
    @pytest.mark.asyncio
    async def test_failure_surfaces_server_message(self):
        stream, _ = make_stream(COLUMNS, ROWS, fail_at=1, error="division by zero")
        with pytest.raises(FetchError, match="division by zero"):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_rows_before_failure_are_kept(self):
        stream, raw = make_stream(COLUMNS, ROWS, fail_at=2)
        received = []
        with pytest.raises(FetchError):
            async for row in stream:
                received.append(row)
        assert [row["id"] for row in received] == [1, 2]
        assert raw.releases == 1


@pytest.mark.unit
class TestNextResult:
    @pytest.mark.asyncio
    async def test_none_without_follow_on(self):
        stream, _ = make_stream(COLUMNS, ROWS)
        assert await stream.get_next_result() is None

    @pytest.mark.asyncio
    async def test_follow_on_result(self):
        second, _ = make_stream([("n", 23)], [["7"]])
        calls = []

        async def next_result():
            calls.append(1)
            return second

        first = ResultStream(FakeRawResult(COLUMNS, ROWS), next_result=next_result)
        assert await first.get_next_result() is second
        assert await first.get_next_result() is second
        assert calls == [1]
        assert [row async for row in second] == [{"n": 7}]

    @pytest.mark.asyncio
    async def test_follow_on_independent_of_rows(self):
        second, _ = make_stream()

        async def next_result():
            return second

        first, raw = make_stream(COLUMNS, ROWS, next_result=next_result)
        assert await first.get_next_result() is second
        assert raw.fetches == 0
