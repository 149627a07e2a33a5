"""Formatter protocol and registry for decoded row output."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Sequence

    from pgtxn.core.models import ColumnMeta, DecodedRow


@runtime_checkable
class Formatter(Protocol):
    """Protocol for output formatters.

    Each formatter transforms decoded rows into lines of formatted text.
    Yielding strings (rather than returning a single string) enables
    streaming output for large result sets without buffering everything
    in memory.
    """

    def format(
        self, columns: Sequence[ColumnMeta], rows: Iterable[DecodedRow]
    ) -> Iterator[str]:
        """Transform decoded rows into formatted output lines."""
        ...


@runtime_checkable
class StreamingFormatter(Protocol):
    """Formatter that can write rows as they arrive from an async result.

    Formatters without aformat() need the whole result up front (the table
    formatter sizes its columns from every row).
    """

    def aformat(
        self, columns: Sequence[ColumnMeta], rows: AsyncIterable[DecodedRow]
    ) -> AsyncIterator[str]: ...


class FormatterRegistry:
    """Registry for looking up formatters by name."""

    def __init__(self) -> None:
        self._formatters: dict[str, type[Formatter]] = {}

    def register(self, name: str, formatter_class: type[Formatter]) -> None:
        self._formatters[name] = formatter_class

    def get(self, name: str, **kwargs: object) -> Formatter:
        """Return a formatter instance by name.

        Raises KeyError if the format name is not registered.
        """
        if name not in self._formatters:
            available = ", ".join(sorted(self._formatters))
            msg = f"Unknown format {name!r}. Available: {available}"
            raise KeyError(msg)
        return self._formatters[name](**kwargs)

    @property
    def available(self) -> list[str]:
        return sorted(self._formatters)


# Global registry instance populated by formatter modules.
registry = FormatterRegistry()


def column_names(columns: Sequence[ColumnMeta]) -> list[str]:
    """Distinct column names in result order, matching decoded row keys."""
    return list(dict.fromkeys(col.name for col in columns))
