"""Output formatters for pgtxn."""

from pgtxn.formatters.base import Formatter, FormatterRegistry, registry
from pgtxn.formatters.csv import CSVFormatter
from pgtxn.formatters.json import JSONFormatter
from pgtxn.formatters.table import TableFormatter

__all__ = [
    "CSVFormatter",
    "Formatter",
    "FormatterRegistry",
    "JSONFormatter",
    "TableFormatter",
    "registry",
]
