"""Where the SQL for ``pgtxn query`` comes from."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pgtxn.core.exceptions import InputError

if TYPE_CHECKING:
    from typing import TextIO

STDIN_PATH = "-"


def is_terminal(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (ValueError, AttributeError):
        return False


def read_sql(inline: str | None, path: str | None, stdin: TextIO | None = None) -> str:
    """Return the SQL text to run.

    -e wins over a path; the path ``-`` reads stdin. With neither, stdin is
    read when it is not a terminal. Blank input is rejected, since it
    would open and commit a transaction that did nothing.
    """
    stdin = stdin if stdin is not None else sys.stdin

    if inline is not None:
        sql = inline
    elif path == STDIN_PATH:
        sql = stdin.read()
    elif path is not None:
        sql = _read_file(Path(path))
    elif not is_terminal(stdin):
        sql = stdin.read()
    else:
        msg = "No query provided. Use -e, a file path, or pipe SQL to stdin."
        raise InputError(msg)

    if not sql.strip():
        msg = "Query is empty"
        raise InputError(msg)
    return sql


def _read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        msg = f"Query file not found: {path}"
        raise InputError(msg) from None
    except UnicodeDecodeError as e:
        msg = f"Query file is not UTF-8: {path}"
        raise InputError(msg) from e
    except OSError as e:
        msg = f"Cannot read query file {path}: {e.strerror}"
        raise InputError(msg) from e
