"""Parser for PostgreSQL textual array literals.

Turns ``{1,2,{3,NULL}}``-style text into nested lists. Leaf elements are
handed to a caller-supplied decode function; ``NULL`` leaves become None.
The parser holds no state between calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pgtxn.core.exceptions import ParseError

if TYPE_CHECKING:
    from collections.abc import Callable

_FRAGMENT_LENGTH = 32
_WHITESPACE = " \t\n\r\v\f"


def parse_array(
    text: str,
    decode: Callable[[str], Any],
    delimiter: str = ",",
) -> list[Any]:
    """Parse an array literal into a (possibly nested) list.

    Raises ParseError on unbalanced braces, unterminated quotes or
    trailing garbage. No partial result is ever returned.
    """
    return _ArrayLiteral(text, decode, delimiter).parse()


class _ArrayLiteral:
    """Cursor over one literal. Lives for a single parse_array() call."""

    def __init__(self, text: str, decode: Callable[[str], Any], delimiter: str) -> None:
        self.text = text
        self.decode = decode
        self.delimiter = delimiter
        self.pos = 0

    def parse(self) -> list[Any]:
        self._skip_whitespace()
        if self._peek() == "[":
            self._skip_dimensions()
        if self._peek() != "{":
            self._fail("Array literal must start with '{'")

        result = self._parse_dimension()

        self._skip_whitespace()
        if self.pos < len(self.text):
            self._fail("Unexpected data after array literal")
        return result

    def _parse_dimension(self) -> list[Any]:
        self.pos += 1  # opening brace
        items: list[Any] = []

        self._skip_whitespace()
        if self._peek() == "}":
            self.pos += 1
            return items

        while True:
            self._skip_whitespace()
            ch = self._peek()
            if ch is None:
                self._fail("Unterminated array literal")
            elif ch == "{":
                items.append(self._parse_dimension())
            elif ch == '"':
                items.append(self.decode(self._parse_quoted()))
            else:
                token = self._parse_unquoted()
                items.append(None if token.upper() == "NULL" else self.decode(token))

            self._skip_whitespace()
            ch = self._peek()
            if ch == self.delimiter:
                self.pos += 1
            elif ch == "}":
                self.pos += 1
                return items
            elif ch is None:
                self._fail("Unterminated array literal")
            else:
                self._fail(f"Expected {self.delimiter!r} or '}}'")

    def _parse_quoted(self) -> str:
        start = self.pos
        self.pos += 1  # opening quote
        chars: list[str] = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\":
                if self.pos + 1 >= len(self.text):
                    break
                chars.append(self.text[self.pos + 1])
                self.pos += 2
            elif ch == '"':
                self.pos += 1
                return "".join(chars)
            else:
                chars.append(ch)
                self.pos += 1
        self.pos = start
        self._fail("Unterminated quoted element")

    def _parse_unquoted(self) -> str:
        chars: list[str] = []
        # Index just past the last escaped character; trailing whitespace
        # before it is significant.
        keep = 0
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == self.delimiter or ch == "}":
                break
            if ch in '{"':
                self._fail("Unexpected character in unquoted element")
            if ch == "\\":
                if self.pos + 1 >= len(self.text):
                    self._fail("Unterminated escape sequence")
                chars.append(self.text[self.pos + 1])
                keep = len(chars)
                self.pos += 2
                continue
            chars.append(ch)
            self.pos += 1

        while len(chars) > keep and chars[-1] in _WHITESPACE:
            chars.pop()
        if not chars:
            self._fail("Empty array element")
        return "".join(chars)

    def _skip_dimensions(self) -> None:
        # e.g. "[0:2]={1,2,3}" when the lower bound is not 1
        end = self.text.find("=", self.pos)
        if end == -1:
            self._fail("Malformed dimension decoration")
        self.pos = end + 1
        self._skip_whitespace()

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def _peek(self) -> str | None:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return None

    def _fail(self, message: str) -> Any:
        fragment = self.text[self.pos : self.pos + _FRAGMENT_LENGTH]
        raise ParseError(message, fragment or self.text[-_FRAGMENT_LENGTH:])
