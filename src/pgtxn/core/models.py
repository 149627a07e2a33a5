"""Data models shared by the decoder, result streams and transactions.

Pydantic models for column metadata and decode rules, plus the
isolation level enumeration accepted by Transaction.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, field_validator

Value: TypeAlias = Union[None, str, bool, int, float, list["Value"]]
DecodedRow: TypeAlias = dict[str, Value]


class ColumnMeta(BaseModel):
    """Metadata for a single result column."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_oid: int


class DecodeRule(BaseModel):
    """How the text form of one catalog type is turned into a Python value.

    ``element`` and ``delimiter`` only matter for array rules: the element
    type OID every leaf is decoded with, and the character separating
    siblings in the literal.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar", "boolean", "numeric", "array"] = "scalar"
    delimiter: str = ","
    element: int = 0

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        if len(v) != 1 or v in '{}"\\':
            msg = f"Invalid delimiter: {v!r}. Must be a single character other than braces, quote or backslash"
            raise ValueError(msg)
        return v


DEFAULT_RULE = DecodeRule()


class IsolationLevel(Enum):
    """Transaction isolation levels, valued by their SQL spelling."""

    UNCOMMITTED = "READ UNCOMMITTED"
    COMMITTED = "READ COMMITTED"
    REPEATABLE = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"

    @classmethod
    def _missing_(cls, value: object) -> IsolationLevel | None:
        # Accept member names and SQL spellings in any case.
        if isinstance(value, str):
            normalized = " ".join(value.replace("_", " ").split()).upper()
            for member in cls:
                if normalized in (member.name, member.value):
                    return member
        return None
