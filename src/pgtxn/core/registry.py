"""Type registry mapping catalog type OIDs to decode rules.

The table itself is data, not code: the packaged default lives in
``pgtxn/data/pg_types.toml`` and can be replaced or extended from a
user-supplied TOML file, or rebuilt from a live server's pg_type catalog.
"""

from __future__ import annotations

import functools
import re
import tomllib
from importlib import resources
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from pgtxn.core.array_parser import parse_array
from pgtxn.core.exceptions import ConfigError
from pgtxn.core.models import DEFAULT_RULE, DecodeRule

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from pathlib import Path

    from pgtxn.core.models import Value

# float4, float8, money and numeric decode as float; all other numeric
# types decode as int.
FLOAT_OIDS = frozenset({700, 701, 790, 1700})
MONEY_OID = 790

CATALOG_TYPES_SQL = """
SELECT t.oid, t.typname, t.typcategory, t.typdelim, t.typelem
FROM pg_catalog.pg_type t
"""

_MONEY_NOISE = re.compile(r"[^\d.\-]")

_CATEGORY_KINDS: dict[str, str] = {
    "A": "array",
    "B": "boolean",
    "N": "numeric",
}


class TypeTable(BaseModel):
    """On-disk layout of a type table TOML file."""

    version: str | None = None
    types: dict[int, DecodeRule] = {}


class TypeRegistry:
    """Immutable OID -> DecodeRule lookup with the cast operation."""

    def __init__(self, rules: Mapping[int, DecodeRule] | None = None) -> None:
        self._rules: Mapping[int, DecodeRule] = MappingProxyType(dict(rules or {}))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, oid: object) -> bool:
        return oid in self._rules

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._rules))

    def __repr__(self) -> str:
        return f"TypeRegistry({len(self._rules)} rules)"

    def rule(self, oid: int) -> DecodeRule:
        """Return the rule for oid, or the default scalar rule."""
        return self._rules.get(oid, DEFAULT_RULE)

    def items(self) -> list[tuple[int, DecodeRule]]:
        return sorted(self._rules.items())

    def merged(self, other: TypeRegistry) -> TypeRegistry:
        """Return a new registry where rules from other take precedence."""
        return TypeRegistry({**self._rules, **other._rules})

    def cast(self, oid: int, text: str) -> Value:
        """Decode the text form of a value of type oid.

        Pure: never performs I/O. Raises ParseError for malformed array
        literals only.
        """
        rule = self.rule(oid)

        if rule.kind == "array":
            element = rule.element
            return parse_array(
                text,
                lambda data: self.cast(element, data),
                rule.delimiter,
            )
        if rule.kind == "boolean":
            return text == "t"
        if rule.kind == "numeric":
            if oid in FLOAT_OIDS:
                if oid == MONEY_OID:
                    text = _MONEY_NOISE.sub("", text)
                return float(text)
            return int(text)
        return text

    @classmethod
    def from_toml(cls, path: Path) -> TypeRegistry:
        """Load a registry from a type table TOML file.

        Raises ConfigError on a missing file, malformed TOML or invalid rules.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            msg = f"Type table not found: {path}"
            raise ConfigError(msg) from e
        except tomllib.TOMLDecodeError as e:
            msg = f"Malformed TOML in {path}: {e}"
            raise ConfigError(msg) from e

        return cls._from_table_data(data, str(path))

    @classmethod
    def from_catalog(cls, rows: Iterable[tuple[Any, ...]]) -> TypeRegistry:
        """Build a registry from rows of CATALOG_TYPES_SQL.

        Each row is (oid, typname, typcategory, typdelim, typelem). Only
        true array types (names starting with "_") are decoded as arrays,
        and reg* types, which print as names, stay scalar.
        """
        rules: dict[int, DecodeRule] = {}
        for oid, typname, category, delimiter, element in rows:
            kind = _CATEGORY_KINDS.get(str(category))
            if kind is None:
                continue
            if kind == "array" and not str(typname).startswith("_"):
                continue
            if kind == "numeric" and str(typname).startswith("reg"):
                continue
            if kind == "array":
                rules[int(oid)] = DecodeRule(
                    kind="array", delimiter=str(delimiter), element=int(element)
                )
            else:
                rules[int(oid)] = DecodeRule(kind=kind)  # type: ignore[arg-type]
        return cls(rules)

    @classmethod
    def _from_table_data(cls, data: dict[str, Any], source: str) -> TypeRegistry:
        try:
            table = TypeTable.model_validate(data)
        except ValidationError as e:
            msg = f"Invalid type table in {source}: {e}"
            raise ConfigError(msg) from e
        return cls(table.types)


@functools.cache
def default_registry() -> TypeRegistry:
    """Return the registry built from the packaged type table.

    Loaded once per process; the registry is immutable.
    """
    resource = resources.files("pgtxn") / "data" / "pg_types.toml"
    data = tomllib.loads(resource.read_text(encoding="utf-8"))
    return TypeRegistry._from_table_data(data, "pgtxn/data/pg_types.toml")
