"""Settings for pgtxn.

One TOML file holds the transaction defaults, the type table override and
named connection profiles:

    isolation = "repeatable read"
    statement_timeout = 10
    type_table = "types.toml"        # relative to this file
    default_profile = "local"

    [profiles.local]
    dsn = "postgresql://app@localhost/app"

    [profiles.audit]
    host = "db.internal"
    dbname = "ledger"
    isolation = "serializable"

Connection parameters left unset are never sent, so libpq fills them from
the PG* environment variables and its own defaults.

Resolution order, later wins: file defaults, the selected profile
(--profile, then PGTXN_PROFILE, then default_profile), --dsn, then
explicit command-line options.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import psycopg
from psycopg.conninfo import conninfo_to_dict
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from pgtxn.core.exceptions import ConfigError
from pgtxn.core.models import IsolationLevel
from pgtxn.core.registry import TypeRegistry, default_registry

if TYPE_CHECKING:
    from collections.abc import Mapping

CONFIG_ENV = "PGTXN_CONFIG"
PROFILE_ENV = "PGTXN_PROFILE"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "pgtxn" / "config.toml"

SslMode = Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"]

CONNECTION_KEYS = (
    "host",
    "port",
    "dbname",
    "user",
    "password",
    "sslmode",
    "connect_timeout",
    "application_name",
)


class ConnectionParams(BaseModel):
    """libpq connection parameters. None means libpq decides."""

    model_config = ConfigDict(frozen=True)

    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    dbname: str | None = None
    user: str | None = None
    password: str | None = None
    sslmode: SslMode | None = None
    connect_timeout: int | None = Field(default=None, ge=0)
    application_name: str | None = "pgtxn"

    @classmethod
    def from_dsn(cls, dsn: str) -> ConnectionParams:
        """Parse a postgresql:// URI or a key=value conninfo string.

        Only the keys given in the DSN count as set, so merging a parsed DSN
        over a profile leaves the profile's other parameters alone.
        """
        try:
            params = conninfo_to_dict(dsn)
        except psycopg.ProgrammingError as e:
            msg = f"Invalid DSN {dsn!r}: {e}"
            raise ConfigError(msg) from e
        try:
            return cls.model_validate({k: v for k, v in params.items() if k in CONNECTION_KEYS})
        except ValidationError as e:
            msg = f"Invalid DSN {dsn!r}: {e}"
            raise ConfigError(msg) from e

    def explicit(self) -> dict[str, Any]:
        return self.model_dump(include=self.model_fields_set)

    def merged(self, overrides: Mapping[str, Any]) -> ConnectionParams:
        """Return a copy with every non-None override applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return type(self).model_validate({**self.model_dump(), **updates})

    def connect_kwargs(self) -> dict[str, Any]:
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def describe(self) -> str:
        """host:port/dbname for messages, without credentials."""
        host = self.host or "(default host)"
        port = self.port or 5432
        dbname = self.dbname or "(default database)"
        return f"{host}:{port}/{dbname}"


class Profile(BaseModel):
    """A [profiles.NAME] table: connection parameters plus transaction defaults."""

    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    dbname: str | None = None
    user: str | None = None
    password: str | None = None
    sslmode: str | None = None
    connect_timeout: int | None = None
    application_name: str | None = None
    isolation: IsolationLevel | None = None
    statement_timeout: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_connection(self) -> Profile:
        self.connection()
        return self

    def connection(self) -> ConnectionParams:
        """Parameters from dsn, overridden by the profile's individual keys."""
        base = ConnectionParams.from_dsn(self.dsn) if self.dsn else ConnectionParams()
        return base.merged({key: getattr(self, key) for key in CONNECTION_KEYS})


class Settings(BaseModel):
    """Effective settings for one command run."""

    model_config = ConfigDict(frozen=True)

    connection: ConnectionParams = ConnectionParams()
    isolation: IsolationLevel = IsolationLevel.COMMITTED
    statement_timeout: float = Field(default=30.0, gt=0)
    output_format: str = "json"
    type_table: Path | None = None
    sentry_dsn: str | None = None
    profile: str | None = None

    def registry(self) -> TypeRegistry:
        """Packaged type registry, overridden by type_table when set."""
        registry = default_registry()
        if self.type_table is not None:
            registry = registry.merged(TypeRegistry.from_toml(self.type_table))
        return registry


class PgTxnConfig(BaseModel):
    """Contents of the config file."""

    isolation: IsolationLevel = IsolationLevel.COMMITTED
    statement_timeout: float = Field(default=30.0, gt=0)
    output_format: str = "json"
    type_table: Path | None = None
    sentry_dsn: str | None = None
    default_profile: str | None = None
    profiles: dict[str, Profile] = {}

    @field_validator("type_table")
    @classmethod
    def relative_to_config_file(cls, v: Path | None, info: ValidationInfo) -> Path | None:
        base_dir = (info.context or {}).get("base_dir")
        if v is not None and base_dir is not None and not v.is_absolute():
            return base_dir / v
        return v

    def profile(self, name: str) -> Profile:
        try:
            return self.profiles[name]
        except KeyError:
            available = ", ".join(sorted(self.profiles)) or "none"
            msg = f"Unknown profile: '{name}'. Available profiles: {available}"
            raise ConfigError(msg) from None

    def settings(
        self,
        profile: str | None = None,
        *,
        dsn: str | None = None,
        connection: Mapping[str, Any] | None = None,
        isolation: IsolationLevel | None = None,
        statement_timeout: float | None = None,
        type_table: Path | None = None,
        output_format: str | None = None,
    ) -> Settings:
        """Resolve the settings for one run from this file and CLI options."""
        name = profile or os.environ.get(PROFILE_ENV) or self.default_profile
        params = ConnectionParams()
        level = self.isolation
        timeout = self.statement_timeout
        if name:
            selected = self.profile(name)
            params = selected.connection()
            level = selected.isolation or level
            timeout = selected.statement_timeout or timeout
        if dsn:
            params = params.merged(ConnectionParams.from_dsn(dsn).explicit())
        if connection:
            try:
                params = params.merged(connection)
            except ValidationError as e:
                msg = f"Invalid connection option: {e}"
                raise ConfigError(msg) from e

        try:
            return Settings(
                connection=params,
                isolation=isolation or level,
                statement_timeout=statement_timeout or timeout,
                output_format=output_format or self.output_format,
                type_table=type_table or self.type_table,
                sentry_dsn=self.sentry_dsn,
                profile=name,
            )
        except ValidationError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigError(msg) from e


def load_config(path: Path | None = None) -> PgTxnConfig:
    """Read the config file; a missing file means all defaults.

    The path defaults to $PGTXN_CONFIG, then ~/.config/pgtxn/config.toml.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return PgTxnConfig()
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {path}: {e}"
        raise ConfigError(msg) from e

    try:
        return PgTxnConfig.model_validate(data, context={"base_dir": path.parent})
    except ValidationError as e:
        msg = f"Invalid configuration in {path}: {e}"
        raise ConfigError(msg) from e
