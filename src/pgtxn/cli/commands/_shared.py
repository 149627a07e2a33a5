"""Shared CLI plumbing for command modules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pgtxn.cli.output import get_formatter
from pgtxn.core.config import load_config

if TYPE_CHECKING:
    import typer

    from pgtxn.core.config import PgTxnConfig, Settings
    from pgtxn.core.models import IsolationLevel
    from pgtxn.formatters.base import Formatter


def _config(ctx: typer.Context) -> PgTxnConfig:
    obj = ctx.ensure_object(dict)
    if obj.get("config") is None:
        obj["config"] = load_config(obj.get("config_file"))
    return obj["config"]


def get_settings(
    ctx: typer.Context,
    *,
    isolation: IsolationLevel | None = None,
    statement_timeout: float | None = None,
) -> Settings:
    """Resolve settings from the config file and the global options."""
    obj = ctx.ensure_object(dict)
    return _config(ctx).settings(
        obj.get("profile"),
        dsn=obj.get("dsn"),
        connection={
            "host": obj.get("host"),
            "port": obj.get("port"),
            "dbname": obj.get("database"),
            "user": obj.get("user"),
            "password": obj.get("password"),
        },
        isolation=isolation,
        statement_timeout=statement_timeout,
        type_table=obj.get("type_table"),
        output_format=obj.get("format"),
    )


def formatter_for(ctx: typer.Context, settings: Settings) -> Formatter:
    obj = ctx.ensure_object(dict)
    return get_formatter(
        settings.output_format,
        compact=obj.get("compact", False),
        no_header=obj.get("no_header", False),
    )
