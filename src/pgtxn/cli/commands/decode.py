"""Offline decoding commands: cast and types."""

from __future__ import annotations

import json
from typing import Annotated

import typer

from pgtxn.cli.commands._shared import formatter_for, get_settings
from pgtxn.cli.output import write_output
from pgtxn.core.decoder import cast
from pgtxn.core.exceptions import ParseError
from pgtxn.core.exit_codes import ExitCode
from pgtxn.core.models import ColumnMeta


def cast_command(
    ctx: typer.Context,
    oid: Annotated[int, typer.Argument(help="Catalog type OID of the value")],
    text: Annotated[str, typer.Argument(help="Text form of the value, as sent by the server")],
) -> None:
    """Decode one text value of the given type OID and print it as JSON."""
    registry = get_settings(ctx).registry()
    try:
        value = cast(oid, text, registry)
    except ParseError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    typer.echo(json.dumps(value))


_RULE_COLUMNS = (
    ColumnMeta(name="oid", type_oid=26),
    ColumnMeta(name="kind", type_oid=25),
    ColumnMeta(name="element", type_oid=26),
    ColumnMeta(name="delimiter", type_oid=18),
)


def types_command(
    ctx: typer.Context,
    oid: Annotated[
        int | None,
        typer.Option("--oid", help="Show the rule for a single OID"),
    ] = None,
) -> None:
    """List the decode rules of the active type registry."""
    settings = get_settings(ctx)
    registry = settings.registry()

    if oid is not None:
        entries = [(oid, registry.rule(oid))]
    else:
        entries = registry.items()

    rows = [
        {
            "oid": type_oid,
            "kind": rule.kind,
            "element": rule.element if rule.kind == "array" else None,
            "delimiter": rule.delimiter if rule.kind == "array" else None,
        }
        for type_oid, rule in entries
    ]
    write_output(formatter_for(ctx, settings), _RULE_COLUMNS, rows)
