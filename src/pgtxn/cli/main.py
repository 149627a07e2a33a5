"""pgtxn main entry point and command registration."""

from __future__ import annotations

import atexit
from pathlib import Path  # noqa: TC003
from typing import Annotated

import sentry_sdk
import typer

from pgtxn.__about__ import __version__
from pgtxn.cli.commands.decode import cast_command, types_command
from pgtxn.cli.commands.query import query_command
from pgtxn.cli.output import OutputFormat  # noqa: TC001
from pgtxn.core.config import load_config
from pgtxn.core.exceptions import PgTxnError
from pgtxn.core.logging import setup_logging
from pgtxn.core.monitoring import setup_sentry

app = typer.Typer(
    help="pgtxn - typed PostgreSQL result streams inside pooled transactions",
    no_args_is_help=True,
)

app.command("query")(query_command)
app.command("cast")(cast_command)
app.command("types")(types_command)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pgtxn {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging"),
    ] = False,
    log_json: Annotated[
        bool,
        typer.Option("--log-json", help="Log to stderr as JSON lines"),
    ] = False,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-P", help="Named connection profile"),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", "-H", help="PostgreSQL host"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="PostgreSQL port"),
    ] = None,
    database: Annotated[
        str | None,
        typer.Option("--database", "-d", help="Database name"),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-U", help="User name"),
    ] = None,
    password: Annotated[
        str | None,
        typer.Option("--password", "-W", help="Password"),
    ] = None,
    dsn: Annotated[
        str | None,
        typer.Option("--dsn", help="Connection DSN"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config file"),
    ] = None,
    type_table: Annotated[
        Path | None,
        typer.Option("--type-table", help="TOML type table overriding the built-in one"),
    ] = None,
    format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format: json|jsonl|csv|table"),
    ] = None,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Compact JSON output (no indentation)"),
    ] = False,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", help="Suppress header row in CSV output"),
    ] = False,
) -> None:
    """pgtxn - typed PostgreSQL result streams inside pooled transactions."""
    setup_logging(verbose, json_logs=log_json)
    config = load_config(config_file)
    if setup_sentry(config.sentry_dsn):
        transaction = sentry_sdk.start_transaction(
            op="cli", name=ctx.invoked_subcommand or "pgtxn"
        )
        transaction.__enter__()

        def cleanup() -> None:
            transaction.__exit__(None, None, None)
            sentry_sdk.flush(timeout=2)

        atexit.register(cleanup)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["profile"] = profile
    ctx.obj["host"] = host
    ctx.obj["port"] = port
    ctx.obj["database"] = database
    ctx.obj["user"] = user
    ctx.obj["password"] = password
    ctx.obj["dsn"] = dsn
    ctx.obj["config_file"] = config_file
    ctx.obj["config"] = config
    ctx.obj["type_table"] = type_table
    ctx.obj["format"] = format.value if format else None
    ctx.obj["compact"] = compact
    ctx.obj["no_header"] = no_header


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except PgTxnError as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None
