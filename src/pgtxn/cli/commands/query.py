from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING, Annotated

import structlog
import typer

from pgtxn.cli.commands._shared import formatter_for, get_settings
from pgtxn.cli.output import stream_output
from pgtxn.core.exceptions import InputError
from pgtxn.core.exit_codes import ExitCode
from pgtxn.core.handle import connect
from pgtxn.core.logging import get_logger
from pgtxn.core.models import IsolationLevel
from pgtxn.core.sql_input import is_terminal, read_sql
from pgtxn.core.transaction import begin_transaction

if TYPE_CHECKING:
    from pgtxn.core.config import Settings
    from pgtxn.formatters.base import Formatter


def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute, or - for stdin"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL query"),
    ] = None,
    isolation: Annotated[
        str | None,
        typer.Option(
            "--isolation",
            "-i",
            help="Isolation level: uncommitted|committed|repeatable|serializable",
        ),
    ] = None,
    rollback: Annotated[
        bool,
        typer.Option("--rollback", help="Roll back instead of committing"),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Statement timeout in seconds"),
    ] = None,
) -> None:
    """Execute SQL inside a transaction and print every result's rows."""
    if execute is None and file is None and is_terminal(sys.stdin):
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        sql = read_sql(execute, file)
        level = _parse_isolation(isolation)
    except InputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    settings = get_settings(ctx, isolation=level, statement_timeout=timeout)
    formatter = formatter_for(ctx, settings)
    asyncio.run(run_in_transaction(settings, sql, formatter, rollback=rollback))


def _parse_isolation(value: str | None) -> IsolationLevel | None:
    if value is None:
        return None
    try:
        return IsolationLevel(value)
    except ValueError:
        names = "|".join(level.name.lower() for level in IsolationLevel)
        msg = f"Invalid isolation level: '{value}'. Must be one of: {names}"
        raise InputError(msg) from None


async def run_in_transaction(
    settings: Settings,
    sql: str,
    formatter: Formatter,
    *,
    rollback: bool = False,
) -> None:
    """Run sql in one transaction, streaming every result through formatter."""
    handle = await connect(settings)
    returned = asyncio.Event()

    with structlog.contextvars.bound_contextvars(
        isolation=settings.isolation.value, profile=settings.profile
    ):
        log = get_logger()
        try:
            transaction = await begin_transaction(handle, returned.set, settings.isolation)
            try:
                result = await transaction.query(sql)
                while result is not None:
                    if result.get_column_count():
                        await stream_output(formatter, result.columns, result)
                    else:
                        await result.aclose()
                    result = await result.get_next_result()
            except BaseException:
                if transaction.is_active():
                    await transaction.rollback()
                raise

            if rollback:
                await transaction.rollback()
            else:
                await transaction.commit()

            if returned.is_set():
                log.debug("handle returned", committed=not rollback)
            else:
                log.warning("handle still referenced after transaction end")
        finally:
            await handle.close()
