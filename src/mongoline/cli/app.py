"""
Root Typer application for the mongoline CLI.

Commands:
    mongoline indexes definition.json     print the index plan (no I/O)
    mongoline ping [--url URL]            open and close a connection
    mongoline find IDENTITY [--where ...] print matching records
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from mongoline.cli.utils import (
    console,
    fail,
    output_result,
    parse_json_option,
    print_table,
    resolve_config,
)
from mongoline.core.errors import MongolineError
from mongoline.core.logging import configure_logging
from mongoline.core.settings import get_settings

app = typer.Typer(
    name="mongoline",
    help="mongoline: ORM collection adapter for MongoDB.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from mongoline import __version__

        typer.echo(f"mongoline {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Inspect collection schemas and query MongoDB."""
    settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


@app.command()
def indexes(
    definition: Path = typer.Argument(..., exists=True, dir_okay=False, help="Collection definition JSON"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the indexes a collection definition would create."""
    from mongoline.adapter.indexes import build_indexes
    from mongoline.adapter.schema import parse_schema

    try:
        raw = json.loads(definition.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        fail(e)
    if not isinstance(raw, dict):
        fail(ValueError(f"{definition} must contain a JSON object"))

    identity = str(raw.get("identity", definition.stem)).lower()
    try:
        descriptors = build_indexes(parse_schema(raw.get("definition", raw.get("attributes")), identity=identity))
    except MongolineError as e:
        fail(e)

    if json_out:
        console.print_json(json.dumps([d.to_dict() for d in descriptors]))
        return
    if not descriptors:
        console.print(f"[dim]No indexes for {identity}.[/dim]")
        return

    print_table(
        [{"field": d.field, "unique": d.unique, "sparse": d.options["sparse"]} for d in descriptors],
        title=f"Indexes: {identity}",
    )


@app.command()
def ping(
    url: str | None = typer.Option(None, "--url", "-u", help="Connection URL (default: MONGOLINE_URL)"),
) -> None:
    """Check that the server answers."""
    from mongoline.adapter.connection import connection_scope

    config = resolve_config(url)

    async def _ping() -> None:
        async with connection_scope(config):
            pass

    try:
        asyncio.run(_ping())
    except MongolineError as e:
        fail(e)
    console.print(f"[green]OK[/green] {config.redacted()}")


@app.command()
def find(
    identity: str = typer.Argument(..., help="Collection identity"),
    where: str | None = typer.Option(None, "--where", "-w", help="where clause as JSON"),
    sort: str | None = typer.Option(None, "--sort", "-s", help='e.g. "name ASC"'),
    limit: int | None = typer.Option(None, "--limit", "-n", min=0),
    url: str | None = typer.Option(None, "--url", "-u", help="Connection URL (default: MONGOLINE_URL)"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Print records matching a where clause."""
    from mongoline.adapter.collection import Collection

    config = resolve_config(url)
    criteria = {"where": parse_json_option(where, "--where"), "sort": sort, "limit": limit}

    try:
        collection = Collection({"identity": identity, "config": config})
    except MongolineError as e:
        fail(e)

    result = asyncio.run(collection.find({k: v for k, v in criteria.items() if v is not None}))
    output_result(result, as_json=json_out, title=collection.identity)
