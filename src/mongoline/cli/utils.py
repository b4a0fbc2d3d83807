"""
CLI utility helpers: config resolution and output formatting.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mongoline.adapter.types import MongoConfig, parse_url
from mongoline.core.errors import MongolineError
from mongoline.core.result import Err, Result
from mongoline.core.settings import get_settings

console = Console()
err_console = Console(stderr=True)


def resolve_config(url: str | None) -> MongoConfig:
    """``--url`` if given, else ``MONGOLINE_URL``."""
    try:
        return parse_url(url) if url else get_settings().to_config()
    except MongolineError as e:
        fail(e)


def parse_json_option(raw: str | None, name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error[/bold red]: {name} is not valid JSON ({e.msg})")
        raise typer.Exit(code=2) from e


def fail(error: Exception) -> NoReturn:
    """Print an error and exit non-zero."""
    if isinstance(error, MongolineError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {escape(error.message)}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {escape(str(error))}")
    raise typer.Exit(code=1)


def output_result(result: Result[Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a ``Result`` to the terminal."""
    if isinstance(result, Err):
        fail(result.error)

    data = result.value

    if as_json:
        console.print_json(json.dumps(data, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No records.[/dim]")
            return
        print_table(data, title=title)
    else:
        console.print(data)


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table. Columns are the union of keys."""
    columns: list[str] = []
    for row in rows:
        columns.extend(key for key in row if key not in columns)

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*(escape(str(row.get(column, ""))) for column in columns))
    console.print(table)
