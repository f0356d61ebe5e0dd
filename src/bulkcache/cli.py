"""
CLI: ``bulkcache`` — inspect and stage entries from the command line.

Keys are strings; values use the string codec unless ``--codec json`` is
given. Connection settings come from ``BULKCACHE_*`` environment variables
and can be overridden with ``--url`` / ``--ttl``.

Examples::

    bulkcache put order:1 '{"id": 1}' --codec json
    bulkcache get order:1 --codec json
    bulkcache get-and-put-if-absent order:1=a order:2=b --json
    bulkcache get-and-put-if-absent --file records.json
    bulkcache remove order:1 order:2
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from bulkcache import __version__
from bulkcache.cache import RedisBulkCacheClient
from bulkcache.errors import CacheError
from bulkcache.logging import configure_logging
from bulkcache.serialization import (
    JsonDeserializer,
    JsonSerializer,
    StringDeserializer,
    StringSerializer,
)
from bulkcache.settings import BulkCacheSettings

app = typer.Typer(
    name="bulkcache",
    help="bulkcache — bulk atomic cache client over Redis.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)

KEY_SERIALIZER = StringSerializer()


class Codec(str, Enum):
    string = "string"
    json = "json"


def _value_codec(codec: Codec) -> tuple[Any, Any]:
    if codec is Codec.json:
        return JsonSerializer(), JsonDeserializer()
    return StringSerializer(), StringDeserializer()


def _parse_value(raw: str, codec: Codec) -> Any:
    if codec is Codec.json:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Not valid JSON: {raw!r}") from exc
    return raw


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"bulkcache {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    url: str | None = typer.Option(None, "--url", "-u", help="Redis URL (overrides BULKCACHE_REDIS_URL)."),
    ttl: str | None = typer.Option(None, "--ttl", help="Entry TTL, e.g. '60' or '5 mins'; '0' never expires."),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """bulkcache CLI — get, put and bulk-stage entries in Redis."""
    overrides: dict[str, Any] = {}
    if url:
        overrides["redis_url"] = url
    if ttl is not None:
        overrides["ttl"] = ttl
    try:
        settings = BulkCacheSettings(**overrides)
    except ValidationError as exc:
        err_console.print(f"[bold red]Error[/bold red] (CONFIG): {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1) from exc
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    ctx.obj = settings


def _run(ctx: typer.Context, action: Any) -> Any:
    """Run ``action(client)`` on a client built from the CLI settings."""
    client = RedisBulkCacheClient.from_settings(ctx.obj)
    try:
        return action(client)
    except CacheError as exc:
        hint = " (retryable)" if exc.retryable else ""
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}){hint}: {exc.message}")
        raise typer.Exit(code=1) from exc
    finally:
        client.disable()


def _print_value(value: Any, *, as_json: bool) -> None:
    if as_json:
        console.print_json(json.dumps(value, default=str))
    elif value is None:
        console.print("[dim](nil)[/dim]")
    else:
        console.print(value if isinstance(value, str) else json.dumps(value), highlight=False)


@app.command("get")
def get_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to look up."),
    codec: Codec = typer.Option(Codec.string, "--codec", "-c"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the value stored under KEY."""
    _, deserializer = _value_codec(codec)
    value = _run(ctx, lambda client: client.get(key, KEY_SERIALIZER, deserializer))
    _print_value(value, as_json=json_out)


@app.command("contains")
def contains_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to check."),
) -> None:
    """Exit 0 if KEY exists, 2 otherwise."""
    present = _run(ctx, lambda client: client.contains_key(key, KEY_SERIALIZER))
    console.print("present" if present else "absent")
    if not present:
        raise typer.Exit(code=2)


@app.command("put")
def put_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(...),
    value: str = typer.Argument(...),
    codec: Codec = typer.Option(Codec.string, "--codec", "-c"),
) -> None:
    """Store VALUE under KEY, overwriting."""
    serializer, _ = _value_codec(codec)
    parsed = _parse_value(value, codec)
    _run(ctx, lambda client: client.put(key, parsed, KEY_SERIALIZER, serializer))
    console.print(f"[green]stored[/green] {key}")


@app.command("put-if-absent")
def put_if_absent_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(...),
    value: str = typer.Argument(...),
    codec: Codec = typer.Option(Codec.string, "--codec", "-c"),
) -> None:
    """Store VALUE under KEY only if KEY is absent."""
    serializer, _ = _value_codec(codec)
    parsed = _parse_value(value, codec)
    inserted = _run(ctx, lambda client: client.put_if_absent(key, parsed, KEY_SERIALIZER, serializer))
    console.print(f"[green]inserted[/green] {key}" if inserted else f"[yellow]exists[/yellow] {key}")


@app.command("remove")
def remove_cmd(
    ctx: typer.Context,
    keys: list[str] = typer.Argument(..., help="Keys to delete."),
) -> None:
    """Delete KEYS and print how many existed."""
    removed = _run(ctx, lambda client: client.remove(keys, KEY_SERIALIZER))
    console.print(str(removed))


def _load_pairs(pairs: list[str], file: Path | None, codec: Codec) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if file is not None:
        try:
            loaded = json.loads(file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Not valid JSON: {exc}", param_hint="--file") from exc
        if not isinstance(loaded, dict):
            raise typer.BadParameter("File must contain a JSON object of key → value", param_hint="--file")
        for key, value in loaded.items():
            values[key] = value if codec is Codec.json else str(value)
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}")
        values[key] = _parse_value(raw, codec)
    return values


@app.command("get-and-put-if-absent")
def get_and_put_if_absent_cmd(
    ctx: typer.Context,
    pairs: list[str] = typer.Argument(None, help="KEY=VALUE pairs."),
    file: Path | None = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="JSON object of key → value."),
    codec: Codec = typer.Option(Codec.string, "--codec", "-c"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Insert every absent key in one atomic batch; show previous values."""
    serializer, deserializer = _value_codec(codec)
    values = _load_pairs(pairs or [], file, codec)
    result = _run(
        ctx,
        lambda client: client.get_and_put_if_absent(values, KEY_SERIALIZER, serializer, deserializer),
    )

    if json_out:
        console.print_json(json.dumps(result, default=str))
        return
    if not result:
        console.print("[dim]No items.[/dim]")
        return

    table = Table(show_lines=False, pad_edge=False)
    table.add_column("key", overflow="fold")
    table.add_column("status")
    table.add_column("previous", overflow="fold")
    for key, previous in result.items():
        if previous is None:
            table.add_row(key, "[green]inserted[/green]", "")
        else:
            shown = previous if isinstance(previous, str) else json.dumps(previous)
            table.add_row(key, "[yellow]existing[/yellow]", shown)
    console.print(table)


__all__ = ["app"]
