"""
Command-line interface for tiercache.

Maintenance commands for a deployment's policy table and for a durable cache
directory written by ``JsonFilePersistence``.

Main Commands:
    policies: Print the resolved policy table
    inspect: List durable keys with their age, remaining TTL and size
    purge: Remove durable keys, optionally by substring or expiry

Example Usage:
    Show the default policies as JSON:
        $ tiercache policies --format json

    Inspect a cache directory:
        $ tiercache inspect ~/.cache/erp

    Remove every durable order entry:
        $ tiercache purge ~/.cache/erp --pattern orders
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ..core.config import now_ms
from ..core.policy import PolicyRegistry
from ..persistence.adapters import JsonFilePersistence
from ..persistence.records import is_record, remaining_ttl
from ..utils.error_handling import ConfigurationError
from ..utils.logging_config import LogFormat, LogLevel, configure_logging
from ..utils.serialization import format_bytes, to_json_bytes


def _format_ms(value: float | None) -> str:
    if value is None:
        return "-"
    seconds = value / 1000
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    if seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    return f"{seconds / 86400:.1f}d"


def _load_registry(config_file: str | None) -> PolicyRegistry:
    if config_file is None:
        return PolicyRegistry()
    try:
        return PolicyRegistry.from_toml(config_file)
    except ConfigurationError as e:
        click.echo(f"Error loading policies: {e}", err=True)
        sys.exit(1)


async def _collect_entries(directory: Path) -> list[dict[str, Any]]:
    persistence = JsonFilePersistence(directory)
    now = now_ms()
    rows = []
    for key in sorted(await persistence.keys()):
        data = await persistence.load(key)
        row: dict[str, Any] = {
            "key": key,
            "size_bytes": persistence.entry_size(key),
            "age_ms": None,
            "remaining_ms": None,
        }
        if is_record(data):
            row["age_ms"] = now - float(data["timestamp"])
            row["remaining_ms"] = remaining_ttl(data, now)
        rows.append(row)
    return rows


async def _purge(directory: Path, pattern: str | None, expired_only: bool) -> int:
    persistence = JsonFilePersistence(directory)
    now = now_ms()
    removed = 0
    for key in await persistence.keys():
        if pattern is not None and pattern not in key:
            continue
        if expired_only:
            data = await persistence.load(key)
            if not is_record(data) or remaining_ttl(data, now) > 0:
                continue
        if await persistence.remove(key):
            removed += 1
    return removed


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
@click.option(
    "--log-format",
    type=click.Choice([f.value for f in LogFormat]),
    default=LogFormat.SIMPLE.value,
    help="Log line format on stderr",
)
def cli(debug: bool, log_format: str) -> None:
    """tiercache - Tiered cache and persistence maintenance"""
    configure_logging(
        level=LogLevel.DEBUG if debug else LogLevel.WARNING,
        format_type=LogFormat(log_format),
    )


@cli.command("policies")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="TOML policy file")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table", help="Output format")
def policies_cmd(config_file: str | None, fmt: str) -> None:
    """Print the policy table."""
    registry = _load_registry(config_file)

    if fmt == "json":
        rows = [
            {
                "resource_key": policy.resource_key,
                "category": policy.category.value,
                "ttl_ms": policy.ttl_ms,
                "persist": policy.persist,
                "auto_refresh": policy.auto_refresh,
                "refresh_interval_ms": policy.refresh_interval_ms,
                "priority": policy.priority.name,
            }
            for policy in registry.all_policies()
        ]
        click.echo(to_json_bytes(rows).decode("utf-8"))
        return

    table = Table(title="Cache policies")
    for column in ("Resource", "Category", "TTL", "Persist", "Refresh", "Priority"):
        table.add_column(column)
    for policy in registry.all_policies():
        table.add_row(
            policy.resource_key,
            policy.category.value,
            _format_ms(policy.ttl_ms),
            "yes" if policy.persist else "no",
            _format_ms(policy.refresh_interval_ms) if policy.auto_refresh else "-",
            policy.priority.name,
        )
    Console().print(table)


@cli.command("inspect")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table", help="Output format")
def inspect_cmd(directory: Path, fmt: str) -> None:
    """List durable keys stored in DIRECTORY."""
    rows = asyncio.run(_collect_entries(directory))

    if fmt == "json":
        click.echo(to_json_bytes(rows).decode("utf-8"))
        return

    if not rows:
        click.echo("No durable entries")
        return

    table = Table(title=f"Durable entries in {directory}")
    for column in ("Key", "Age", "Expires in", "Size"):
        table.add_column(column)
    for row in rows:
        remaining = row["remaining_ms"]
        expires = "expired" if remaining is not None and remaining <= 0 else _format_ms(remaining)
        table.add_row(row["key"], _format_ms(row["age_ms"]), expires, format_bytes(row["size_bytes"]))
    Console().print(table)


@cli.command("purge")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--pattern", help="Only remove keys containing this substring")
@click.option("--expired", "expired_only", is_flag=True, default=False, help="Only remove expired records")
def purge_cmd(directory: Path, pattern: str | None, expired_only: bool) -> None:
    """Remove durable keys stored in DIRECTORY."""
    removed = asyncio.run(_purge(directory, pattern, expired_only))
    click.echo(f"Removed {removed} durable entries")


def main() -> None:
    cli(prog_name="tiercache")


if __name__ == "__main__":
    main()
