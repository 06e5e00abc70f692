"""CLI entry point for StillFresh."""

import json
import logging
from datetime import UTC, datetime, tzinfo
from pathlib import Path
from typing import Annotated
from zoneinfo import ZoneInfo

import typer
from rich.console import Console
from rich.logging import RichHandler

from .analytics import Analytics
from .config import ConfigManager
from .item_store import ItemStore
from .models import ExpiringSort, SortKey, StorageMode
from .output_formatter import OutputFormatter, bucket_to_dict, item_to_dict
from .receipt_mapper import ClassifierResponseError, IngestionResult, map_response
from .seed import mock_items
from .timestamps import local_zone, next_local_midnight, parse_instant

app = typer.Typer(
    name="still-fresh",
    help="Track what you bought and what is about to expire",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# Global state for formatter, config and clock (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
zone: tzinfo | None = None
fixed_now: datetime | None = None

FileOption = Annotated[
    Path | None,
    typer.Option("--file", "-f", help="Classifier response JSON; seed data if omitted"),
]
StorageOption = Annotated[
    list[StorageMode] | None,
    typer.Option("--storage", "-s", help="Only items in this storage (repeatable)"),
]


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_now() -> datetime:
    """Current time in the display timezone."""
    now = fixed_now or datetime.now(UTC)
    return now.astimezone(zone or local_zone())


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_items(file: Path | None) -> IngestionResult:
    """Map a classifier response file, or fall back to seed items."""
    now = get_now()
    if file is None:
        logger.debug("No --file given, using seed items")
        return IngestionResult(items=mock_items(now))

    with open(file) as f:
        body = json.load(f)
    return map_response(body, now=now, default_storage=get_config().ingestion.default_storage)


def load_store(file: Path | None) -> ItemStore:
    result = load_items(file)
    return ItemStore(result.items, undo_window=get_config().undo.window)


def fail(e: Exception) -> None:
    """Report a command failure through the formatter."""
    if isinstance(e, json.JSONDecodeError):
        formatter.error(f"Invalid JSON: {e}", error_code="INVALID_JSON")
    elif isinstance(e, ClassifierResponseError):
        formatter.error(str(e), error_code="BAD_RESPONSE")
    elif isinstance(e, FileNotFoundError):
        formatter.error(f"File not found: {e.filename}", error_code="FILE_NOT_FOUND")
    else:
        formatter.error(str(e))


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    tz: Annotated[
        str | None, typer.Option("--tz", help="IANA timezone for calendar days")
    ] = None,
    now: Annotated[
        str | None, typer.Option("--now", help="Pretend the current time is this ISO instant")
    ] = None,
    config_path: Annotated[
        Path | None, typer.Option("--config", help="Path to config.toml")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """StillFresh CLI - know what to eat before it goes off."""
    global formatter, config, zone, fixed_now

    formatter = OutputFormatter(json_mode=json_output)
    setup_logging(verbose)

    try:
        config = ConfigManager(config_path=config_path)
        zone = ZoneInfo(tz) if tz else config.display.zone()
        fixed_now = parse_instant(now) if now else None
    except Exception as e:
        formatter.error(str(e), error_code="BAD_OPTION")
        raise typer.Exit(code=1)


@app.command()
def ingest(file: FileOption = None) -> None:
    """Map a classifier response into items and report what was dropped."""
    try:
        now = get_now()
        result = load_items(file)
        output_data = {
            "success": True,
            "data": {
                "ingest": {
                    "items": [item_to_dict(i, now) for i in result.items],
                    "dropped": result.dropped,
                    "dropped_count": len(result.dropped),
                    "warnings": result.warnings,
                    "scan_group_id": result.scan_group_id,
                }
            },
        }
        formatter.output(output_data, f"Mapped {len(result.items)} items")
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


@app.command(name="items")
def list_items(
    file: FileOption = None,
    sort: Annotated[SortKey | None, typer.Option("--sort", help="Sort key")] = None,
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
    query: Annotated[str | None, typer.Option("--query", "-q", help="Search names")] = None,
    storage: StorageOption = None,
    expired: Annotated[bool, typer.Option("--expired", help="Only expired items")] = False,
    active: Annotated[bool, typer.Option("--active", help="Only items not expired")] = False,
) -> None:
    """List items, filtered and sorted."""
    if expired and active:
        formatter.error("Use only one of --expired and --active")
        raise typer.Exit(code=1)

    only_expired: bool | None = None
    if expired:
        only_expired = True
    elif active:
        only_expired = False

    try:
        now = get_now()
        store = load_store(file)
        items = store.get_items(
            now=now,
            query=query,
            storages=storage or None,
            expired=only_expired,
            sort=sort,
            descending=desc,
        )
        output_data = {
            "success": True,
            "data": {
                "items": [item_to_dict(i, now) for i in items],
                "total_items": len(items),
                "expired_count": Analytics(store).expired_count(now),
                "next_refresh": next_local_midnight(now),
            },
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


@app.command()
def expiring(
    file: FileOption = None,
    days: Annotated[
        int | None, typer.Option("--days", "-d", help="Days after today to include")
    ] = None,
    storage: StorageOption = None,
    sort: Annotated[
        ExpiringSort, typer.Option("--sort", help="Sort order")
    ] = ExpiringSort.SOONEST,
) -> None:
    """Show items expiring from today through the next few days."""
    try:
        now = get_now()
        days_ahead = days if days is not None else get_config().display.expiring_days_ahead
        items = Analytics(load_store(file)).expiring_within(
            days_ahead, now=now, storages=storage or None, sort=sort
        )
        output_data = {
            "success": True,
            "data": {"expiring": [item_to_dict(i, now) for i in items], "days": days_ahead},
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


@app.command()
def weekly(
    file: FileOption = None,
    weeks: Annotated[int | None, typer.Option("--weeks", "-w", help="Weeks of history")] = None,
) -> None:
    """Show saved, wasted and potential value per week."""
    try:
        now = get_now()
        analytics = Analytics(load_store(file))
        buckets = analytics.weekly_buckets(
            weeks if weeks is not None else get_config().display.weeks_back, now=now
        )
        previous, current = analytics.compare_weeks(now)
        output_data = {
            "success": True,
            "data": {
                "weekly": [bucket_to_dict(b) for b in buckets],
                "current_week": bucket_to_dict(current),
                "previous_week": bucket_to_dict(previous),
            },
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


@app.command()
def purchases(file: FileOption = None) -> None:
    """Show purchases grouped by day."""
    try:
        groups = Analytics(load_store(file)).purchase_groups(get_now())
        output_data = {
            "success": True,
            "data": {"purchases": [g.model_dump(mode="json") for g in groups]},
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


@app.command()
def history(
    name: Annotated[str, typer.Argument(help="Item name")],
    file: FileOption = None,
) -> None:
    """Show every purchase of an item, newest first."""
    try:
        now = get_now()
        items = Analytics(load_store(file)).item_history(name)

        if not items:
            formatter.warning(f"No purchases found for '{name}'")
            return

        output_data = {
            "success": True,
            "data": {"history": [item_to_dict(i, now) for i in items], "name": name},
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
