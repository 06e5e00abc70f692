"""Output formatting for CLI and programmatic use."""

import json
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from rich.console import Console
from rich.table import Table

from .expiry import (
    days_until_expiry,
    effective_expiry,
    effective_expiry_day_local,
    expiry_countdown,
    shelf_life_fraction,
    urgency,
)
from .models import ReceiptItem, StorageMode, Urgency, WeekBucket
from .timestamps import format_instant

_URGENCY_STYLE = {
    Urgency.EXPIRED.value: "[red]expired[/red]",
    Urgency.SOON.value: "[yellow]soon[/yellow]",
    Urgency.FRESH.value: "[green]fresh[/green]",
}


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for output."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return format_instant(obj)
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.isoformat()
        return super().default(obj)


def item_to_dict(item: ReceiptItem, now: datetime) -> dict[str, Any]:
    """Serialize an item with the derived fields a viewer at ``now`` sees."""
    expiry = effective_expiry(item)
    expiry_day = effective_expiry_day_local(item, now.tzinfo)  # type: ignore[arg-type]
    data = item.model_dump(mode="json")
    data.update(
        display_name=item.display_name,
        effective_expiry=format_instant(expiry) if expiry else None,
        expiry_day=expiry_day.isoformat() if expiry_day else None,
        urgency=urgency(item, now).value,
        days_until_expiry=days_until_expiry(item, now),
        expiry_countdown=expiry_countdown(item, now),
        shelf_life_fraction=round(shelf_life_fraction(item, now), 3),
        effective_total_cost=round(item.effective_total_cost, 2),
    )
    return data


def _expires_cell(item: dict[str, Any]) -> str:
    countdown = item.get("expiry_countdown")
    if countdown and countdown != "expired":
        return countdown
    return item.get("expiry_day") or "-"


def bucket_to_dict(bucket: WeekBucket) -> dict[str, Any]:
    data = bucket.model_dump(mode="json")
    data["total"] = bucket.total
    return data


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False, console: Console | None = None):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
            console: Rich console to render to; stdout if not given
        """
        self.json_mode = json_mode
        self.console = console or Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "ingest" in payload:
            self._render_ingest(data)
        elif "expiring" in payload:
            self._render_expiring(data)
        elif "weekly" in payload:
            self._render_weekly(data)
        elif "purchases" in payload:
            self._render_purchases(data)
        elif "history" in payload:
            self._render_history(data)
        elif "items" in payload:
            self._render_items(data)

    def _item_table(self, items: list[dict], title: str | None = None) -> Table:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan", no_wrap=False)
        table.add_column("Qty", style="magenta", justify="right")
        table.add_column("Storage", style="blue")
        table.add_column("Expires")
        table.add_column("Status")
        table.add_column("Cost", justify="right")

        for item in items:
            status = _URGENCY_STYLE.get(item.get("urgency", ""), "-")
            if item.get("is_used"):
                status = "[dim]used[/dim]"
            table.add_row(
                item.get("display_name", item["name"]),
                f"×{item.get('quantity', 1)}",
                StorageMode(item.get("selected_storage") or item["default_storage"]).label,
                _expires_cell(item),
                status,
                f"${item.get('effective_total_cost', 0):.2f}",
            )
        return table

    def _render_items(self, data: dict) -> None:
        """Render an item projection."""
        items = data["data"]["items"]

        if not items:
            self.console.print("[dim]No items[/dim]")
            return

        self.console.print(self._item_table(items, title="Items"))
        self.console.print(f"\nTotal items: {len(items)}")
        if "expired_count" in data["data"]:
            self.console.print(f"Expired: {data['data']['expired_count']}")

    def _render_ingest(self, data: dict) -> None:
        """Render the result of mapping a classifier response."""
        ingest = data["data"]["ingest"]
        items = ingest["items"]

        if items:
            self.console.print(self._item_table(items, title="Scanned Items"))
        else:
            self.console.print("[dim]No items mapped[/dim]")

        self.console.print(f"\nMapped: {len(items)}")
        if ingest.get("dropped"):
            self.console.print(f"[yellow]Dropped: {len(ingest['dropped'])}[/yellow]")
            for reason in ingest["dropped"]:
                self.console.print(f"  - {reason}")
        for warning in ingest.get("warnings", []):
            self.console.print(f"[yellow]⚠[/yellow] {warning}")

    def _render_expiring(self, data: dict) -> None:
        """Render items expiring within the window."""
        items = data["data"]["expiring"]
        days = data["data"].get("days", 2)

        if not items:
            self.console.print(f"[dim]Nothing expiring in the next {days} days[/dim]")
            return

        self.console.print(f"\n[bold red]Expiring Within {days} Days[/bold red]")
        self.console.print(self._item_table(items))

    def _render_weekly(self, data: dict) -> None:
        """Render weekly saved/wasted/potential buckets."""
        weeks = data["data"]["weekly"]
        current = data["data"].get("current_week")

        if current:
            self.console.print(f"\n[bold]This Week ({current['week_start']})[/bold]")
            self.console.print(f"Saved: [green]${current['saved']:.2f}[/green]")
            self.console.print(f"Wasted: [red]${current['wasted']:.2f}[/red]")
            self.console.print(f"Potential: ${current['potential']:.2f}")

        table = Table(title="Weekly History", show_header=True, header_style="bold")
        table.add_column("Week of")
        table.add_column("Saved", justify="right", style="green")
        table.add_column("Wasted", justify="right", style="red")
        table.add_column("Potential", justify="right")

        for week in weeks:
            table.add_row(
                str(week["week_start"]),
                f"${week['saved']:.2f}",
                f"${week['wasted']:.2f}",
                f"${week['potential']:.2f}",
            )
        self.console.print(table)

    def _render_purchases(self, data: dict) -> None:
        """Render purchase groups by day."""
        groups = data["data"]["purchases"]

        if not groups:
            self.console.print("[dim]No purchases[/dim]")
            return

        table = Table(title="Purchases", show_header=True, header_style="bold")
        table.add_column("Day")
        table.add_column("Items", justify="right")
        table.add_column("Quantity", justify="right")

        for group in groups:
            table.add_row(
                str(group["day"]), str(group["item_count"]), str(group["total_quantity"])
            )
        self.console.print(table)

    def _render_history(self, data: dict) -> None:
        """Render past purchases of one item."""
        history = data["data"]["history"]
        name = data["data"].get("name", "")

        self.console.print(f"\n[bold]Purchase History: {name}[/bold]")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Purchased")
        table.add_column("Qty", justify="right")
        table.add_column("Expires")
        table.add_column("Cost", justify="right")

        for item in history:
            table.add_row(
                item["purchased_at"][:10],
                f"×{item.get('quantity', 1)}",
                item.get("expiry_day") or "-",
                f"${item.get('effective_total_cost', 0):.2f}",
            )
        self.console.print(table)

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def warning(self, message: str) -> None:
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
