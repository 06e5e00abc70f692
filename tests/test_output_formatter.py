"""Tests for output formatting."""

import json
import re
from datetime import UTC, date, datetime, time
from io import StringIO
from uuid import uuid4

import pytest
from rich.console import Console

from still_fresh.models import ReceiptItem, StorageMode, WeekBucket
from still_fresh.output_formatter import (
    JSONEncoder,
    OutputFormatter,
    bucket_to_dict,
    item_to_dict,
)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    ansi_escape = re.compile(r"\x1b\[[0-9;]*m")
    return ansi_escape.sub("", text)


@pytest.fixture
def rich_formatter():
    console = Console(file=StringIO(), force_terminal=True, width=120)
    return OutputFormatter(json_mode=False, console=console)


def rendered(formatter: OutputFormatter) -> str:
    return strip_ansi(formatter.console.file.getvalue())


class TestJSONEncoder:
    """Tests for JSONEncoder."""

    def test_encode_uuid(self):
        """UUID encoded as string."""
        test_id = uuid4()
        result = json.dumps({"id": test_id}, cls=JSONEncoder)
        assert str(test_id) in result

    def test_encode_datetime(self):
        """Datetimes use the millisecond UTC form."""
        dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        result = json.dumps({"time": dt}, cls=JSONEncoder)
        assert "2024-01-15T10:30:00.000Z" in result

    def test_encode_date(self):
        """Date encoded as ISO format."""
        result = json.dumps({"date": date(2024, 1, 15)}, cls=JSONEncoder)
        assert "2024-01-15" in result

    def test_encode_time(self):
        result = json.dumps({"time": time(14, 30)}, cls=JSONEncoder)
        assert "14:30" in result

    def test_encode_fallback(self):
        """Non-special types raise TypeError."""
        with pytest.raises(TypeError):
            json.dumps({"bad": object()}, cls=JSONEncoder)


class TestSerializers:
    """Tests for item and bucket serialization."""

    def test_item_to_dict(self, make_item, tz):
        """Derived fields are included for the viewer's clock."""
        item = make_item(
            name="Milk",
            fridge="2025-01-10T12:00:00Z",
            per_unit_amount=16,
            per_unit_unit="oz",
            price_per_unit=1.25,
            quantity=2,
        )
        data = item_to_dict(item, datetime(2025, 1, 10, 23, tzinfo=tz))

        assert data["id"] == str(item.id)
        assert data["display_name"] == "Milk (16 oz)"
        assert data["effective_expiry"] == "2025-01-10T12:00:00.000Z"
        assert data["expiry_day"] == "2025-01-10"
        assert data["urgency"] == "soon"
        assert data["days_until_expiry"] == 0
        assert data["expiry_countdown"] == "today"
        assert data["shelf_life_fraction"] == 0.0
        assert data["effective_total_cost"] == 2.5
        assert data["selected_storage"] == "fridge"
        json.dumps(data)

    def test_item_without_expiry(self, tz):
        item = ReceiptItem(name="Salt", default_storage=StorageMode.PANTRY)
        data = item_to_dict(item, datetime(2025, 1, 10, tzinfo=tz))
        assert data["effective_expiry"] is None
        assert data["expiry_day"] is None
        assert data["urgency"] == "fresh"
        assert data["days_until_expiry"] is None
        assert data["expiry_countdown"] is None
        assert data["shelf_life_fraction"] == 0.0

    def test_bucket_to_dict(self):
        bucket = WeekBucket(week_start=date(2025, 1, 6), potential=1.0, saved=2.0)
        data = bucket_to_dict(bucket)
        assert data == {
            "week_start": "2025-01-06",
            "potential": 1.0,
            "wasted": 0.0,
            "saved": 2.0,
            "total": 3.0,
        }


class TestOutputFormatterJSON:
    """Tests for JSON output mode."""

    def test_json_mode_output(self, capsys):
        """JSON mode outputs valid JSON."""
        formatter = OutputFormatter(json_mode=True)
        formatter.output({"success": True, "data": {"items": []}})
        data = json.loads(capsys.readouterr().out)
        assert data["data"]["items"] == []

    def test_json_error(self, capsys):
        """JSON error output."""
        formatter = OutputFormatter(json_mode=True)
        formatter.error("Something went wrong", error_code="TEST_ERROR")
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is False
        assert data["error"] == "Something went wrong"
        assert data["error_code"] == "TEST_ERROR"

    def test_json_warning(self, capsys):
        formatter = OutputFormatter(json_mode=True)
        formatter.warning("This is a warning")
        assert json.loads(capsys.readouterr().out)["warning"] == "This is a warning"


class TestOutputFormatterRich:
    """Tests for Rich output mode."""

    def test_items_table(self, rich_formatter, make_item, tz):
        now = datetime(2025, 1, 10, 9, tzinfo=tz)
        items = [
            item_to_dict(make_item(name="Strawberries", fridge="2025-01-08"), now),
            item_to_dict(make_item(name="Yogurt", fridge="2025-01-20"), now),
        ]
        rich_formatter.output({"data": {"items": items, "expired_count": 1}})
        output = rendered(rich_formatter)

        assert "Strawberries" in output
        assert "Refrigerator" in output
        assert "expired" in output
        assert "in 10 days" in output
        assert "2025-01-08" in output
        assert "Total items: 2" in output
        assert "Expired: 1" in output

    def test_no_items(self, rich_formatter):
        rich_formatter.output({"data": {"items": []}})
        assert "No items" in rendered(rich_formatter)

    def test_expiring(self, rich_formatter, make_item, tz):
        now = datetime(2025, 1, 10, 9, tzinfo=tz)
        items = [item_to_dict(make_item(name="Chicken", fridge="2025-01-11"), now)]
        rich_formatter.output({"data": {"expiring": items, "days": 2}})
        output = rendered(rich_formatter)
        assert "Expiring Within 2 Days" in output
        assert "Chicken" in output

    def test_nothing_expiring(self, rich_formatter):
        rich_formatter.output({"data": {"expiring": [], "days": 3}})
        assert "Nothing expiring in the next 3 days" in rendered(rich_formatter)

    def test_weekly(self, rich_formatter):
        buckets = [
            bucket_to_dict(WeekBucket(week_start=date(2024, 12, 30), wasted=4.0)),
            bucket_to_dict(WeekBucket(week_start=date(2025, 1, 6), saved=2.5, potential=1.0)),
        ]
        rich_formatter.output({"data": {"weekly": buckets, "current_week": buckets[-1]}})
        output = rendered(rich_formatter)
        assert "This Week (2025-01-06)" in output
        assert "Saved: $2.50" in output
        assert "2024-12-30" in output
        assert "$4.00" in output

    def test_purchases(self, rich_formatter):
        groups = [{"day": "2025-01-09", "item_count": 2, "total_quantity": 5, "item_ids": []}]
        rich_formatter.output({"data": {"purchases": groups}})
        output = rendered(rich_formatter)
        assert "2025-01-09" in output
        assert "5" in output

    def test_history(self, rich_formatter, make_item, tz):
        now = datetime(2025, 1, 10, 9, tzinfo=tz)
        item = make_item(name="Milk", purchased_at=datetime(2025, 1, 3, 12, tzinfo=UTC))
        rich_formatter.output({"data": {"history": [item_to_dict(item, now)], "name": "milk"}})
        output = rendered(rich_formatter)
        assert "Purchase History: milk" in output
        assert "2025-01-03" in output

    def test_ingest_with_drops(self, rich_formatter, make_item, tz):
        now = datetime(2025, 1, 10, 9, tzinfo=tz)
        ingest = {
            "items": [item_to_dict(make_item(name="Kale"), now)],
            "dropped": ["item 1 (Tofu): Missing freezer expiry"],
            "warnings": ["Blurry receipt"],
        }
        rich_formatter.output({"data": {"ingest": ingest}}, "Mapped 1 items")
        output = rendered(rich_formatter)
        assert "Mapped 1 items" in output
        assert "Kale" in output
        assert "Dropped: 1" in output
        assert "Tofu" in output
        assert "Blurry receipt" in output

    def test_rich_error_output(self, rich_formatter):
        rich_formatter.error("Test error message")
        assert "Test error message" in rendered(rich_formatter)

    def test_rich_warning_output(self, rich_formatter):
        rich_formatter.warning("Test warning message")
        assert "Test warning message" in rendered(rich_formatter)
