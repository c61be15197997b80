"""
Item catalog loader.

A catalog is a local JSON file holding a list of listing/event records, each
tagged with `"kind": "listing"` or `"kind": "event"`. We validate it into typed
Pydantic models so the index and filters can assume a consistent shape.

Naive event dates are given the configured app timezone, matching how the UI
captures them (wall-clock times at the event location).
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter

from nearby.core.env import resolve_project_path
from nearby.core.time import ensure_tz
from nearby.domain.models import DiscoverableItem, Event, Listing

_ITEMS_ADAPTER = TypeAdapter(list[DiscoverableItem])


def load_items(path: str | Path, *, timezone: str | None = None) -> list[Listing | Event]:
    """Load and validate an item catalog JSON file."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("items", [])
    items = _ITEMS_ADAPTER.validate_python(payload)
    if timezone is None:
        return items
    return [_localize(item, timezone) for item in items]


def _localize(item: Listing | Event, timezone: str) -> Listing | Event:
    if not isinstance(item, Event):
        return item
    updates = {}
    if item.start_date is not None and item.start_date.tzinfo is None:
        updates["start_date"] = ensure_tz(item.start_date, timezone)
    if item.end_date is not None and item.end_date.tzinfo is None:
        updates["end_date"] = ensure_tz(item.end_date, timezone)
    return item.model_copy(update=updates) if updates else item
