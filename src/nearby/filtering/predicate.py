# src/nearby/filtering/predicate.py
"""
Filter predicate (item-level).

`FilterPredicate.matches(item, spec)` decides whether one discoverable item
satisfies a FilterSpec. Stages are conjunctive and evaluated in this order:

1. text query   - substring match over title/description/tags/category/event_type
2. category     - listings only
3. event type   - events only
4. price range  - listings only (events are exempt, even with an entry fee)
5. time frame   - dated events only, relative to the injected clock
6. item kind    - optional "listings only" / "events only" restriction

Each stage is also exposed as a plain function so callers (and tests) can
explain why an item was rejected.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from nearby.core.time import Clock, local_day, week_start
from nearby.domain.models import Event, FilterSpec, Listing, TimeFrame

Item = Listing | Event


def matches_query(item: Item, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True

    haystack: list[str] = [item.title]
    if item.description:
        haystack.append(item.description)
    haystack.extend(item.tags)
    if isinstance(item, Listing):
        haystack.append(item.category)
    else:
        haystack.append(item.event_type)
    return any(needle in text.lower() for text in haystack)


def matches_category(item: Item, category: str | None) -> bool:
    if category is None or not isinstance(item, Listing):
        return True
    return item.category == category


def matches_event_type(item: Item, event_type: str | None) -> bool:
    if event_type is None or not isinstance(item, Event):
        return True
    return item.event_type == event_type


def matches_price(item: Item, price_range: tuple[float, float]) -> bool:
    # Events are exempt: price filtering only applies to listings.
    if not isinstance(item, Listing):
        return True
    lo, hi = price_range
    return lo <= item.price <= hi


def in_time_frame(start: datetime, frame: TimeFrame, now: datetime) -> bool:
    """Classify `start` against a named calendar window around `now`.

    Days are compared on the local calendar of `now`'s timezone, and weeks start
    on Sunday.
    """
    if frame == "all":
        return True

    today = now.date()
    day = local_day(start, now)
    this_week = week_start(today)

    if frame == "today":
        return day == today
    if frame == "tomorrow":
        return day == today + timedelta(days=1)
    if frame == "this_week":
        return this_week <= day <= this_week + timedelta(days=6)
    if frame == "this_weekend":
        # Saturday closing this week and the Sunday that follows it.
        return day in (this_week + timedelta(days=6), this_week + timedelta(days=7))
    if frame == "next_week":
        next_week = this_week + timedelta(days=7)
        return next_week <= day <= next_week + timedelta(days=6)
    raise ValueError(f"Unknown time frame '{frame}'.")


def matches_time_frame(item: Item, frame: TimeFrame, now: datetime) -> bool:
    if not isinstance(item, Event) or item.start_date is None:
        return True
    return in_time_frame(item.start_date, frame, now)


def matches_kind(item: Item, kind: str | None) -> bool:
    return kind is None or item.kind == kind


class FilterPredicate:
    """Evaluates FilterSpecs against items using an injected clock for "now"."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock

    @property
    def clock(self) -> Clock:
        return self._clock

    def matches(self, item: Item, spec: FilterSpec, *, now: datetime | None = None) -> bool:
        if not matches_query(item, spec.query):
            return False
        if not matches_category(item, spec.category):
            return False
        if not matches_event_type(item, spec.event_type):
            return False
        if not matches_price(item, spec.price_range):
            return False
        if spec.time_frame != "all":
            if not matches_time_frame(item, spec.time_frame, now or self._clock.now()):
                return False
        return matches_kind(item, spec.item_kind)
