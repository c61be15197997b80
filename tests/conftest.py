from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from nearby.core.geo import Coordinate
from nearby.core.time import FixedClock
from nearby.domain.models import Event, Listing
from nearby.filtering.predicate import FilterPredicate
from nearby.index.discovery_index import DiscoveryIndex

TZ = ZoneInfo("America/New_York")

# Wednesday. The surrounding Sunday-start week is Oct 11 (Sun) .. Oct 17 (Sat).
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=TZ)

ORIGIN = Coordinate(latitude=40.0, longitude=-75.0)

# One degree of latitude on the 6371 km sphere, in km.
KM_PER_DEG_LAT = 6371.0 * 3.141592653589793 / 180.0


def north_of(origin: Coordinate, km: float) -> Coordinate:
    """A point exactly `km` kilometers due north of `origin` (great-circle)."""
    return Coordinate(latitude=origin.latitude + km / KM_PER_DEG_LAT, longitude=origin.longitude)


def make_listing(item_id: str, *, km: float = 1.0, **kwargs) -> Listing:
    fields = {"title": f"Listing {item_id}", "price": 10.0, "category": "books"}
    fields.update(kwargs)
    return Listing(id=item_id, coordinate=north_of(ORIGIN, km), **fields)


def make_event(item_id: str, *, km: float = 1.0, **kwargs) -> Event:
    fields = {"title": f"Event {item_id}", "event_type": "garage_sale"}
    fields.update(kwargs)
    return Event(id=item_id, coordinate=north_of(ORIGIN, km), **fields)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def predicate(clock: FixedClock) -> FilterPredicate:
    return FilterPredicate(clock)


@pytest.fixture
def index(predicate: FilterPredicate) -> DiscoveryIndex:
    return DiscoveryIndex(predicate)
