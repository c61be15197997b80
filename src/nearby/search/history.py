"""
Saved places and recent searches.

Small conveniences around search that the UI keeps between sessions:
- `SavedPlaces`: named search locations (home, a favorite market), with a
  "which of my saved places are near here?" lookup.
- `RecentSearches`: most-recent-first list of (label, query) pairs, de-duplicated
  and bounded.

Both persist through a `StateStore`, the same capability the location provider
uses for its denial memo, so one JSON state file holds all of it.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from nearby.core.geo import Coordinate, distance_km
from nearby.core.state import StateStore
from nearby.domain.models import SearchLocation

SAVED_PLACES_KEY = "saved_places"
RECENT_SEARCHES_KEY = "recent_searches"


class RecentSearch(BaseModel):
    location_label: str
    query: str = ""
    timestamp: float = Field(default_factory=time.time)


_PLACES_ADAPTER = TypeAdapter(list[SearchLocation])
_RECENT_ADAPTER = TypeAdapter(list[RecentSearch])


def _load(store: StateStore, key: str, adapter: TypeAdapter) -> list[Any]:
    raw = store.get(key)
    if not raw:
        return []
    try:
        return adapter.validate_python(raw)
    except ValidationError:
        # Stale shape from an older version; treat as empty rather than failing search.
        return []


class SavedPlaces:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    def all(self) -> list[SearchLocation]:
        return _load(self._store, SAVED_PLACES_KEY, _PLACES_ADAPTER)

    def save(self, place: SearchLocation) -> None:
        """Add a place, replacing any existing one with the same label."""
        places = [p for p in self.all() if p.label != place.label]
        places.append(place)
        self._store.set(SAVED_PLACES_KEY, _PLACES_ADAPTER.dump_python(places, mode="json"))

    def forget(self, label: str) -> bool:
        places = self.all()
        kept = [p for p in places if p.label != label]
        if len(kept) == len(places):
            return False
        self._store.set(SAVED_PLACES_KEY, _PLACES_ADAPTER.dump_python(kept, mode="json"))
        return True

    def nearby(self, origin: Coordinate, radius_km: float) -> list[tuple[SearchLocation, float]]:
        """Saved places within `radius_km` of `origin`, closest first."""
        hits = []
        for place in self.all():
            d = distance_km(origin, place.coordinate)
            if d <= radius_km:
                hits.append((place, d))
        hits.sort(key=lambda pair: (pair[1], pair[0].label))
        return hits


class RecentSearches:
    def __init__(self, store: StateStore, *, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._store = store
        self._limit = limit

    def all(self) -> list[RecentSearch]:
        return _load(self._store, RECENT_SEARCHES_KEY, _RECENT_ADAPTER)[: self._limit]

    def record(self, location_label: str, query: str = "") -> RecentSearch:
        entry = RecentSearch(location_label=location_label, query=query.strip())
        key = (entry.location_label, entry.query.lower())
        kept = [r for r in self.all() if (r.location_label, r.query.lower()) != key]
        recent = [entry, *kept][: self._limit]
        self._store.set(RECENT_SEARCHES_KEY, _RECENT_ADAPTER.dump_python(recent, mode="json"))
        return entry

    def clear(self) -> None:
        self._store.delete(RECENT_SEARCHES_KEY)
