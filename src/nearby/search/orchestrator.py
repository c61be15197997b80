from __future__ import annotations

# This module is the entry point for proximity search.
# It wires together:
# - the discovery index (filtered candidates)
# - geo math (distance from the search origin)
# - the radius cut and the requested sort order
#
# Design goals:
# - `search` is a pure function of (index snapshot, location, spec, clock): no shared
#   state is mutated, so concurrent calls with different specs are safe.
# - Radius expansion is a caller decision. The orchestrator only computes the next
#   spec; it never loops on its own.

import logging
from dataclasses import dataclass, field
from typing import Literal

from nearby.config.settings import SearchSettings
from nearby.core.errors import DiscoveryError
from nearby.core.geo import Coordinate, check_coordinate, distance_km
from nearby.domain.models import (
    Event,
    FilterSpec,
    Listing,
    RankedResult,
    SearchLocation,
    check_filter_spec,
    parse_filter_spec,
)
from nearby.index.discovery_index import DiscoveryIndex, IndexEntry
from nearby.location.provider import LocationProvider

logger = logging.getLogger(__name__)

SearchState = Literal["idle", "searching", "succeeded", "failed"]


@dataclass(frozen=True)
class _Candidate:
    entry: IndexEntry
    distance_km: float

    @property
    def id(self) -> str:
        return self.entry.item.id


def _distance_key(c: _Candidate) -> tuple:
    return (c.distance_km, c.id)


def _date_key(c: _Candidate) -> tuple:
    item = c.entry.item
    if isinstance(item, Event):
        if item.start_date is not None:
            return (0, item.start_date.timestamp(), c.distance_km, c.id)
        return (1, 0.0, c.distance_km, c.id)
    return (2, 0.0, c.distance_km, c.id)


def _price_key(descending: bool):
    def key(c: _Candidate) -> tuple:
        item = c.entry.item
        if isinstance(item, Listing):
            return (0, -item.price if descending else item.price, c.distance_km, c.id)
        return (1, 0.0, c.distance_km, c.id)

    return key


def _newest_key(c: _Candidate) -> tuple:
    return (-c.entry.seq, c.id)


_SORT_KEYS = {
    "distance": _distance_key,
    "date": _date_key,
    "price_low": _price_key(descending=False),
    "price_high": _price_key(descending=True),
    "newest": _newest_key,
}


class SearchOrchestrator:
    def __init__(self, index: DiscoveryIndex, *, settings: SearchSettings | None = None) -> None:
        self._index = index
        self._settings = settings or SearchSettings()

    @property
    def index(self) -> DiscoveryIndex:
        return self._index

    def search(self, location: SearchLocation, spec: FilterSpec) -> list[RankedResult]:
        """Filter, measure, cut to radius, and sort. Raises only on contract violations."""
        # ---- Step 1: Validate inputs (fail fast on caller bugs) ----
        check_filter_spec(spec)
        origin = check_coordinate(location.coordinate)

        # ---- Step 2: Filter candidates and attach distances ----
        candidates: list[_Candidate] = []
        for entry in self._index.query(spec).entries():
            d = distance_km(origin, entry.item.coordinate)
            # ---- Step 3: Radius cut ----
            if d > spec.radius_km:
                continue
            candidates.append(_Candidate(entry=entry, distance_km=d))

        # ---- Step 4: Sort ----
        candidates.sort(key=_SORT_KEYS[spec.sort_by])

        logger.debug(
            "Search at %s (%.5f, %.5f) radius=%.1fkm sort=%s -> %d results",
            location.label or "location",
            origin.latitude,
            origin.longitude,
            spec.radius_km,
            spec.sort_by,
            len(candidates),
        )
        return [RankedResult(item=c.entry.item, distance_km=c.distance_km) for c in candidates]

    def run(self, location: SearchLocation, spec: FilterSpec) -> "SearchRun":
        """Run one search while tracking its UI state (idle -> searching -> done)."""
        run = SearchRun()
        run.execute(self, location, spec)
        return run

    def needs_expansion(self, results: list[RankedResult], threshold: int | None = None) -> bool:
        """True if the result count is low enough that the UI should offer "expand search"."""
        limit = self._settings.min_results if threshold is None else threshold
        return len(results) < max(1, limit)

    def expand_radius(self, spec: FilterSpec, step_km: float | None = None) -> FilterSpec | None:
        """Return `spec` with a larger radius, or None if it is already at the cap."""
        step = self._settings.expand_step_km if step_km is None else float(step_km)
        if step <= 0:
            raise ValueError("step_km must be > 0")
        cap = self._settings.max_radius_km
        if spec.radius_km >= cap:
            return None
        return spec.model_copy(update={"radius_km": min(spec.radius_km + step, cap)})


@dataclass
class SearchRun:
    """Per-call search state for driving UI (spinner, results, error banner)."""

    state: SearchState = "idle"
    results: list[RankedResult] = field(default_factory=list)
    error: DiscoveryError | None = None

    def execute(self, orchestrator: SearchOrchestrator, location: SearchLocation, spec: FilterSpec) -> None:
        if self.state == "searching":
            raise RuntimeError("search already in progress")
        self.state = "searching"
        self.error = None
        try:
            self.results = orchestrator.search(location, spec)
        except DiscoveryError as exc:
            self.state = "failed"
            self.error = exc
            self.results = []
            raise
        self.state = "succeeded"


async def resolve_search_location(
    provider: LocationProvider | None,
    fallback: SearchLocation,
    *,
    label: str = "Current Location",
) -> tuple[SearchLocation, bool]:
    """Use the device position if available, else `fallback`.

    Returns (location, used_device_position). A missing fix is not an error.
    """
    if provider is not None:
        coord = await provider.get_current_location()
        if coord is not None:
            return SearchLocation(coordinate=coord, label=label), True
    logger.info("No device position; searching around '%s'.", fallback.label)
    return fallback, False


def fallback_location(settings: SearchSettings) -> SearchLocation:
    fb = settings.fallback_location
    return SearchLocation(coordinate=Coordinate(latitude=fb.latitude, longitude=fb.longitude), label=fb.label)


def default_filter_spec(settings: SearchSettings, **overrides) -> FilterSpec:
    """The "cleared filters" spec: default radius and price range, sorted by distance."""
    payload = {
        "radius_km": settings.default_radius_km,
        "price_range": settings.default_price_range,
    }
    payload.update(overrides)
    return parse_filter_spec(payload)
