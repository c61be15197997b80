"""
Domain models (Pydantic).

These types are the stable contract between the engine and its callers:
- discoverable items fed in by the item source (`Listing`, `Event`)
- query inputs (`FilterSpec`, `SearchLocation`)
- search output (`RankedResult`)

Keeping them in one place helps:
- validation (reject bad inputs early, with the engine's own error types),
- typed refactors,
- consistent JSON in and out of the CLI and catalog files.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any, Literal, Mapping, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from nearby.core.errors import InvalidFilterSpecError
from nearby.core.geo import Coordinate, check_coordinate

PermissionState = Literal["granted", "denied", "prompt", "unsupported"]
TimeFrame = Literal["all", "today", "tomorrow", "this_week", "this_weekend", "next_week"]
SortBy = Literal["distance", "date", "price_low", "price_high", "newest"]
ItemKind = Literal["listing", "event"]


class _ItemBase(BaseModel):
    """Fields shared by every discoverable item."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    coordinate: Coordinate
    title: str
    description: str | None = None
    tags: frozenset[str] = Field(default_factory=frozenset)
    seller_name: str | None = None

    @field_validator("coordinate")
    @classmethod
    def _check_coordinate(cls, value: Coordinate) -> Coordinate:
        return check_coordinate(value)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, tags: frozenset[str]) -> frozenset[str]:
        return frozenset(t.strip() for t in tags if t and t.strip())


class Listing(_ItemBase):
    """A commerce listing (a product offered by a nearby seller)."""

    kind: Literal["listing"] = "listing"
    price: float = Field(..., ge=0)
    category: str


class Event(_ItemBase):
    """A location-bound event (garage sale, farmers market, ...)."""

    kind: Literal["event"] = "event"
    event_type: str
    start_date: datetime | None = None
    end_date: datetime | None = None

    @model_validator(mode="after")
    def _validate_order(self) -> "Event":
        start, end = self.start_date, self.end_date
        if start is None or end is None:
            return self
        if (start.tzinfo is None) != (end.tzinfo is None):
            raise ValueError("event start_date and end_date must both be naive or both be timezone-aware")
        if end < start:
            raise ValueError("event end_date must not be before start_date")
        return self


DiscoverableItem = Annotated[Union[Listing, Event], Field(discriminator="kind")]

_ITEM_ADAPTER: TypeAdapter[Listing | Event] = TypeAdapter(DiscoverableItem)


def parse_item(payload: Mapping[str, Any]) -> Listing | Event:
    """Validate one raw item record (dict with a `kind` tag) into a Listing or Event."""
    return _ITEM_ADAPTER.validate_python(payload)


def check_filter_spec(spec: "FilterSpec") -> "FilterSpec":
    """Raise InvalidFilterSpecError unless the spec's invariants hold.

    `model_copy(update=...)` skips validation, so the orchestrator re-checks here
    rather than trusting that every spec went through the constructor.
    """
    lo, hi = spec.price_range
    if math.isnan(lo) or math.isnan(hi) or lo > hi:
        raise InvalidFilterSpecError(f"price_range must be [min, max] with min <= max, got {spec.price_range!r}")
    if not (spec.radius_km > 0) or not math.isfinite(spec.radius_km):
        raise InvalidFilterSpecError(f"radius_km must be a positive number, got {spec.radius_km!r}")
    if spec.sort_by not in get_args(SortBy):
        raise InvalidFilterSpecError(f"Unknown sort_by '{spec.sort_by}'.")
    if spec.time_frame not in get_args(TimeFrame):
        raise InvalidFilterSpecError(f"Unknown time_frame '{spec.time_frame}'.")
    return spec


class FilterSpec(BaseModel):
    """Immutable description of a user's search constraints.

    `category` / `event_type` of None mean "no constraint". The legacy "all" string
    is accepted on input and normalized to None.
    """

    model_config = ConfigDict(frozen=True)

    query: str = ""
    category: str | None = None
    event_type: str | None = None
    price_range: tuple[float, float] = (0.0, math.inf)
    time_frame: TimeFrame = "all"
    radius_km: float = 10.0
    sort_by: SortBy = "distance"
    item_kind: ItemKind | None = None

    @field_validator("category", "event_type", mode="before")
    @classmethod
    def _all_means_unconstrained(cls, value: Any) -> Any:
        if value == "all":
            return None
        return value

    @model_validator(mode="after")
    def _validate_invariants(self) -> "FilterSpec":
        return check_filter_spec(self)


def parse_filter_spec(payload: Mapping[str, Any]) -> FilterSpec:
    """Build a FilterSpec from a raw mapping, surfacing problems as InvalidFilterSpecError."""
    try:
        return FilterSpec.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidFilterSpecError(str(exc)) from exc


class SearchLocation(BaseModel):
    """Where a search is centered: the device's fix or a resolved address."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    label: str = ""

    @field_validator("coordinate")
    @classmethod
    def _check_coordinate(cls, value: Coordinate) -> Coordinate:
        return check_coordinate(value)


class RankedResult(BaseModel):
    """A discoverable item plus its distance from the search origin."""

    model_config = ConfigDict(frozen=True)

    item: DiscoverableItem
    distance_km: float = Field(..., ge=0)

    @property
    def id(self) -> str:
        return self.item.id
