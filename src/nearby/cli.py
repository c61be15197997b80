"""
Nearby CLI entrypoint.

This CLI is intended for quick local demos and debugging against a JSON item
catalog. It delegates all search logic to `nearby.search.orchestrator`.
"""

from __future__ import annotations

import argparse
import json
import math
import sys
from typing import Any, get_args

from nearby.config.settings import get_settings
from nearby.core.env import resolve_project_path
from nearby.core.errors import DiscoveryError
from nearby.core.geo import Coordinate
from nearby.core.logging import configure_logging
from nearby.core.state import JsonFileStateStore
from nearby.core.time import SystemClock
from nearby.domain.models import SearchLocation, SortBy, TimeFrame
from nearby.filtering.predicate import FilterPredicate
from nearby.index.discovery_index import DiscoveryIndex
from nearby.location.provider import LocationProvider
from nearby.search.history import RecentSearches
from nearby.search.orchestrator import SearchOrchestrator, default_filter_spec, fallback_location


def _state_store() -> JsonFileStateStore:
    settings = get_settings()
    return JsonFileStateStore(resolve_project_path(settings.location.state_path))


def _search_location(args: argparse.Namespace) -> SearchLocation:
    if args.lat is None and args.lon is None:
        return fallback_location(get_settings().search)
    if args.lat is None or args.lon is None:
        raise ValueError("--lat and --lon must be given together")
    return SearchLocation(
        coordinate=Coordinate(latitude=float(args.lat), longitude=float(args.lon)),
        label=args.label or f"{args.lat:.4f}, {args.lon:.4f}",
    )


def _cmd_search(args: argparse.Namespace) -> int:
    """Handle the `search` subcommand."""
    settings = get_settings()
    predicate = FilterPredicate(SystemClock(settings.app.timezone))
    index = DiscoveryIndex.from_catalog(args.catalog, predicate=predicate, timezone=settings.app.timezone)
    orchestrator = SearchOrchestrator(index, settings=settings.search)

    overrides: dict[str, Any] = {
        "query": args.query,
        "category": args.category,
        "event_type": args.event_type,
        "time_frame": args.time_frame,
        "sort_by": args.sort_by,
    }
    if args.kind:
        overrides["item_kind"] = args.kind
    if args.radius is not None:
        overrides["radius_km"] = float(args.radius)
    if args.min_price is not None or args.max_price is not None:
        lo, hi = settings.search.default_price_range
        if args.max_price is None:
            # A lone minimum has no upper bound.
            hi = math.inf
        overrides["price_range"] = (
            float(args.min_price) if args.min_price is not None else lo,
            float(args.max_price) if args.max_price is not None else hi,
        )
    spec = default_filter_spec(settings.search, **overrides)
    location = _search_location(args)

    results = orchestrator.search(location, spec)
    # Caller-driven expansion: each step is an explicit new search with a larger radius.
    expansions = 0
    while args.expand and orchestrator.needs_expansion(results):
        wider = orchestrator.expand_radius(spec)
        if wider is None:
            break
        spec = wider
        expansions += 1
        results = orchestrator.search(location, spec)

    RecentSearches(_state_store(), limit=settings.history.recent_limit).record(location.label, spec.query)

    if args.json:
        payload = {
            "location": location.model_dump(mode="json"),
            "radius_km": spec.radius_km,
            "expansions": expansions,
            "results": [r.model_dump(mode="json") for r in results],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(f"Searching around {location.label} within {spec.radius_km:g} km ({len(results)} results)")
    for i, r in enumerate(results, start=1):
        item = r.item
        if item.kind == "listing":
            detail = f"{item.category}  ${item.price:,.2f}"
        else:
            when = item.start_date.isoformat() if item.start_date else "date TBA"
            detail = f"{item.event_type}  {when}"
        print(f"{i:>2}. {item.title}  [{detail}]  {r.distance_km:.1f} km")
    if not results:
        print(f"Nothing found. Try --expand or a radius above {spec.radius_km:g} km.")
    return 0


def _cmd_recent(_: argparse.Namespace) -> int:
    settings = get_settings()
    for entry in RecentSearches(_state_store(), limit=settings.history.recent_limit).all():
        query = f" '{entry.query}'" if entry.query else ""
        print(f"{entry.location_label}{query}")
    return 0


def _cmd_location_reset(_: argparse.Namespace) -> int:
    provider = LocationProvider(None, _state_store(), settings=get_settings().location)
    provider.clear_denied_flag()
    print("Location permission will be asked again next time.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Nearby CLI."""
    parser = argparse.ArgumentParser(prog="nearby")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
        help="Override app.log_level for this run.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    s = sub.add_parser("search", help="Search a JSON item catalog around a location.")
    s.add_argument("--catalog", required=True, help="Path to a JSON list of listing/event records.")
    s.add_argument("--lat", type=float, default=None, help="Omit --lat/--lon to use the configured fallback area.")
    s.add_argument("--lon", type=float, default=None)
    s.add_argument("--label", type=str, default=None)
    s.add_argument("--query", type=str, default="")
    s.add_argument("--category", type=str, default=None)
    s.add_argument("--event-type", dest="event_type", type=str, default=None)
    s.add_argument("--kind", choices=["listing", "event"], default=None)
    s.add_argument("--min-price", type=float, default=None)
    s.add_argument("--max-price", type=float, default=None)
    s.add_argument("--time-frame", dest="time_frame", choices=list(get_args(TimeFrame)), default="all")
    s.add_argument("--radius", type=float, default=None, help="Search radius in km.")
    s.add_argument("--sort-by", dest="sort_by", choices=list(get_args(SortBy)), default="distance")
    s.add_argument("--expand", action="store_true", help="Widen the radius step by step until something is found.")
    s.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    s.set_defaults(func=_cmd_search)

    r = sub.add_parser("recent", help="Show recent searches.")
    r.set_defaults(func=_cmd_recent)

    lr = sub.add_parser("location-reset", help="Forget a previously denied location permission.")
    lr.set_defaults(func=_cmd_location_reset)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m nearby.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except (DiscoveryError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
