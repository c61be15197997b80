"""
In-memory discovery index.

Holds the working set of listings and events for the current session. The item
source pushes changes in through `upsert` / `remove`; searches read through
`query`.

Concurrency model:
- Writers are serialized by a lock.
- The backing collection is an immutable tuple that writers replace wholesale
  (copy-on-write), so readers always iterate a stable snapshot without locking.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from nearby.domain.models import Event, FilterSpec, Listing
from nearby.filtering.predicate import FilterPredicate
from nearby.index.loader import load_items

logger = logging.getLogger(__name__)

Item = Listing | Event


@dataclass(frozen=True)
class IndexEntry:
    """An indexed item plus its insertion sequence number (higher = newer)."""

    item: Item
    seq: int


class QueryView:
    """Lazy, restartable view over the index for one FilterSpec.

    Every iteration starts from the index's current snapshot, so it reflects any
    `upsert` / `remove` made since the previous pass.
    """

    def __init__(self, index: "DiscoveryIndex", spec: FilterSpec) -> None:
        self._index = index
        self._spec = spec

    def entries(self) -> Iterator[IndexEntry]:
        predicate = self._index.predicate
        # One "now" per pass keeps time-frame classification consistent across items.
        now = predicate.clock.now()
        for entry in self._index.snapshot():
            if predicate.matches(entry.item, self._spec, now=now):
                yield entry

    def __iter__(self) -> Iterator[Item]:
        return (entry.item for entry in self.entries())


class DiscoveryIndex:
    def __init__(self, predicate: FilterPredicate, items: Iterable[Item] = ()) -> None:
        self._predicate = predicate
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._entries: tuple[IndexEntry, ...] = ()
        self._positions: dict[str, int] = {}
        self.extend(items)

    @classmethod
    def from_catalog(
        cls, path: str | Path, *, predicate: FilterPredicate, timezone: str | None = None
    ) -> "DiscoveryIndex":
        """Build an index from a JSON catalog file (see `nearby.index.loader`)."""
        items = load_items(path, timezone=timezone)
        logger.info("Loaded %d items from catalog %s", len(items), path)
        return cls(predicate, items)

    @property
    def predicate(self) -> FilterPredicate:
        return self._predicate

    def snapshot(self) -> tuple[IndexEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._positions

    def get(self, item_id: str) -> Item | None:
        entries = self._entries
        pos = self._positions.get(item_id)
        if pos is None or pos >= len(entries) or entries[pos].item.id != item_id:
            return None
        return entries[pos].item

    def upsert(self, item: Item) -> None:
        """Insert a new item or replace an existing one with the same id.

        Replacing keeps the item's original sequence number: "newest" refers to
        when the item was first published, not when it was last edited.
        """
        self.extend((item,))

    def extend(self, items: Iterable[Item]) -> None:
        """Upsert many items, publishing a single new snapshot."""
        with self._lock:
            entries = list(self._entries)
            positions = dict(self._positions)
            for item in items:
                pos = positions.get(item.id)
                if pos is None:
                    positions[item.id] = len(entries)
                    entries.append(IndexEntry(item=item, seq=next(self._seq)))
                else:
                    entries[pos] = IndexEntry(item=item, seq=entries[pos].seq)
            self._entries = tuple(entries)
            self._positions = positions

    def remove(self, item_id: str) -> bool:
        """Drop an item by id. Returns False if it was not indexed."""
        with self._lock:
            pos = self._positions.get(item_id)
            if pos is None:
                return False
            entries = self._entries[:pos] + self._entries[pos + 1 :]
            self._positions = {e.item.id: i for i, e in enumerate(entries)}
            self._entries = entries
            return True

    def query(self, spec: FilterSpec) -> QueryView:
        """Items matching `spec`, in no particular order."""
        return QueryView(self, spec)
