"""
Deterministic ranking of scored contest entries
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class RankedEntry:
    entry_id: Any
    points: Decimal
    rank: int
    created_at: Optional[datetime] = None


def _field(entry, name: str, default=None):
    if isinstance(entry, Mapping):
        return entry.get(name, default)
    return getattr(entry, name, default)


def _sort_key(item):
    entry_id, points, created_at = item
    # Entries without a creation time sort after those with one
    created_key = (created_at is None, created_at or datetime.min)
    return (-points, created_key, str(entry_id))


def rank_entries(entries: Iterable) -> List[RankedEntry]:
    """
    Assign ranks 1..N to scored entries.

    Higher points rank first. Ties go to the earlier created entry, then to
    the lower id string, so the same input always yields the same ranks.
    Accepts ORM rows or mappings carrying id, points and optionally
    created_at.
    """
    items = []
    for entry in entries:
        points = _field(entry, "points")
        items.append((
            _field(entry, "id"),
            Decimal(str(points)) if points is not None else Decimal("0"),
            _field(entry, "created_at"),
        ))

    items.sort(key=_sort_key)
    return [
        RankedEntry(entry_id=entry_id, points=points, rank=position, created_at=created_at)
        for position, (entry_id, points, created_at) in enumerate(items, start=1)
    ]
