# app/services/movement_filter.py
"""
Read-only filtering, ordering and aggregation over an already loaded
collection of movements. Nothing here touches the database or mutates its
input, so listings and dashboard widgets can share one bulk load.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

from app.models.movement import TYPE_INITIAL


@dataclass(frozen=True)
class MovementFilter:
    unit_id: Optional[int] = None
    include_all_units: bool = True
    search: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: Optional[int] = None


def by_unit(movements: Iterable, unit_id: Optional[int], include_all: bool) -> list:
    """Without include_all, keep movements departing from or arriving at unit_id."""
    if include_all or unit_id is None:
        return list(movements)
    return [m for m in movements
            if m.departure_unit_id == unit_id or m.arrival_unit_id == unit_id]


def _contains(value, term: str) -> bool:
    return value is not None and term in str(value).lower()


def by_free_text(movements: Iterable, term: Optional[str]) -> list:
    """Case-insensitive substring match on plate, driver and destination."""
    if not term or not term.strip():
        return list(movements)
    term = term.strip().lower()
    return [m for m in movements
            if _contains(getattr(m, "vehicle_plate", None), term)
            or _contains(m.driver, term)
            or _contains(m.destination, term)]


def by_date_range(movements: Iterable, date_from: Optional[date] = None,
                  date_to: Optional[date] = None) -> list:
    """Departure date within [date_from, date_to]; either bound may be open."""
    result = []
    for m in movements:
        if date_from is not None and m.departure_date < date_from:
            continue
        if date_to is not None and m.departure_date > date_to:
            continue
        result.append(m)
    return result


def by_status(movements: Iterable, status: Optional[str]) -> list:
    if not status:
        return list(movements)
    return [m for m in movements if m.status == status]


def sort_most_recent_first(movements: Iterable) -> list:
    # reverse=True keeps sorted() stable: equal timestamps stay in input order
    return sorted(movements, key=lambda m: (m.departure_date, m.departure_time), reverse=True)


def aggregate_frequency_by_vehicle(movements: Iterable) -> dict:
    """vehicle_id -> number of non-initial movements, in first-seen order."""
    return dict(Counter(m.vehicle_id for m in movements if m.type != TYPE_INITIAL))


def rank_frequent_vehicles(vehicles: Sequence, movements: Iterable,
                           limit: Optional[int] = None) -> list:
    """
    (vehicle, count) pairs, most movements first. Ties keep the order of
    `vehicles`; vehicles without movements rank last with count 0.
    """
    counts = aggregate_frequency_by_vehicle(movements)
    ranked = sorted(((v, counts.get(v.id, 0)) for v in vehicles),
                    key=lambda pair: pair[1], reverse=True)
    return ranked[:limit] if limit is not None else ranked


def apply_filter(movements: Iterable, f: MovementFilter) -> list:
    """All predicates of `f`, most recent first, sliced to f.limit."""
    result = by_unit(movements, f.unit_id, f.include_all_units)
    result = by_status(result, f.status)
    result = by_date_range(result, f.date_from, f.date_to)
    result = by_free_text(result, f.search)
    result = sort_most_recent_first(result)
    if f.limit is not None:
        result = result[:f.limit]
    return result
