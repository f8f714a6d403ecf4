# app/services/mileage_rules.py
"""
Mileage and time rules for movements.
Pure functions, no I/O. The lifecycle, the edit path and the request schemas
all call these instead of comparing odometer values themselves.
"""

from datetime import date, datetime, time
from typing import Union

from app.exceptions import InvalidMileage, InvalidTimeRange

DateLike = Union[date, str]
TimeLike = Union[time, str]


def validate_opening_mileage(mileage: int) -> int:
    """Odometer value a vehicle is registered with."""
    if mileage is None or mileage < 0:
        raise InvalidMileage(f"Mileage must be a non-negative integer, got {mileage}")
    return mileage


def validate_exit_mileage(current_mileage: int, proposed_initial_mileage: int) -> int:
    """An exit may not start below the vehicle's current odometer."""
    validate_opening_mileage(proposed_initial_mileage)
    if proposed_initial_mileage < current_mileage:
        raise InvalidMileage(
            f"Initial mileage ({proposed_initial_mileage}) cannot be lower than "
            f"the vehicle's current mileage ({current_mileage})"
        )
    return proposed_initial_mileage


def validate_entry_mileage(initial_mileage: int, proposed_final_mileage: int) -> int:
    """A completed trip must have covered some distance: final > initial."""
    if proposed_final_mileage is None or proposed_final_mileage <= initial_mileage:
        raise InvalidMileage(
            f"Final mileage ({proposed_final_mileage}) must be greater than "
            f"the initial mileage ({initial_mileage})"
        )
    return proposed_final_mileage


def compute_mileage_run(initial: int, final: int) -> int:
    return final - initial


def to_datetime(day: DateLike, at: TimeLike) -> datetime:
    """Combine a date and a wall-clock time (objects or ISO strings)."""
    if isinstance(day, str):
        day = date.fromisoformat(day)
    if isinstance(at, str):
        at = time.fromisoformat(at)
    return datetime.combine(day, at)


def compute_duration(departure_date: DateLike, departure_time: TimeLike,
                     arrival_date: DateLike, arrival_time: TimeLike) -> str:
    """
    Elapsed time between departure and arrival as HH:MM.
    Hours are not wrapped at 24 (a two-day trip reads "48:00"); seconds are truncated.
    """
    departure = to_datetime(departure_date, departure_time)
    arrival = to_datetime(arrival_date, arrival_time)
    if arrival < departure:
        raise InvalidTimeRange(
            f"Arrival ({arrival.isoformat(sep=' ')}) precedes departure ({departure.isoformat(sep=' ')})"
        )
    total_minutes = int((arrival - departure).total_seconds()) // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"
