# app/services/state_projector.py
"""
Vehicle state projection.
Derives a vehicle's current location and mileage from its movement history
instead of trusting the denormalized `vehicles.location` / `vehicles.mileage`
columns, and reports when the two disagree.

Projection rule (history ordered by departure date+time, ties by insertion):
  - latest record is an open exit → out, mileage = its initial_mileage
  - latest record is a finalized entry → yard, mileage = its final_mileage
  - latest record is the initial record → yard, mileage = its initial_mileage
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from app.exceptions import StateDriftDetected
from app.models.movement import TYPE_INITIAL
from app.models.vehicle import LOCATION_OUT, LOCATION_YARD
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProjectedState:
    location: str
    mileage: int


@dataclass(frozen=True)
class DriftReport:
    vehicle_id: int
    stored: ProjectedState
    projected: ProjectedState

    @property
    def location_drift(self) -> bool:
        return self.stored.location != self.projected.location

    @property
    def mileage_drift(self) -> bool:
        return self.stored.mileage != self.projected.mileage

    def describe(self) -> str:
        parts = []
        if self.location_drift:
            parts.append(f"location stored={self.stored.location} projected={self.projected.location}")
        if self.mileage_drift:
            parts.append(f"mileage stored={self.stored.mileage} projected={self.projected.mileage}")
        return f"Vehicle {self.vehicle_id}: " + ", ".join(parts)


def departure_key(movement):
    return (movement.departure_date, movement.departure_time)


def order_history(movements: Sequence) -> list:
    """Oldest first. sorted() is stable, so equal timestamps keep insertion order."""
    return sorted(movements, key=departure_key)


def project(movements: Sequence) -> Optional[ProjectedState]:
    """Current state implied by the history, or None for an empty history."""
    if not movements:
        return None
    latest = order_history(movements)[-1]

    if latest.is_open:
        return ProjectedState(LOCATION_OUT, latest.initial_mileage)
    if latest.type == TYPE_INITIAL or latest.final_mileage is None:
        return ProjectedState(LOCATION_YARD, latest.initial_mileage)
    return ProjectedState(LOCATION_YARD, latest.final_mileage)


def detect_drift(vehicle, movements: Sequence) -> Optional[DriftReport]:
    projected = project(movements)
    if projected is None:
        return None
    stored = ProjectedState(vehicle.location, vehicle.mileage)
    if stored == projected:
        return None
    return DriftReport(vehicle_id=vehicle.id, stored=stored, projected=projected)


def assert_consistent(vehicle, movements: Sequence):
    """Raise StateDriftDetected when the stored state disagrees with the history."""
    report = detect_drift(vehicle, movements)
    if report is not None:
        logger.warning(f"[DRIFT] {report.describe()}")
        raise StateDriftDetected(report.describe(), report=report)


def latest_activity(movements: Sequence) -> Optional[datetime]:
    """Latest departure or arrival timestamp in the history, None when it is empty."""
    stamps = []
    for m in movements:
        stamps.append(datetime.combine(m.departure_date, m.departure_time))
        if m.arrival_date is not None and m.arrival_time is not None:
            stamps.append(datetime.combine(m.arrival_date, m.arrival_time))
    return max(stamps, default=None)
