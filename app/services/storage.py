# app/services/storage.py
"""
Storage collaborator for the movement lifecycle.

MovementStore is the contract the lifecycle, registry and dashboard services
consume; SqlMovementStore implements it over a SQLAlchemy Session.

The store flushes but never commits: callers own the transaction and call
commit()/rollback() once per operation. Two guards back the
one-open-movement-per-vehicle rule across processes:
  - save_vehicle() is a conditional UPDATE on the expected location
    (compare-and-swap) and raises StaleVehicleState when it matches no row
  - the partial unique index on movements(vehicle_id) WHERE status='out'
    surfaces as OpenMovementConflict on insert
Any other SQLAlchemy failure is wrapped in StorageError.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Protocol, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import (
    AlertNotFound,
    MovementNotFound,
    OpenMovementConflict,
    StaleVehicleState,
    StorageError,
    UnitNotFound,
    VehicleNotFound,
)
from app.models.alert import Alert
from app.models.movement import OPEN_MOVEMENT_INDEX, TYPE_EXIT, TYPE_INITIAL, Movement
from app.models.movement_log import MovementLog
from app.models.unit import Unit
from app.models.vehicle import LOCATION_OUT, Vehicle
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Columns update_movement() may write
MOVEMENT_COLUMNS = {
    "type", "status", "driver", "destination", "initial_mileage", "final_mileage",
    "mileage_run", "departure_unit_id", "departure_date", "departure_time",
    "arrival_unit_id", "arrival_date", "arrival_time", "duration", "notes",
}


class MovementStore(Protocol):
    def load_vehicle(self, vehicle_id: int, for_update: bool = False) -> Vehicle: ...
    def save_vehicle(self, vehicle_id: int, location: str, mileage: int,
                     expected_location: Optional[str] = None) -> None: ...
    def load_movements_for_vehicle(self, vehicle_id: int) -> Sequence[Movement]: ...
    def load_movement(self, movement_id: int) -> Movement: ...
    def insert_movement(self, movement: Movement) -> int: ...
    def update_movement(self, movement_id: int, fields: dict) -> Movement: ...
    def delete_movement(self, movement_id: int) -> None: ...
    def load_all_movements(self, unit_id: Optional[int] = None) -> Sequence[Movement]: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


def _is_open_movement_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return OPEN_MOVEMENT_INDEX in message or "movements.vehicle_id" in message


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except IntegrityError as e:
        if _is_open_movement_violation(e):
            raise OpenMovementConflict(f"{action}: vehicle already has an open movement") from e
        logger.error(f"[STORAGE] {action} failed: {e}", exc_info=True)
        raise StorageError(f"{action} failed: integrity error") from e
    except SQLAlchemyError as e:
        logger.error(f"[STORAGE] {action} failed: {e}", exc_info=True)
        raise StorageError(f"{action} failed: {e.__class__.__name__}") from e


class SqlMovementStore:
    def __init__(self, db: Session):
        self.db = db

    # ── Units ─────────────────────────────────────────────────────────────
    def load_unit(self, unit_id: int) -> Unit:
        with _storage_errors("load unit"):
            unit = self.db.get(Unit, unit_id)
        if unit is None:
            raise UnitNotFound(f"Unit {unit_id} not found")
        return unit

    # ── Vehicles ──────────────────────────────────────────────────────────
    def load_vehicle(self, vehicle_id: int, for_update: bool = False) -> Vehicle:
        with _storage_errors("load vehicle"):
            q = self.db.query(Vehicle).filter(Vehicle.id == vehicle_id)
            if for_update:
                q = q.with_for_update()     # row lock on PostgreSQL, no-op on SQLite
            vehicle = q.first()
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
        return vehicle

    def find_vehicle_by_plate(self, plate: str) -> Optional[Vehicle]:
        with _storage_errors("find vehicle by plate"):
            return self.db.query(Vehicle).filter(Vehicle.plate == plate).first()

    def list_vehicles(self, unit_id: Optional[int] = None, location: Optional[str] = None,
                      search: Optional[str] = None) -> list:
        with _storage_errors("list vehicles"):
            q = self.db.query(Vehicle)
            if unit_id is not None:
                q = q.filter(Vehicle.unit_id == unit_id)
            if location:
                q = q.filter(Vehicle.location == location)
            if search:
                term = f"%{search.lower()}%"
                q = q.filter(or_(
                    func.lower(Vehicle.plate).like(term),
                    func.lower(Vehicle.make).like(term),
                    func.lower(Vehicle.model).like(term),
                    func.lower(Vehicle.color).like(term),
                ))
            return q.order_by(Vehicle.id).all()

    def add_vehicle(self, vehicle: Vehicle) -> int:
        with _storage_errors("insert vehicle"):
            self.db.add(vehicle)
            self.db.flush()
        return vehicle.id

    def remove_vehicle(self, vehicle_id: int) -> None:
        with _storage_errors("delete vehicle"):
            self.db.query(Movement).filter(Movement.vehicle_id == vehicle_id).delete(
                synchronize_session=False)
            self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).delete(
                synchronize_session=False)
            self.db.flush()
            self.db.expire_all()

    def save_vehicle(self, vehicle_id: int, location: str, mileage: int,
                     expected_location: Optional[str] = None) -> None:
        """Replace location/mileage; with expected_location, only if the row still has it."""
        with _storage_errors("save vehicle"):
            q = self.db.query(Vehicle).filter(Vehicle.id == vehicle_id)
            if expected_location is not None:
                q = q.filter(Vehicle.location == expected_location)
            updated = q.update(
                {Vehicle.location: location, Vehicle.mileage: mileage,
                 Vehicle.updated_at: datetime.utcnow()},
                synchronize_session="fetch",
            )
            self.db.flush()
        if updated == 0:
            raise StaleVehicleState(
                f"Vehicle {vehicle_id} is no longer '{expected_location}'"
            )

    # ── Movements ─────────────────────────────────────────────────────────
    def load_movements_for_vehicle(self, vehicle_id: int) -> list:
        with _storage_errors("load vehicle movements"):
            return (
                self.db.query(Movement)
                .filter(Movement.vehicle_id == vehicle_id)
                .order_by(Movement.departure_date, Movement.departure_time, Movement.id)
                .all()
            )

    def find_open_movement(self, vehicle_id: int) -> Optional[Movement]:
        with _storage_errors("find open movement"):
            return (
                self.db.query(Movement)
                .filter(
                    Movement.vehicle_id == vehicle_id,
                    Movement.type == TYPE_EXIT,
                    Movement.status == LOCATION_OUT,
                    Movement.arrival_date == None,  # noqa: E711
                )
                .order_by(Movement.departure_date.desc(), Movement.departure_time.desc())
                .first()
            )

    def count_trips(self, vehicle_id: int) -> int:
        """Movements other than the initial record."""
        with _storage_errors("count movements"):
            return (
                self.db.query(func.count(Movement.id))
                .filter(Movement.vehicle_id == vehicle_id, Movement.type != TYPE_INITIAL)
                .scalar()
            )

    def load_movement(self, movement_id: int) -> Movement:
        with _storage_errors("load movement"):
            movement = self.db.get(Movement, movement_id)
        if movement is None:
            raise MovementNotFound(f"Movement {movement_id} not found")
        return movement

    def insert_movement(self, movement: Movement) -> int:
        movement.created_at = movement.created_at or datetime.utcnow()
        with _storage_errors("insert movement"):
            self.db.add(movement)
            self.db.flush()
        return movement.id

    def update_movement(self, movement_id: int, fields: dict) -> Movement:
        unknown = set(fields) - MOVEMENT_COLUMNS
        if unknown:
            raise StorageError(f"Cannot update movement columns: {sorted(unknown)}")
        movement = self.load_movement(movement_id)
        with _storage_errors("update movement"):
            for name, value in fields.items():
                setattr(movement, name, value)
            movement.updated_at = datetime.utcnow()
            self.db.flush()
        return movement

    def delete_movement(self, movement_id: int) -> None:
        movement = self.load_movement(movement_id)
        with _storage_errors("delete movement"):
            self.db.delete(movement)
            self.db.flush()

    def load_all_movements(self, unit_id: Optional[int] = None) -> list:
        """Bulk load in insertion order; unit_id keeps movements departing from or arriving at it."""
        with _storage_errors("load movements"):
            q = self.db.query(Movement)
            if unit_id is not None:
                q = q.filter(or_(Movement.departure_unit_id == unit_id,
                                 Movement.arrival_unit_id == unit_id))
            return q.order_by(Movement.id).all()

    # ── Audit log / alerts ────────────────────────────────────────────────
    def add_log(self, log: MovementLog) -> int:
        with _storage_errors("insert movement log"):
            self.db.add(log)
            self.db.flush()
        return log.id

    def list_logs(self, movement_id: Optional[int] = None, limit: int = 100) -> list:
        with _storage_errors("list movement logs"):
            q = self.db.query(MovementLog)
            if movement_id is not None:
                q = q.filter(MovementLog.movement_id == movement_id)
            return q.order_by(MovementLog.created_at.desc(), MovementLog.id.desc()).limit(limit).all()

    def add_alert(self, alert: Alert) -> int:
        with _storage_errors("insert alert"):
            self.db.add(alert)
            self.db.flush()
        return alert.id

    def load_alert(self, alert_id: int) -> Alert:
        with _storage_errors("load alert"):
            alert = self.db.get(Alert, alert_id)
        if alert is None:
            raise AlertNotFound(f"Alert {alert_id} not found")
        return alert

    def list_alerts(self, alert_type: Optional[str] = None, vehicle_id: Optional[int] = None,
                    is_resolved: Optional[int] = None, limit: int = 50) -> list:
        with _storage_errors("list alerts"):
            q = self.db.query(Alert)
            if alert_type:
                q = q.filter(Alert.alert_type == alert_type)
            if vehicle_id is not None:
                q = q.filter(Alert.vehicle_id == vehicle_id)
            if is_resolved is not None:
                q = q.filter(Alert.is_resolved == is_resolved)
            return q.order_by(Alert.triggered_at.desc(), Alert.id.desc()).limit(limit).all()

    # ── Transaction ───────────────────────────────────────────────────────
    def commit(self) -> None:
        with _storage_errors("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
