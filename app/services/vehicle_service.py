# app/services/vehicle_service.py
"""
Vehicle registry helpers.
A vehicle is created together with its `initial` movement record, which fixes
the opening mileage the rest of the history builds on. It can only be removed
while that initial record is its only movement.
"""

from datetime import datetime
from typing import Callable, Optional

from app.exceptions import DuplicatePlate, ValidationError, VehicleHasMovements
from app.models.movement import TYPE_INITIAL, Movement
from app.models.vehicle import LOCATION_YARD, Vehicle
from app.services import mileage_rules
from app.services.permissions import Capabilities, require
from app.utils.logger import get_logger

logger = get_logger(__name__)

INITIAL_DRIVER = "Sistema"


def normalize_plate(plate: Optional[str]) -> str:
    """'abc 1d23' -> 'ABC1D23'"""
    return "".join(plate.split()).upper() if plate else ""


def lookup_vehicle_by_plate(store, plate: str) -> Optional[Vehicle]:
    """Find a vehicle by plate number (any spacing/case). Returns None if not found."""
    return store.find_vehicle_by_plate(normalize_plate(plate))


def is_registered(store, plate: str) -> bool:
    return lookup_vehicle_by_plate(store, plate) is not None


def get_vehicle(store, caps: Capabilities, vehicle_id: int) -> Vehicle:
    require(caps, "can_view_vehicles")
    return store.load_vehicle(vehicle_id)


def list_vehicles(store, caps: Capabilities, unit_id: Optional[int] = None,
                  location: Optional[str] = None, search: Optional[str] = None) -> list:
    require(caps, "can_view_vehicles")
    return store.list_vehicles(unit_id=unit_id, location=location, search=search)


def create_vehicle(store, caps: Capabilities, plate: str, make: str, model: str, unit_id: int,
                   mileage: int = 0, color: Optional[str] = None, year: Optional[int] = None,
                   photo_url: Optional[str] = None, created_by: Optional[str] = None,
                   now: Callable[[], datetime] = datetime.now) -> Vehicle:
    require(caps, "can_edit_vehicles")
    plate = normalize_plate(plate)
    if not plate:
        raise ValidationError("plate is required")
    mileage_rules.validate_opening_mileage(mileage)

    try:
        if store.find_vehicle_by_plate(plate) is not None:
            raise DuplicatePlate(f"Plate {plate} already registered")
        store.load_unit(unit_id)

        stamp = now()
        vehicle = Vehicle(
            plate=plate, make=make, model=model, color=color, year=year,
            mileage=mileage, location=LOCATION_YARD, photo_url=photo_url,
            unit_id=unit_id, created_at=stamp, updated_at=stamp,
        )
        store.add_vehicle(vehicle)
        store.insert_movement(Movement(
            vehicle_id=vehicle.id,
            type=TYPE_INITIAL,
            status=LOCATION_YARD,
            driver=INITIAL_DRIVER,
            initial_mileage=mileage,
            departure_unit_id=unit_id,
            departure_date=stamp.date(),
            departure_time=stamp.time().replace(microsecond=0),
            created_by=created_by,
        ))
        store.commit()
    except Exception:
        store.rollback()
        raise

    logger.info(f"[VEHICLE] Registered {plate} | Unit={unit_id} | Km={mileage}")
    return vehicle


def delete_vehicle(store, caps: Capabilities, vehicle_id: int) -> None:
    require(caps, "can_edit_vehicles")
    try:
        vehicle = store.load_vehicle(vehicle_id)
        trips = store.count_trips(vehicle_id)
        if trips:
            raise VehicleHasMovements(
                f"Vehicle {vehicle.plate} has {trips} movement(s) and cannot be deleted"
            )
        plate = vehicle.plate
        store.remove_vehicle(vehicle_id)
        store.commit()
    except Exception:
        store.rollback()
        raise
    logger.info(f"[VEHICLE] Removed {plate}")
