# app/services/movement_lifecycle.py
"""
Vehicle movement lifecycle.

Per-vehicle state machine:
  YARD --register_exit-->  OUT   creates an exit record (status=out)
  OUT  --register_entry--> YARD  finalizes that same record into an entry (status=yard)

Every transition is read state → validate → write movement → write vehicle
state → commit. Two database guards keep one open movement per vehicle:
the compare-and-swap on vehicles.location and the open-movement unique index.
Nothing is written before validation passes; on any failure the transaction
is rolled back and the error propagates to the caller.

The per-vehicle asyncio.Lock only serializes transitions once the store
awaits between steps. With the current synchronous store nothing is awaited
inside the lock, so it is a no-op and the database guards do the work.

An exit may not be dated before the vehicle's latest departure or arrival,
otherwise the history's most recent record would no longer be the open exit.

register_exit / register_entry are not idempotent: a repeated
call fails with VehicleAlreadyOut / NoOpenMovement.
"""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Callable, Optional

from app.exceptions import (
    CannotDeleteInitialRecord,
    InvalidTimeRange,
    NoOpenMovement,
    OpenMovementConflict,
    StaleVehicleState,
    ValidationError,
    VehicleAlreadyOut,
)
from app.models.movement import TYPE_ENTRY, TYPE_EXIT, TYPE_INITIAL, Movement
from app.models.vehicle import LOCATION_OUT, LOCATION_YARD
from app.services import mileage_rules, movement_log_service
from app.services.permissions import Capabilities, require
from app.services.state_projector import latest_activity, project
from app.utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = {"driver", "destination", "initial_mileage", "notes"}

# One lock per vehicle id, shared by every lifecycle instance in the process
_vehicle_locks = defaultdict(asyncio.Lock)


def vehicle_lock(vehicle_id: int) -> asyncio.Lock:
    return _vehicle_locks[vehicle_id]


def _required_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


class MovementLifecycle:
    def __init__(self, store, now: Callable[[], datetime] = datetime.now):
        self.store = store
        self._now = now

    # ── YARD → OUT ────────────────────────────────────────────────────────
    async def register_exit(self, caps: Capabilities, vehicle_id: int, driver: str,
                            destination: str, initial_mileage: int, departure_unit_id: int,
                            departure_date=None, departure_time=None,
                            notes: Optional[str] = None, created_by: Optional[str] = None) -> Movement:
        require(caps, "can_edit_movements")
        driver = _required_text(driver, "driver")
        destination = _required_text(destination, "destination")
        if departure_unit_id is None:
            raise ValidationError("departure_unit_id is required")

        async with vehicle_lock(vehicle_id):
            try:
                vehicle = self.store.load_vehicle(vehicle_id, for_update=True)
                if vehicle.location != LOCATION_YARD or self.store.find_open_movement(vehicle_id):
                    raise VehicleAlreadyOut(f"Vehicle {vehicle.plate} is already out")
                mileage_rules.validate_exit_mileage(vehicle.mileage, initial_mileage)
                self.store.load_unit(departure_unit_id)

                now = self._now()
                departure_date = departure_date or now.date()
                departure_time = departure_time or now.time().replace(microsecond=0)
                latest = latest_activity(self.store.load_movements_for_vehicle(vehicle_id))
                departure = mileage_rules.to_datetime(departure_date, departure_time)
                if latest is not None and departure < latest:
                    raise InvalidTimeRange(
                        f"Departure ({departure.isoformat(sep=' ')}) precedes the latest record "
                        f"of vehicle {vehicle.plate} ({latest.isoformat(sep=' ')})"
                    )

                movement = Movement(
                    vehicle_id=vehicle_id,
                    type=TYPE_EXIT,
                    status=LOCATION_OUT,
                    driver=driver,
                    destination=destination,
                    initial_mileage=initial_mileage,
                    departure_unit_id=departure_unit_id,
                    departure_date=departure_date,
                    departure_time=departure_time,
                    notes=notes,
                    created_by=created_by,
                )
                self.store.insert_movement(movement)
                self.store.save_vehicle(vehicle_id, LOCATION_OUT, initial_mileage,
                                        expected_location=LOCATION_YARD)
                self.store.commit()
            except (OpenMovementConflict, StaleVehicleState) as e:
                self.store.rollback()
                logger.warning(f"[EXIT] Vehicle {vehicle_id} rejected: concurrent departure ({e})")
                raise VehicleAlreadyOut(f"Vehicle {vehicle_id} is already out") from e
            except Exception as e:
                self.store.rollback()
                logger.warning(f"[EXIT] Vehicle {vehicle_id} rejected: {e}")
                raise

        logger.info(f"[EXIT] Plate={vehicle.plate} | Driver={driver} | Dest={destination} "
                    f"| Km={initial_mileage} | Movement={movement.id}")
        return movement

    # ── OUT → YARD ────────────────────────────────────────────────────────
    async def register_entry(self, caps: Capabilities, vehicle_id: int, final_mileage: int,
                             arrival_unit_id: int, arrival_date=None, arrival_time=None,
                             notes: Optional[str] = None) -> Movement:
        require(caps, "can_edit_movements")
        if arrival_unit_id is None:
            raise ValidationError("arrival_unit_id is required")

        async with vehicle_lock(vehicle_id):
            try:
                vehicle = self.store.load_vehicle(vehicle_id, for_update=True)
                open_movement = self.store.find_open_movement(vehicle_id)
                if vehicle.location != LOCATION_OUT or open_movement is None:
                    raise NoOpenMovement(f"Vehicle {vehicle.plate} has no open movement")
                mileage_rules.validate_entry_mileage(open_movement.initial_mileage, final_mileage)

                now = self._now()
                arrival_date = arrival_date or now.date()
                arrival_time = arrival_time or now.time().replace(microsecond=0)
                duration = mileage_rules.compute_duration(
                    open_movement.departure_date, open_movement.departure_time,
                    arrival_date, arrival_time,
                )
                self.store.load_unit(arrival_unit_id)

                fields = {
                    "type": TYPE_ENTRY,
                    "status": LOCATION_YARD,
                    "final_mileage": final_mileage,
                    "mileage_run": mileage_rules.compute_mileage_run(open_movement.initial_mileage, final_mileage),
                    "arrival_unit_id": arrival_unit_id,
                    "arrival_date": arrival_date,
                    "arrival_time": arrival_time,
                    "duration": duration,
                }
                if notes is not None:
                    fields["notes"] = notes
                movement = self.store.update_movement(open_movement.id, fields)
                self.store.save_vehicle(vehicle_id, LOCATION_YARD, final_mileage,
                                        expected_location=LOCATION_OUT)
                self.store.commit()
            except StaleVehicleState as e:
                self.store.rollback()
                logger.warning(f"[ENTRY] Vehicle {vehicle_id} rejected: concurrent arrival ({e})")
                raise NoOpenMovement(f"Vehicle {vehicle_id} has no open movement") from e
            except Exception as e:
                self.store.rollback()
                logger.warning(f"[ENTRY] Vehicle {vehicle_id} rejected: {e}")
                raise

        logger.info(f"[ENTRY] Plate={vehicle.plate} | Km={final_mileage} (+{movement.mileage_run}) "
                    f"| Duration={movement.duration} | Movement={movement.id}")
        return movement

    async def finalize_movement(self, caps: Capabilities, movement_id: int, final_mileage: int,
                                arrival_unit_id: int, arrival_date=None, arrival_time=None,
                                notes: Optional[str] = None) -> Movement:
        """register_entry addressed by the open movement's id instead of the vehicle's."""
        require(caps, "can_edit_movements")
        movement = self.store.load_movement(movement_id)
        if not movement.is_open:
            raise NoOpenMovement(f"Movement {movement_id} is already finalized")
        return await self.register_entry(caps, movement.vehicle_id, final_mileage, arrival_unit_id,
                                         arrival_date=arrival_date, arrival_time=arrival_time,
                                         notes=notes)

    # ── Post-hoc edits ────────────────────────────────────────────────────
    async def edit_movement(self, caps: Capabilities, movement_id: int, fields: dict,
                            user_id: Optional[str] = None) -> Movement:
        """
        Change driver/destination/initial_mileage/notes on any record.
        Not checked against neighbouring records; the record's own
        final > initial rule still holds and mileage_run is recomputed.
        """
        require(caps, "can_edit_movements")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        movement = self.store.load_movement(movement_id)
        async with vehicle_lock(movement.vehicle_id):
            try:
                changes = {}
                if "driver" in fields:
                    changes["driver"] = _required_text(fields["driver"], "driver")
                if "destination" in fields:
                    if movement.type == TYPE_INITIAL:
                        changes["destination"] = fields["destination"]
                    else:
                        changes["destination"] = _required_text(fields["destination"], "destination")
                if "notes" in fields:
                    changes["notes"] = fields["notes"]
                if "initial_mileage" in fields:
                    initial = mileage_rules.validate_opening_mileage(fields["initial_mileage"])
                    changes["initial_mileage"] = initial
                    if movement.final_mileage is not None:
                        mileage_rules.validate_entry_mileage(initial, movement.final_mileage)
                        changes["mileage_run"] = mileage_rules.compute_mileage_run(
                            initial, movement.final_mileage)

                before = movement_log_service.movement_snapshot(movement)
                movement = self.store.update_movement(movement_id, changes)
                movement_log_service.record_edit(self.store, movement, before, user_id=user_id)
                self.store.commit()
            except Exception as e:
                self.store.rollback()
                logger.warning(f"[EDIT] Movement {movement_id} rejected: {e}")
                raise

        logger.info(f"[EDIT] Movement={movement_id} | Fields={sorted(changes)} | By={user_id}")
        return movement

    # ── Deletion ──────────────────────────────────────────────────────────
    async def delete_movement(self, caps: Capabilities, movement_id: int, confirm: bool,
                              user_id: Optional[str] = None) -> None:
        """
        Remove a movement and re-project the vehicle's location from what is left.
        Mileage is kept at max(current, projected) so the odometer never goes back.
        """
        require(caps, "can_edit_movements")
        if not confirm:
            raise ValidationError("Deletion must be confirmed")

        movement = self.store.load_movement(movement_id)
        if movement.type == TYPE_INITIAL:
            raise CannotDeleteInitialRecord(
                f"Movement {movement_id} is the initial record of vehicle {movement.vehicle_id}"
            )

        vehicle_id = movement.vehicle_id
        async with vehicle_lock(vehicle_id):
            try:
                snapshot = movement_log_service.movement_snapshot(movement)
                self.store.delete_movement(movement_id)
                movement_log_service.record_delete(self.store, snapshot, user_id=user_id)

                vehicle = self.store.load_vehicle(vehicle_id, for_update=True)
                projected = project(self.store.load_movements_for_vehicle(vehicle_id))
                if projected is not None:
                    location = projected.location
                    mileage = max(vehicle.mileage, projected.mileage)
                    if (location, mileage) != (vehicle.location, vehicle.mileage):
                        self.store.save_vehicle(vehicle_id, location, mileage)
                        logger.info(f"[DELETE] Vehicle {vehicle_id} re-projected to {location} / {mileage} km")
                self.store.commit()
            except Exception as e:
                self.store.rollback()
                logger.warning(f"[DELETE] Movement {movement_id} rejected: {e}")
                raise

        logger.info(f"[DELETE] Movement={movement_id} | Vehicle={vehicle_id} | By={user_id}")
