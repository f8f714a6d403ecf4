# app/services/movement_log_service.py
"""
Movement audit trail.
Edits store {"before": ..., "after": ...}; deletions store the removed record.
Rows are written through the caller's store so they commit (or roll back)
together with the change they describe.
"""

import json
from datetime import date, datetime, time
from typing import Optional

from app.models.movement import Movement
from app.models.movement_log import MovementLog
from app.services.permissions import Capabilities, require

ACTION_EDIT = "edit"
ACTION_DELETE = "delete"

SNAPSHOT_FIELDS = (
    "id", "vehicle_id", "type", "status", "driver", "destination",
    "initial_mileage", "final_mileage", "mileage_run",
    "departure_unit_id", "departure_date", "departure_time",
    "arrival_unit_id", "arrival_date", "arrival_time",
    "duration", "notes", "created_by",
)


def _jsonable(value):
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    return value


def movement_snapshot(movement: Movement) -> dict:
    return {name: _jsonable(getattr(movement, name)) for name in SNAPSHOT_FIELDS}


def record_edit(store, movement: Movement, before: dict, user_id: Optional[str] = None) -> MovementLog:
    after = movement_snapshot(movement)
    log = MovementLog(
        movement_id=movement.id,
        vehicle_id=movement.vehicle_id,
        user_id=user_id,
        action_type=ACTION_EDIT,
        action_details=json.dumps({"before": before, "after": after}),
        created_at=datetime.utcnow(),
    )
    store.add_log(log)
    return log


def record_delete(store, snapshot: dict, user_id: Optional[str] = None) -> MovementLog:
    log = MovementLog(
        movement_id=snapshot["id"],
        vehicle_id=snapshot["vehicle_id"],
        user_id=user_id,
        action_type=ACTION_DELETE,
        action_details=json.dumps(snapshot),
        created_at=datetime.utcnow(),
    )
    store.add_log(log)
    return log


def list_logs(store, caps: Capabilities, movement_id: Optional[int] = None, limit: int = 100) -> list:
    require(caps, "can_view_movements")
    return store.list_logs(movement_id=movement_id, limit=limit)
