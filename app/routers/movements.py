# app/routers/movements.py
"""Movement lifecycle endpoints: exit, entry, edit, delete, listing and audit log."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.config import settings
from app.dependencies import get_capabilities, get_lifecycle, get_store, get_user_id
from app.schemas.movement import EntryCreate, ExitCreate, MovementLogOut, MovementOut, MovementUpdate
from app.services import dashboard_service, movement_log_service
from app.services.movement_filter import MovementFilter
from app.services.movement_lifecycle import MovementLifecycle
from app.services.permissions import Capabilities, require
from app.services.storage import SqlMovementStore

router = APIRouter()


@router.post("/vehicles/{vehicle_id}/exit", response_model=MovementOut, status_code=201,
             summary="Register a vehicle leaving the yard")
async def register_exit(vehicle_id: int, body: ExitCreate,
                        lifecycle: MovementLifecycle = Depends(get_lifecycle),
                        caps: Capabilities = Depends(get_capabilities),
                        user_id: Optional[str] = Depends(get_user_id)):
    return await lifecycle.register_exit(
        caps, vehicle_id, driver=body.driver, destination=body.destination,
        initial_mileage=body.initial_mileage, departure_unit_id=body.departure_unit_id,
        departure_date=body.departure_date, departure_time=body.departure_time,
        notes=body.notes, created_by=user_id,
    )


@router.post("/vehicles/{vehicle_id}/entry", response_model=MovementOut,
             summary="Register a vehicle returning to the yard")
async def register_entry(vehicle_id: int, body: EntryCreate,
                         lifecycle: MovementLifecycle = Depends(get_lifecycle),
                         caps: Capabilities = Depends(get_capabilities)):
    """Finalizes the vehicle's open exit record in place."""
    return await lifecycle.register_entry(
        caps, vehicle_id, final_mileage=body.final_mileage, arrival_unit_id=body.arrival_unit_id,
        arrival_date=body.arrival_date, arrival_time=body.arrival_time, notes=body.notes,
    )


@router.post("/movements/{movement_id}/finalize", response_model=MovementOut,
             summary="Finalize an open movement by id")
async def finalize_movement(movement_id: int, body: EntryCreate,
                            lifecycle: MovementLifecycle = Depends(get_lifecycle),
                            caps: Capabilities = Depends(get_capabilities)):
    return await lifecycle.finalize_movement(
        caps, movement_id, final_mileage=body.final_mileage, arrival_unit_id=body.arrival_unit_id,
        arrival_date=body.arrival_date, arrival_time=body.arrival_time, notes=body.notes,
    )


@router.get("/movements", response_model=list[MovementOut], summary="List movements, most recent first")
def list_movements(unit_id: Optional[int] = None, include_all_units: bool = True,
                   search: Optional[str] = None, status: Optional[str] = None,
                   date_from: Optional[date] = None, date_to: Optional[date] = None,
                   limit: Optional[int] = Query(
                       None, ge=1,
                       description="Maximum rows returned, most recent first. "
                                   f"Defaults to MOVEMENT_LIST_LIMIT ({settings.MOVEMENT_LIST_LIMIT}); "
                                   "older movements beyond the cap are left out."),
                   store: SqlMovementStore = Depends(get_store),
                   caps: Capabilities = Depends(get_capabilities)):
    """include_all_units=false keeps movements that departed from or arrived at unit_id."""
    return dashboard_service.list_movements(store, caps, MovementFilter(
        unit_id=unit_id, include_all_units=include_all_units, search=search, status=status,
        date_from=date_from, date_to=date_to, limit=limit or settings.MOVEMENT_LIST_LIMIT,
    ))


@router.get("/movements/logs", response_model=list[MovementLogOut], summary="Edit/delete audit trail")
def list_movement_logs(movement_id: Optional[int] = None, limit: int = 100,
                       store: SqlMovementStore = Depends(get_store),
                       caps: Capabilities = Depends(get_capabilities)):
    return movement_log_service.list_logs(store, caps, movement_id=movement_id, limit=limit)


@router.get("/movements/{movement_id}", response_model=MovementOut)
def get_movement(movement_id: int, store: SqlMovementStore = Depends(get_store),
                 caps: Capabilities = Depends(get_capabilities)):
    require(caps, "can_view_movements")
    return store.load_movement(movement_id)


@router.patch("/movements/{movement_id}", response_model=MovementOut, summary="Edit a movement")
async def edit_movement(movement_id: int, body: MovementUpdate,
                        lifecycle: MovementLifecycle = Depends(get_lifecycle),
                        caps: Capabilities = Depends(get_capabilities),
                        user_id: Optional[str] = Depends(get_user_id)):
    fields = body.model_dump(exclude_unset=True)
    return await lifecycle.edit_movement(caps, movement_id, fields, user_id=user_id)


@router.delete("/movements/{movement_id}", summary="Delete a movement")
async def delete_movement(movement_id: int, confirm: bool = False,
                          lifecycle: MovementLifecycle = Depends(get_lifecycle),
                          caps: Capabilities = Depends(get_capabilities),
                          user_id: Optional[str] = Depends(get_user_id)):
    """Requires confirm=true. The initial record of a vehicle cannot be deleted."""
    await lifecycle.delete_movement(caps, movement_id, confirm=confirm, user_id=user_id)
    return {"status": "deleted", "movement_id": movement_id}
