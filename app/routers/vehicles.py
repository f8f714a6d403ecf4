# app/routers/vehicles.py
"""Vehicle registry + per-vehicle movement history, projection and reconciliation."""

from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends

from app.config import settings
from app.dependencies import get_capabilities, get_clock, get_store, get_user_id
from app.schemas.movement import MovementOut
from app.schemas.vehicle import ProjectionOut, VehicleCreate, VehicleOut
from app.services import reconciliation_service, vehicle_service
from app.services.permissions import Capabilities, require
from app.services.state_projector import assert_consistent
from app.services.storage import SqlMovementStore

router = APIRouter()


def _projection_out(result) -> dict:
    return {
        "vehicle_id": result.vehicle_id,
        "stored": result.stored,
        "projected": result.projected,
        "consistent": result.consistent,
        "description": result.drift.describe() if result.drift else None,
        "repaired": result.repaired,
    }


@router.get("/vehicles", response_model=list[VehicleOut], summary="List vehicles")
def list_vehicles(unit_id: Optional[int] = None, location: Optional[str] = None,
                  search: Optional[str] = None,
                  store: SqlMovementStore = Depends(get_store),
                  caps: Capabilities = Depends(get_capabilities)):
    return vehicle_service.list_vehicles(store, caps, unit_id=unit_id, location=location, search=search)


@router.post("/vehicles", response_model=VehicleOut, status_code=201, summary="Register a vehicle")
def register_vehicle(body: VehicleCreate, store: SqlMovementStore = Depends(get_store),
                     caps: Capabilities = Depends(get_capabilities),
                     user_id: Optional[str] = Depends(get_user_id),
                     clock: Callable[[], datetime] = Depends(get_clock)):
    """Creates the vehicle in the yard together with its initial movement record."""
    return vehicle_service.create_vehicle(
        store, caps, plate=body.plate, make=body.make, model=body.model, unit_id=body.unit_id,
        mileage=body.mileage, color=body.color, year=body.year, photo_url=body.photo_url,
        created_by=user_id, now=clock,
    )


@router.get("/vehicles/lookup/{plate}", summary="Look up a plate number")
def lookup_vehicle(plate: str, store: SqlMovementStore = Depends(get_store),
                   caps: Capabilities = Depends(get_capabilities)):
    require(caps, "can_view_vehicles")
    vehicle = vehicle_service.lookup_vehicle_by_plate(store, plate)
    if not vehicle:
        return {"plate": vehicle_service.normalize_plate(plate), "registered": False}
    return {"plate": vehicle.plate, "registered": True, "vehicle_id": vehicle.id,
            "location": vehicle.location, "mileage": vehicle.mileage}


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut)
def get_vehicle(vehicle_id: int, store: SqlMovementStore = Depends(get_store),
                caps: Capabilities = Depends(get_capabilities)):
    return vehicle_service.get_vehicle(store, caps, vehicle_id)


@router.delete("/vehicles/{vehicle_id}", summary="Remove a vehicle without movements")
def remove_vehicle(vehicle_id: int, store: SqlMovementStore = Depends(get_store),
                   caps: Capabilities = Depends(get_capabilities)):
    vehicle_service.delete_vehicle(store, caps, vehicle_id)
    return {"status": "removed", "vehicle_id": vehicle_id}


@router.get("/vehicles/{vehicle_id}/movements", response_model=list[MovementOut],
            summary="Movement history of a vehicle, oldest first")
def get_vehicle_movements(vehicle_id: int, store: SqlMovementStore = Depends(get_store),
                          caps: Capabilities = Depends(get_capabilities)):
    require(caps, "can_view_movements")
    store.load_vehicle(vehicle_id)
    return store.load_movements_for_vehicle(vehicle_id)


@router.get("/vehicles/{vehicle_id}/projection", response_model=ProjectionOut,
            summary="Compare stored state with the state projected from history")
def get_projection(vehicle_id: int, strict: bool = False,
                   store: SqlMovementStore = Depends(get_store),
                   caps: Capabilities = Depends(get_capabilities)):
    """
    Read-only drift report; alerts are raised by POST /vehicles/{id}/reconcile.
    With strict=true a drifted vehicle answers 409 StateDriftDetected instead of a report.
    """
    if strict:
        require(caps, "can_view_vehicles")
        assert_consistent(store.load_vehicle(vehicle_id), store.load_movements_for_vehicle(vehicle_id))
    return _projection_out(reconciliation_service.inspect_vehicle(store, caps, vehicle_id))


@router.post("/vehicles/{vehicle_id}/reconcile", response_model=ProjectionOut,
             summary="Reconcile a vehicle's stored state with its history")
async def reconcile_vehicle(vehicle_id: int, repair: Optional[bool] = None,
                            store: SqlMovementStore = Depends(get_store),
                            caps: Capabilities = Depends(get_capabilities)):
    repair = settings.AUTO_REPAIR_DRIFT if repair is None else repair
    result = await reconciliation_service.reconcile_vehicle(store, caps, vehicle_id, repair=repair)
    return _projection_out(result)
