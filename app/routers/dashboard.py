# app/routers/dashboard.py
"""Dashboard widgets: vehicle stats, recent movements, frequently used vehicles."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from app.config import settings
from app.dependencies import get_capabilities, get_store
from app.schemas.dashboard import FrequentVehicleOut, VehicleStatsOut
from app.schemas.movement import MovementOut
from app.services import dashboard_service
from app.services.permissions import Capabilities
from app.services.storage import SqlMovementStore

router = APIRouter()


@router.get("/dashboard/stats", response_model=VehicleStatsOut, summary="Vehicles in yard/out + today's movements")
def get_vehicle_stats(unit_id: Optional[int] = None, include_all_units: bool = True,
                      target_date: Optional[date] = None,
                      store: SqlMovementStore = Depends(get_store),
                      caps: Capabilities = Depends(get_capabilities)):
    return dashboard_service.vehicle_stats(store, caps, unit_id=unit_id,
                                           include_all_units=include_all_units, today=target_date)


@router.get("/dashboard/recent-movements", response_model=list[MovementOut])
def get_recent_movements(unit_id: Optional[int] = None, include_all_units: bool = True,
                         limit: Optional[int] = None,
                         store: SqlMovementStore = Depends(get_store),
                         caps: Capabilities = Depends(get_capabilities)):
    return dashboard_service.recent_movements(store, caps, unit_id=unit_id,
                                              include_all_units=include_all_units,
                                              limit=limit or settings.RECENT_MOVEMENTS_LIMIT)


@router.get("/dashboard/frequent-vehicles", response_model=list[FrequentVehicleOut])
def get_frequent_vehicles(unit_id: Optional[int] = None, include_all_units: bool = True,
                          limit: Optional[int] = None,
                          store: SqlMovementStore = Depends(get_store),
                          caps: Capabilities = Depends(get_capabilities)):
    """Vehicles ranked by number of movements (initial records not counted)."""
    ranked = dashboard_service.frequent_vehicles(store, caps, unit_id=unit_id,
                                                 include_all_units=include_all_units,
                                                 limit=limit or settings.FREQUENT_VEHICLES_LIMIT)
    return [{"vehicle": vehicle, "movement_count": count} for vehicle, count in ranked]
