# app/services/dashboard_service.py
"""
Listing and dashboard aggregation.
Loads vehicles/movements once through the store and hands them to the pure
helpers in movement_filter.py.
"""

from datetime import date
from typing import Optional

from app.models.vehicle import LOCATION_OUT, LOCATION_YARD
from app.services import movement_filter
from app.services.movement_filter import MovementFilter
from app.services.permissions import Capabilities, require
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _unit_scope(unit_id: Optional[int], include_all_units: bool) -> Optional[int]:
    return None if include_all_units else unit_id


def list_movements(store, caps: Capabilities, f: MovementFilter) -> list:
    require(caps, "can_view_movements")
    movements = store.load_all_movements(_unit_scope(f.unit_id, f.include_all_units))
    result = movement_filter.apply_filter(movements, f)
    logger.debug(f"[LIST] {len(result)}/{len(movements)} movements for {f}")
    return result


def vehicle_stats(store, caps: Capabilities, unit_id: Optional[int] = None,
                  include_all_units: bool = True, today: Optional[date] = None) -> dict:
    """Vehicle counts by location plus movements departing today, scoped by unit."""
    require(caps, "can_view_vehicles")
    scope = _unit_scope(unit_id, include_all_units)
    today = today or date.today()

    vehicles = store.list_vehicles(unit_id=scope)
    movements = movement_filter.by_unit(store.load_all_movements(scope), scope, scope is None)
    movements_today = movement_filter.by_date_range(movements, today, today)

    return {
        "total_vehicles": len(vehicles),
        "vehicles_in_yard": sum(1 for v in vehicles if v.location == LOCATION_YARD),
        "vehicles_out": sum(1 for v in vehicles if v.location == LOCATION_OUT),
        "movements_today": len(movements_today),
    }


def recent_movements(store, caps: Capabilities, unit_id: Optional[int] = None,
                     include_all_units: bool = True, limit: int = 10) -> list:
    return list_movements(store, caps, MovementFilter(
        unit_id=unit_id, include_all_units=include_all_units, limit=limit))


def frequent_vehicles(store, caps: Capabilities, unit_id: Optional[int] = None,
                      include_all_units: bool = True, limit: Optional[int] = None) -> list:
    """Vehicles of the unit (or all), ranked by how many movements they made."""
    require(caps, "can_view_vehicles")
    scope = _unit_scope(unit_id, include_all_units)
    vehicles = store.list_vehicles(unit_id=scope)
    return movement_filter.rank_frequent_vehicles(vehicles, store.load_all_movements(), limit)
