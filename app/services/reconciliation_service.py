# app/services/reconciliation_service.py
"""
Drift reconciliation between vehicles.location/mileage and movement history.

inspect_vehicle only reads: it projects one vehicle's history and reports.
reconcile_vehicle does the same and, on disagreement, raises a state_drift
alert (one unresolved alert per vehicle) and, when asked to repair, rewrites
the stored state (mileage never goes down). reconcile_fleet walks every vehicle.
"""

from dataclasses import dataclass
from typing import Optional

from app.services.alert_service import ALERT_STATE_DRIFT, create_alert, has_open_alert
from app.services.permissions import Capabilities, require
from app.services.state_projector import DriftReport, ProjectedState, detect_drift, project
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReconciliationResult:
    vehicle_id: int
    stored: ProjectedState
    projected: Optional[ProjectedState]
    drift: Optional[DriftReport] = None
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return self.drift is None


def _build_result(vehicle, movements) -> ReconciliationResult:
    return ReconciliationResult(
        vehicle_id=vehicle.id,
        stored=ProjectedState(vehicle.location, vehicle.mileage),
        projected=project(movements),
        drift=detect_drift(vehicle, movements),
    )


def inspect_vehicle(store, caps: Capabilities, vehicle_id: int) -> ReconciliationResult:
    """Drift report without side effects."""
    require(caps, "can_view_vehicles")
    vehicle = store.load_vehicle(vehicle_id)
    return _build_result(vehicle, store.load_movements_for_vehicle(vehicle_id))


async def reconcile_vehicle(store, caps: Capabilities, vehicle_id: int,
                            repair: bool = False) -> ReconciliationResult:
    require(caps, "can_view_vehicles")
    if repair:
        require(caps, "can_edit_vehicles")

    try:
        vehicle = store.load_vehicle(vehicle_id, for_update=repair)
        result = _build_result(vehicle, store.load_movements_for_vehicle(vehicle_id))
        if result.drift is None:
            return result

        logger.warning(f"[DRIFT] {result.drift.describe()}")
        if not has_open_alert(store, ALERT_STATE_DRIFT, vehicle_id):
            await create_alert(store, ALERT_STATE_DRIFT, result.drift.describe(),
                               vehicle_id=vehicle_id, unit_id=vehicle.unit_id)
        if repair:
            projected = result.drift.projected
            store.save_vehicle(vehicle_id, projected.location, max(vehicle.mileage, projected.mileage))
            result.repaired = True
            logger.info(f"[DRIFT] Vehicle {vehicle_id} repaired to {projected.location}")
        store.commit()
    except Exception:
        store.rollback()
        raise
    return result


async def reconcile_fleet(store, caps: Capabilities, repair: bool = False,
                          unit_id: Optional[int] = None) -> list:
    """Reconcile every vehicle (optionally of one unit); returns only the drifted ones."""
    require(caps, "can_view_vehicles")
    drifted = []
    for vehicle in store.list_vehicles(unit_id=unit_id):
        result = await reconcile_vehicle(store, caps, vehicle.id, repair=repair)
        if not result.consistent:
            drifted.append(result)
    logger.info(f"[DRIFT] Fleet check done: {len(drifted)} vehicle(s) drifted")
    return drifted
