# app/routers/alerts.py
from fastapi import APIRouter, Depends
from app.dependencies import get_capabilities, get_store
from app.schemas.alert import AlertOut
from app.services import alert_service
from app.services.permissions import Capabilities
from app.services.storage import SqlMovementStore
from typing import Optional

router = APIRouter()

@router.get("/alerts", response_model=list[AlertOut], summary="Operational alerts, newest first")
def get_all_alerts(
    alert_type: Optional[str] = None,
    vehicle_id: Optional[int] = None,
    is_resolved: Optional[int] = None,
    limit: int = 50,
    store: SqlMovementStore = Depends(get_store),
    caps: Capabilities = Depends(get_capabilities),
):
    """Filter by alert_type (e.g. state_drift), vehicle_id or is_resolved (0 or 1)."""
    return alert_service.list_alerts(store, caps, alert_type=alert_type, vehicle_id=vehicle_id,
                                     is_resolved=is_resolved, limit=limit)


@router.put("/alerts/{alert_id}/resolve", response_model=AlertOut, summary="Resolve an alert")
def resolve_alert(alert_id: int, store: SqlMovementStore = Depends(get_store),
                  caps: Capabilities = Depends(get_capabilities)):
    return alert_service.resolve_alert(store, caps, alert_id)
