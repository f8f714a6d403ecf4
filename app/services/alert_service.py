# app/services/alert_service.py
"""
Operational alerts: creation, listing and resolution.
Used by reconciliation_service when a vehicle's stored state drifts from its
movement history. Extend here to add push notifications, e-mail, etc.
"""

from datetime import datetime
from typing import Optional

from app.models.alert import Alert
from app.services.permissions import Capabilities, require
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_STATE_DRIFT = "state_drift"


def has_open_alert(store, alert_type: str, vehicle_id: int) -> bool:
    """True when the vehicle already has an unresolved alert of this type."""
    return bool(store.list_alerts(alert_type=alert_type, vehicle_id=vehicle_id, is_resolved=0, limit=1))


async def create_alert(store, alert_type: str, description: str,
                       vehicle_id: Optional[int] = None, unit_id: Optional[int] = None) -> Alert:
    """Persist an alert record through the caller's store. The caller commits."""
    alert = Alert(alert_type=alert_type, vehicle_id=vehicle_id, unit_id=unit_id,
                  description=description, is_resolved=0, triggered_at=datetime.utcnow())
    store.add_alert(alert)
    logger.warning(f"[ALERT][{alert_type.upper()}] {description}")
    return alert


def list_alerts(store, caps: Capabilities, alert_type: Optional[str] = None,
                vehicle_id: Optional[int] = None, is_resolved: Optional[int] = None,
                limit: int = 50) -> list:
    require(caps, "can_view_vehicles")
    return store.list_alerts(alert_type=alert_type, vehicle_id=vehicle_id,
                             is_resolved=is_resolved, limit=limit)


def resolve_alert(store, caps: Capabilities, alert_id: int) -> Alert:
    """Mark an alert as resolved. Resolving twice keeps the first resolved_at."""
    require(caps, "can_edit_vehicles")
    try:
        alert = store.load_alert(alert_id)
        if not alert.is_resolved:
            alert.is_resolved = 1
            alert.resolved_at = datetime.utcnow()
        store.commit()
    except Exception:
        store.rollback()
        raise
    logger.info(f"[ALERT] Alert {alert_id} resolved")
    return alert
