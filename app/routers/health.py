# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + count of open movements.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func, text
from app.database import get_db
from app.models.movement import Movement
from app.models.vehicle import LOCATION_OUT
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Number of vehicles currently out (open movements)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "open_movements": None,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
        result["open_movements"] = db.query(func.count(Movement.id)).filter(
            Movement.status == LOCATION_OUT).scalar()
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
