# app/dependencies.py
"""
FastAPI dependencies shared by the routers.
Authentication happens upstream; the gateway forwards the caller's
permissions in X-Permissions and identity in X-User-Id.
"""

from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.services.movement_lifecycle import MovementLifecycle
from app.services.permissions import Capabilities
from app.services.storage import SqlMovementStore


def get_clock() -> Callable[[], datetime]:
    """Source of "now" for default dates on vehicles and movements."""
    return datetime.now


def get_store(db: Session = Depends(get_db)) -> SqlMovementStore:
    return SqlMovementStore(db)


def get_lifecycle(store: SqlMovementStore = Depends(get_store),
                  clock: Callable[[], datetime] = Depends(get_clock)) -> MovementLifecycle:
    return MovementLifecycle(store, now=clock)


def get_capabilities(x_permissions: Optional[str] = Header(None)) -> Capabilities:
    """Comma separated camelCase names; falls back to DEFAULT_PERMISSIONS when the header is absent."""
    if x_permissions is None:
        return Capabilities.from_names(settings.DEFAULT_PERMISSION_NAMES)
    return Capabilities.from_names(p.strip() for p in x_permissions.split(","))


def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id
