# app/services/permissions.py
"""
Explicit capability record.
Services take a Capabilities argument instead of reading the current user
from global state; the HTTP layer builds it per request (app/dependencies.py).
"""

from dataclasses import dataclass, fields
from typing import Iterable

from app.exceptions import PermissionDenied

# camelCase names used by the X-Permissions header and DEFAULT_PERMISSIONS
PERMISSION_NAMES = {
    "canViewVehicles": "can_view_vehicles",
    "canEditVehicles": "can_edit_vehicles",
    "canViewUnits": "can_view_units",
    "canEditUnits": "can_edit_units",
    "canViewUsers": "can_view_users",
    "canEditUsers": "can_edit_users",
    "canViewMovements": "can_view_movements",
    "canEditMovements": "can_edit_movements",
}


@dataclass(frozen=True)
class Capabilities:
    can_view_vehicles: bool = False
    can_edit_vehicles: bool = False
    can_view_units: bool = False
    can_edit_units: bool = False
    can_view_users: bool = False
    can_edit_users: bool = False
    can_view_movements: bool = False
    can_edit_movements: bool = False

    @classmethod
    def full(cls) -> "Capabilities":
        return cls(**{f.name: True for f in fields(cls)})

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Capabilities":
        """Build from camelCase names; unknown names are ignored."""
        granted = {PERMISSION_NAMES[n] for n in names if n in PERMISSION_NAMES}
        return cls(**{name: True for name in granted})


def require(caps: Capabilities, capability: str):
    """Raise PermissionDenied unless caps grants `capability` (snake_case field name)."""
    if not getattr(caps, capability, False):
        raise PermissionDenied(f"Missing permission: {capability}")
