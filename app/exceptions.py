# app/exceptions.py
"""
Error taxonomy for the fleet service.
Every error carries the HTTP status the API answers with; main.py renders
them as {"detail": ..., "error": <kind>}. Validation and state errors are
raised before any write, storage errors come from services/storage.py.
"""


class FleetError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


# ── Input / invariant errors ─────────────────────────────────────────────────
class ValidationError(FleetError):
    status_code = 422


class InvalidMileage(FleetError):
    status_code = 422


class InvalidTimeRange(FleetError):
    status_code = 422


# ── State machine preconditions ──────────────────────────────────────────────
class VehicleAlreadyOut(FleetError):
    status_code = 409


class NoOpenMovement(FleetError):
    status_code = 409


class CannotDeleteInitialRecord(FleetError):
    status_code = 409


class VehicleHasMovements(FleetError):
    status_code = 409


class DuplicatePlate(FleetError):
    status_code = 409


class StateDriftDetected(FleetError):
    status_code = 409

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


# ── Missing entities ─────────────────────────────────────────────────────────
class MovementNotFound(FleetError):
    status_code = 404


class VehicleNotFound(FleetError):
    status_code = 404


class UnitNotFound(FleetError):
    status_code = 404


class AlertNotFound(FleetError):
    status_code = 404


class PermissionDenied(FleetError):
    status_code = 403


# ── Storage collaborator ─────────────────────────────────────────────────────
class StorageError(FleetError):
    status_code = 503


class OpenMovementConflict(StorageError):
    """The one-open-movement-per-vehicle index rejected an insert."""
    status_code = 409


class StaleVehicleState(StorageError):
    """Conditional vehicle update matched no row: someone moved the vehicle first."""
    status_code = 409
