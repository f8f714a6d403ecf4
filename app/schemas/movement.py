# app/schemas/movement.py
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from typing import Optional


class ExitCreate(BaseModel):
    driver: str
    destination: str
    initial_mileage: int = Field(..., ge=0)
    departure_unit_id: int
    departure_date: Optional[date] = None     # defaults to now
    departure_time: Optional[time] = None
    notes: Optional[str] = None


class EntryCreate(BaseModel):
    final_mileage: int = Field(..., ge=0)
    arrival_unit_id: int
    arrival_date: Optional[date] = None       # defaults to now
    arrival_time: Optional[time] = None
    notes: Optional[str] = None


class MovementUpdate(BaseModel):
    """Only annotation fields; type/status/vehicle are owned by the lifecycle."""
    driver: Optional[str] = None
    destination: Optional[str] = None
    initial_mileage: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class MovementOut(BaseModel):
    id: int
    vehicle_id: int
    vehicle_plate: Optional[str]
    type: str                                 # initial | exit | entry
    status: str                               # yard | out
    driver: str
    destination: Optional[str]
    initial_mileage: int
    final_mileage: Optional[int]
    mileage_run: Optional[int]
    departure_unit_id: int
    departure_date: date
    departure_time: time
    arrival_unit_id: Optional[int]
    arrival_date: Optional[date]
    arrival_time: Optional[time]
    duration: Optional[str]                   # HH:MM
    notes: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MovementLogOut(BaseModel):
    id: int
    movement_id: int
    vehicle_id: Optional[int]
    user_id: Optional[str]
    action_type: str                          # edit | delete
    action_details: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
