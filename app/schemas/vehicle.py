# app/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    plate: str
    make: str
    model: str
    unit_id: int
    mileage: int = Field(0, ge=0)     # opening odometer, fixed by the initial movement
    color: Optional[str] = None
    year: Optional[int] = None
    photo_url: Optional[str] = None


class VehicleOut(BaseModel):
    id: int
    plate: str
    make: str
    model: str
    color: Optional[str]
    year: Optional[int]
    mileage: int
    location: str                     # yard | out
    photo_url: Optional[str]
    unit_id: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProjectedStateOut(BaseModel):
    location: str
    mileage: int

    class Config:
        from_attributes = True


class ProjectionOut(BaseModel):
    vehicle_id: int
    stored: ProjectedStateOut
    projected: Optional[ProjectedStateOut]
    consistent: bool
    description: Optional[str] = None
    repaired: bool = False
