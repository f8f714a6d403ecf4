# app/schemas/dashboard.py
from pydantic import BaseModel
from app.schemas.vehicle import VehicleOut


class VehicleStatsOut(BaseModel):
    total_vehicles: int
    vehicles_in_yard: int
    vehicles_out: int
    movements_today: int


class FrequentVehicleOut(BaseModel):
    vehicle: VehicleOut
    movement_count: int
