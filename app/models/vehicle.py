# app/models/vehicle.py
"""
Fleet vehicles table.
`location` and `mileage` are the denormalized current state, written only by
the movement lifecycle (see services/movement_lifecycle.py) and checked
against the movement history by services/state_projector.py.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.database import Base

LOCATION_YARD = "yard"
LOCATION_OUT = "out"
LOCATIONS = (LOCATION_YARD, LOCATION_OUT)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate = Column(String(20), unique=True, nullable=False, index=True)  # normalized uppercase
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    color = Column(String(50))
    year = Column(Integer)
    mileage = Column(Integer, default=0, nullable=False)              # current odometer
    location = Column(String(10), default=LOCATION_YARD, nullable=False, index=True)  # yard | out
    photo_url = Column(String(500))
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Vehicle {self.plate} location={self.location} mileage={self.mileage}>"
