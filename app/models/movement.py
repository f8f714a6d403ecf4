# app/models/movement.py
"""
Movement records table.
One row per logical trip: created as an `exit` (status=out) when the vehicle
leaves the yard and finalized in place into an `entry` (status=yard) when it
returns. Each vehicle also has exactly one `initial` row fixing its opening
mileage.

The partial unique index keeps at most one open (status=out) row per vehicle
even when several processes write concurrently.
"""

from sqlalchemy import Column, Integer, String, Date, Time, DateTime, Text, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from app.database import Base

TYPE_INITIAL = "initial"
TYPE_EXIT = "exit"
TYPE_ENTRY = "entry"
MOVEMENT_TYPES = (TYPE_INITIAL, TYPE_EXIT, TYPE_ENTRY)

OPEN_MOVEMENT_INDEX = "uq_movements_one_open_per_vehicle"


class Movement(Base):
    __tablename__ = "movements"
    __table_args__ = (
        Index(
            OPEN_MOVEMENT_INDEX,
            "vehicle_id",
            unique=True,
            sqlite_where=text("status = 'out'"),
            postgresql_where=text("status = 'out'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)             # initial | exit | entry
    status = Column(String(10), nullable=False)           # yard | out (vehicle state after this record)
    driver = Column(String(200), nullable=False)
    destination = Column(String(300))
    initial_mileage = Column(Integer, nullable=False)
    final_mileage = Column(Integer)
    mileage_run = Column(Integer)                         # final - initial (set on entry)
    departure_unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    departure_date = Column(Date, nullable=False, index=True)
    departure_time = Column(Time, nullable=False)
    arrival_unit_id = Column(Integer, ForeignKey("units.id"), index=True)
    arrival_date = Column(Date)
    arrival_time = Column(Time)
    duration = Column(String(12))                         # HH:MM (set on entry)
    notes = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    vehicle = relationship("Vehicle", lazy="joined")

    @property
    def vehicle_plate(self):
        return self.vehicle.plate if self.vehicle is not None else None

    @property
    def is_open(self) -> bool:
        """An exit with no arrival data attached yet."""
        return self.type == TYPE_EXIT and self.arrival_date is None and self.final_mileage is None

    def __repr__(self):
        return f"<Movement {self.id} vehicle={self.vehicle_id} type={self.type} status={self.status}>"
