# app/models/unit.py
"""
Units table: depots/branches that own vehicles.
Only used as a scoping dimension: vehicles belong to a unit, movements
depart from and arrive at units. Unit CRUD lives outside this service.
"""

from sqlalchemy import Column, Integer, String, Text
from app.database import Base


class Unit(Base):
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    address = Column(Text)

    def __repr__(self):
        return f"<Unit {self.code} name={self.name}>"
