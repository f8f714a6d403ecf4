# app/models/alert.py
"""
Alerts table: operational alerts raised by the service.
Currently written by reconciliation_service when a vehicle's stored
location/mileage disagrees with its movement history (alert_type=state_drift).
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(50), nullable=False, index=True)
    vehicle_id = Column(Integer, index=True)
    unit_id = Column(Integer)
    description = Column(Text)
    is_resolved = Column(Integer, default=0, nullable=False)
    triggered_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} resolved={self.is_resolved}>"
