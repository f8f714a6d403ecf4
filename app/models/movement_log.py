# app/models/movement_log.py
"""
Movement audit log table.
One row per edit or delete of a movement record. movement_id is kept without
a foreign key so the trail survives the deletion it describes.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class MovementLog(Base):
    __tablename__ = "movement_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movement_id = Column(Integer, nullable=False, index=True)
    vehicle_id = Column(Integer, index=True)
    user_id = Column(String(100))
    action_type = Column(String(20), nullable=False)   # edit | delete
    action_details = Column(Text)                      # JSON: {"before", "after"} or deleted snapshot
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<MovementLog {self.id} movement={self.movement_id} action={self.action_type}>"
