"""
SQLAlchemy model for saved forts.
The full snapshot is stored as JSON; the other columns are index metadata for the fort list.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text

from .database import Base


class Fort(Base):
    __tablename__ = "forts"

    id = Column(String(36), primary_key=True)
    fort_name = Column(String(128), nullable=False)
    game_state = Column(Text, nullable=False)  # JSON string of full GameState snapshot
    grid_size = Column(Integer, nullable=False)
    round = Column(Integer, nullable=False, default=1)
    phase = Column(String(32), nullable=False, default="name_entry")
    defense = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    saved_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
