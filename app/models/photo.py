"""
Photo model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from app.core.db import Base

class Photo(Base):
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    blob_id = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
