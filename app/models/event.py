"""
Event model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from app.core.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    event_title = Column(String(255), unique=True, nullable=False, index=True)
    event_slug = Column(String(255), unique=True, nullable=False, index=True)
    # 0 when the creating email has no admins row
    admin_id = Column(Integer, nullable=False, default=0, index=True)
    # Canonical "Fri Mar 1 2024 19:05:00 -05:00" text shown to users
    event_date = Column(String(64), nullable=False)
    # Same instant in UTC, used for ordering
    event_sort_key = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
