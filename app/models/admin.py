"""
Admin model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from app.core.db import Base

class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
