"""
Database models package
"""

from .admin import Admin
from .event import Event
from .photo import Photo

__all__ = ["Admin", "Event", "Photo"]
