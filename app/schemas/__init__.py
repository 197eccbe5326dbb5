"""
Pydantic schemas package
"""

from .common import *
from .event import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventDraft",
    "EventCreate",
    "TitleCheckResponse",
    "SlugPreview",
    "validate_draft",
]
