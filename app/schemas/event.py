"""
Event-related Pydantic schemas
"""

import re
from datetime import date as CalendarDate
from typing import Dict, Optional, Tuple, Type

from pydantic import BaseModel, EmailStr, ValidationError, field_validator
from pydantic_core import PydanticCustomError

TITLE_PATTERN = re.compile(r"^[a-zA-Z0-9\s&@.,_\-'\"]+$")
SLUG_PATTERN = re.compile(r"^[a-zA-Z0-9\-]+$")
OFFSET_PATTERN = re.compile(r"^[+-]\d{2}:\d{2}$")

HOURS = tuple(str(h) for h in range(1, 13))
MINUTES = tuple(f"{m:02d}" for m in range(60))
MERIDIEMS = ("AM", "PM")

DRAFT_FIELDS = ("title", "slug", "date", "hour", "minute", "meridiem", "timezone")

# Shown when a field was never filled in
REQUIRED_MESSAGES = {
    "title": "Please enter an event name.",
    "slug": "Please enter slug for the event url.",
    "date": "A date for this event is required.",
    "hour": "A time for this event is required.",
    "minute": "A time for this event is required.",
    "meridiem": "Please select AM or PM.",
    "timezone": "The timezone for this event is required.",
    "organizer_email": "A valid organizer email is required.",
}


def _field_error(message: str) -> PydanticCustomError:
    return PydanticCustomError("event_field", message)


class EventDraft(BaseModel):
    """A fully validated creation form"""
    title: str
    slug: str
    date: CalendarDate
    hour: str
    minute: str
    meridiem: str
    timezone: str

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 1:
            raise _field_error("Event name must be at least 1 character.")
        if not TITLE_PATTERN.match(value):
            raise _field_error(
                "Input must contain only letters, numbers, spaces, &, @, ., _, or -, single quotes, or double quotes"
            )
        return value.lower()

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 1:
            raise _field_error("Event slug must be at least 1 character.")
        if not SLUG_PATTERN.match(value):
            raise _field_error("Input must contain only letters, numbers, or -")
        return value.lower()

    @field_validator("hour")
    @classmethod
    def check_hour(cls, value: str) -> str:
        if value not in HOURS:
            raise _field_error(REQUIRED_MESSAGES["hour"])
        return value

    @field_validator("minute")
    @classmethod
    def check_minute(cls, value: str) -> str:
        if value not in MINUTES:
            raise _field_error(REQUIRED_MESSAGES["minute"])
        return value

    @field_validator("meridiem")
    @classmethod
    def check_meridiem(cls, value: str) -> str:
        if value not in MERIDIEMS:
            raise _field_error(REQUIRED_MESSAGES["meridiem"])
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        if not OFFSET_PATTERN.match(value):
            raise _field_error(REQUIRED_MESSAGES["timezone"])
        return value


def validate_draft(
    values: Dict[str, object], model: Type[EventDraft] = EventDraft
) -> Tuple[Optional[EventDraft], Dict[str, str]]:
    """Validate raw form values, returning the draft or per-field messages"""
    present = {k: v for k, v in values.items() if k in model.model_fields and v is not None}
    try:
        return model.model_validate(present), {}
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "form"
            if err["type"] == "event_field":
                message = err["msg"]
            else:
                message = REQUIRED_MESSAGES.get(field, err["msg"])
            errors.setdefault(field, message)
        return None, errors


class EventCreate(EventDraft):
    """Schema for creating an event over HTTP"""
    organizer_email: EmailStr


class TitleCheckResponse(BaseModel):
    title: str
    exists: bool


class SlugPreview(BaseModel):
    title: str
    slug: str
    url: str
