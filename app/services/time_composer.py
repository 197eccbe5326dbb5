"""
Canonical event timestamp composition
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):(\d{2})$")
_CANONICAL_PATTERN = re.compile(
    r"^(?P<weekday>[A-Z][a-z]{2}) (?P<month>[A-Z][a-z]{2}) (?P<day>\d{1,2}) (?P<year>\d{4}) "
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2}):00 (?P<offset>[+-]\d{2}:\d{2})$"
)


@dataclass(frozen=True)
class ComposedTimestamp:
    """Canonical text plus the UTC instant it denotes"""
    text: str
    sort_key: datetime


def parse_offset(offset: str) -> timezone:
    match = OFFSET_PATTERN.match(offset or "")
    if not match:
        raise ValueError(f"Invalid timezone offset: {offset!r}")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return timezone(-delta if sign == "-" else delta)


class TimeComposer:
    """Builds the stored "Ddd Mon D YYYY H:MM:00 ±HH:MM" event timestamp"""

    @staticmethod
    def to_24_hour(hour: str, meridiem: str) -> int:
        """Convert a 1..12 hour plus AM/PM to the stored hour.

        PM adds 12 unless the hour is already 12. AM hours pass through
        untouched, so 12 AM stays 12 (noon) rather than becoming 0.
        """
        value = int(hour)
        if not 1 <= value <= 12:
            raise ValueError(f"Hour must be between 1 and 12, got {hour!r}")
        if meridiem == "PM":
            return value if value == 12 else value + 12
        if meridiem == "AM":
            return value
        raise ValueError(f"Meridiem must be AM or PM, got {meridiem!r}")

    @staticmethod
    def compose(hour: str, minute: str, meridiem: str, offset: str, event_date: date) -> ComposedTimestamp:
        hour_24 = TimeComposer.to_24_hour(hour, meridiem)
        minute_value = int(minute)
        if not 0 <= minute_value <= 59 or len(minute) != 2:
            raise ValueError(f"Minute must be between 00 and 59, got {minute!r}")
        tz = parse_offset(offset)

        text = (
            f"{_WEEKDAYS[event_date.weekday()]} {_MONTHS[event_date.month - 1]} "
            f"{event_date.day} {event_date.year:04d} {hour_24}:{minute}:00 {offset}"
        )
        local = datetime(event_date.year, event_date.month, event_date.day,
                         hour_24, minute_value, tzinfo=tz)
        return ComposedTimestamp(text=text, sort_key=local.astimezone(timezone.utc))

    @staticmethod
    def parse(text: str) -> datetime:
        """Recover the UTC instant from a stored canonical timestamp"""
        match = _CANONICAL_PATTERN.match(text or "")
        if not match:
            raise ValueError(f"Not a canonical event timestamp: {text!r}")
        parts = match.groupdict()
        local = datetime(
            int(parts["year"]),
            _MONTHS.index(parts["month"]) + 1,
            int(parts["day"]),
            int(parts["hour"]),
            int(parts["minute"]),
            tzinfo=parse_offset(parts["offset"]),
        )
        return local.astimezone(timezone.utc)
