"""
Error taxonomy for event creation and deletion
"""

from enum import Enum
from typing import Dict, Iterable


class ConflictColumn(str, Enum):
    """Uniquely constrained event column that rejected an insert"""
    TITLE = "title"
    SLUG = "slug"
    NONE = "none"


class EventError(Exception):
    """Base class for event engine errors"""


class FieldValidationError(EventError):
    """One or more draft fields failed validation"""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class UniquenessConflictError(EventError):
    """The store refused an insert because a unique column already holds the value"""

    def __init__(self, columns: Iterable[ConflictColumn], detail: str = ""):
        self.columns = frozenset(c for c in columns if c is not ConflictColumn.NONE)
        self.detail = detail
        names = ", ".join(sorted(c.value for c in self.columns)) or ConflictColumn.NONE.value
        super().__init__(f"Unique constraint violated on: {names}")


class TransientStoreError(EventError):
    """Network or unknown store failure; the attempt can be retried"""


class PartialDeletionError(EventError):
    """Photos were deleted but the event row could not be"""

    def __init__(self, event_id: int, cause: Exception | None = None):
        self.event_id = event_id
        self.cause = cause
        super().__init__(f"Photos for event {event_id} were deleted but the event was not")
