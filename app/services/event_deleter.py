"""
Cascading deletion of an event and its photos
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from app.core.errors import EventError, PartialDeletionError, TransientStoreError
from app.services.repositories import EventRecord, EventStore

logger = logging.getLogger(__name__)

DELETE_FAILED_MESSAGE = "There was an error deleting the event, please try again!"
PARTIAL_DELETE_MESSAGE = "The event photos were deleted but the event itself could not be removed."


class DeletionState(str, Enum):
    IDLE = "idle"
    DELETING_DEPENDENTS = "deleting_dependents"
    DELETING_PARENT = "deleting_parent"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class DeletionReport:
    event_id: int
    state: DeletionState
    failed_step: Optional[DeletionState] = None
    error: Optional[EventError] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is DeletionState.DONE

    @property
    def partial(self) -> bool:
        return isinstance(self.error, PartialDeletionError)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "state": self.state.value,
            "failed_step": self.failed_step.value if self.failed_step else None,
            "message": self.message,
        }


class EventListing:
    """In-memory listing of events as last shown to the user"""

    def __init__(self, events: Iterable[EventRecord] = ()):
        self._events: Dict[int, EventRecord] = {e.id: e for e in events}

    @classmethod
    async def load(cls, store: EventStore) -> "EventListing":
        return cls(await store.list_events())

    def __contains__(self, event_id: int) -> bool:
        return event_id in self._events

    def __len__(self) -> int:
        return len(self._events)

    def events(self) -> List[EventRecord]:
        return list(self._events.values())

    def add(self, event: EventRecord) -> None:
        self._events[event.id] = event

    def remove(self, event_id: int) -> None:
        self._events.pop(event_id, None)


class EventDeleter:
    """Deletes photos first, then the event row.

    If the photo delete fails the event row is never touched. If the event
    delete fails afterwards the photos are already gone and the report
    carries a PartialDeletionError; this is not retried.
    """

    def __init__(self, store: EventStore, listing: Optional[EventListing] = None):
        self.store = store
        self.listing = listing
        self.state = DeletionState.IDLE

    async def delete(self, event_id: int) -> DeletionReport:
        self.state = DeletionState.DELETING_DEPENDENTS
        try:
            await self.store.delete_photos_for_event(event_id)
        except TransientStoreError as e:
            logger.error(f"Error deleting photos for event {event_id}: {e}")
            return self._fail(event_id, e, DELETE_FAILED_MESSAGE)

        self.state = DeletionState.DELETING_PARENT
        try:
            await self.store.delete_event(event_id)
        except TransientStoreError as e:
            logger.error(f"Error deleting event {event_id} after its photos were removed: {e}")
            return self._fail(event_id, PartialDeletionError(event_id, e), PARTIAL_DELETE_MESSAGE)

        self.state = DeletionState.DONE
        if self.listing is not None:
            self.listing.remove(event_id)
        logger.info(f"Event {event_id} and its photos deleted")
        return DeletionReport(event_id=event_id, state=DeletionState.DONE)

    def _fail(self, event_id: int, error: EventError, message: str) -> DeletionReport:
        failed_step = self.state
        self.state = DeletionState.FAILED
        return DeletionReport(
            event_id=event_id,
            state=DeletionState.FAILED,
            failed_step=failed_step,
            error=error,
            message=message,
        )
