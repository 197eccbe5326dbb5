"""
Event creation: timestamp composition, insert and conflict translation
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from app.core.errors import ConflictColumn, TransientStoreError, UniquenessConflictError
from app.schemas.event import EventDraft
from app.services.repositories import EventRecord, EventStore, NewEvent
from app.services.time_composer import TimeComposer
from app.services.uniqueness import ProbeState

logger = logging.getLogger(__name__)

TITLE_TAKEN_MESSAGE = "Event title already taken, please enter a new event title."
SLUG_TAKEN_MESSAGE = "Event slug already taken, please enter a new event slug."
SAVE_FAILED_MESSAGE = "There was an error saving your event, please reload the page and try again!"

CONFLICT_MESSAGES = {
    ConflictColumn.TITLE: ("title", TITLE_TAKEN_MESSAGE),
    ConflictColumn.SLUG: ("slug", SLUG_TAKEN_MESSAGE),
}


@dataclass(frozen=True)
class CreationContext:
    """Who is creating events in the current creation flow"""
    admin_id: int
    admin_email: Optional[str] = None


class SubmissionStatus(str, Enum):
    CREATED = "created"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionResult:
    status: SubmissionStatus
    event: Optional[EventRecord] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SubmissionStatus.CREATED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "event": self.event.to_dict() if self.event else None,
            "field_errors": dict(self.field_errors),
            "message": self.message,
        }


def conflict_field_errors(columns) -> Dict[str, str]:
    errors = {}
    for column in sorted(columns, key=lambda c: c.value):
        if column in CONFLICT_MESSAGES:
            name, message = CONFLICT_MESSAGES[column]
            errors[name] = message
    return errors


class EventSubmitter:
    """Writes a validated draft to the store"""

    def __init__(self, store: EventStore):
        self.store = store

    async def submit(
        self,
        draft: EventDraft,
        context: CreationContext,
        probe: Optional[ProbeState] = None,
    ) -> SubmissionResult:
        # The gate may have been bypassed; a known duplicate never reaches the store
        if probe is not None and probe.title == draft.title and probe.exists:
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                field_errors={"title": TITLE_TAKEN_MESSAGE},
                message=TITLE_TAKEN_MESSAGE,
            )

        composed = TimeComposer.compose(
            hour=draft.hour,
            minute=draft.minute,
            meridiem=draft.meridiem,
            offset=draft.timezone,
            event_date=draft.date,
        )
        new_event = NewEvent(
            title=draft.title,
            slug=draft.slug,
            admin_id=context.admin_id,
            event_date=composed.text,
            event_sort_key=composed.sort_key,
        )

        try:
            event = await self.store.insert_event(new_event)
        except UniquenessConflictError as e:
            logger.info(f"Event insert conflicted on {sorted(c.value for c in e.columns)}: {e.detail}")
            errors = conflict_field_errors(e.columns)
            if not errors:
                return SubmissionResult(status=SubmissionStatus.FAILED, message=SAVE_FAILED_MESSAGE)
            # Slug message wins the banner when both columns conflicted
            message = errors.get("slug") or errors.get("title")
            return SubmissionResult(status=SubmissionStatus.CONFLICT, field_errors=errors, message=message)
        except TransientStoreError as e:
            logger.error(f"Error saving event {draft.title!r}: {e}")
            return SubmissionResult(status=SubmissionStatus.FAILED, message=SAVE_FAILED_MESSAGE)

        logger.info(f"Event {event.id} created with slug {event.slug!r} by admin {context.admin_id}")
        return SubmissionResult(status=SubmissionStatus.CREATED, event=event)
