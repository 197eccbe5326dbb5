"""
Shared fixtures: an in-memory record store
"""

import asyncio
from datetime import date, datetime

import pytest

from app.core.errors import ConflictColumn, UniquenessConflictError
from app.services.repositories import EventRecord, EventStore, NewEvent, PhotoRecord
from app.services.time_composer import TimeComposer


class InMemoryEventStore(EventStore):
    """Record store double that logs every call.

    failures maps a method name to the exception it should raise, gates maps
    a title to an asyncio.Event that exists_by_title waits on.
    """

    def __init__(self):
        self.events = {}
        self.sort_keys = {}
        self.photos = {}
        self.admins = {}
        self.calls = []
        self.failures = {}
        self.gates = {}
        self.forced_conflict = None
        self._next_event_id = 1
        self._next_photo_id = 1

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name):
        return [call[1:] for call in self.calls if call[0] == name]

    async def exists_by_title(self, normalized_title):
        self._record("exists_by_title", normalized_title)
        gate = self.gates.get(normalized_title)
        if gate is not None:
            await gate.wait()
        return any(e.title == normalized_title for e in self.events.values())

    async def insert_event(self, new_event):
        self._record("insert_event", new_event)
        columns = set()
        if self.forced_conflict:
            columns |= set(self.forced_conflict)
        for event in self.events.values():
            if event.title == new_event.title:
                columns.add(ConflictColumn.TITLE)
            if event.slug == new_event.slug:
                columns.add(ConflictColumn.SLUG)
        if columns:
            raise UniquenessConflictError(columns, detail="duplicate key value")

        event = EventRecord(
            id=self._next_event_id,
            title=new_event.title,
            slug=new_event.slug,
            admin_id=new_event.admin_id,
            event_date=new_event.event_date,
            created_at=datetime(2024, 1, 1),
        )
        self._next_event_id += 1
        self.events[event.id] = event
        self.sort_keys[event.id] = new_event.event_sort_key
        return event

    async def delete_photos_for_event(self, event_id):
        self._record("delete_photos_for_event", event_id)
        self.photos = {k: p for k, p in self.photos.items() if p.event_id != event_id}

    async def delete_event(self, event_id):
        self._record("delete_event", event_id)
        self.events.pop(event_id, None)

    async def list_events(self):
        self._record("list_events")
        return sorted(self.events.values(), key=lambda e: self.sort_keys[e.id], reverse=True)

    async def get_event_by_slug(self, slug):
        self._record("get_event_by_slug", slug)
        return next((e for e in self.events.values() if e.slug == slug), None)

    async def find_admin_id(self, email):
        self._record("find_admin_id", email)
        return self.admins.get(email)

    async def add_photo(self, event_id, blob_id):
        self._record("add_photo", event_id, blob_id)
        photo = PhotoRecord(id=self._next_photo_id, event_id=event_id, blob_id=blob_id)
        self._next_photo_id += 1
        self.photos[photo.id] = photo
        return photo

    async def list_photos(self, event_id):
        self._record("list_photos", event_id)
        return [p for p in self.photos.values() if p.event_id == event_id]


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def seeded_store(store):
    """Store holding one event titled "birthday bash" with two photos"""
    composed = TimeComposer.compose("7", "05", "PM", "-05:00", date(2024, 3, 1))
    asyncio.run(store.insert_event(NewEvent(
        title="birthday bash",
        slug="birthday-bash",
        admin_id=1,
        event_date=composed.text,
        event_sort_key=composed.sort_key,
    )))
    asyncio.run(store.add_photo(1, "blob-1"))
    asyncio.run(store.add_photo(1, "blob-2"))
    store.calls.clear()
    return store
