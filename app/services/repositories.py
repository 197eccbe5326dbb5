"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.db import async_session
from app.core.errors import ConflictColumn, TransientStoreError, UniquenessConflictError
from app.models import Admin, Event, Photo
from app.services.firebase_client import get_firestore_client

logger = logging.getLogger(__name__)

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w.,\s]+)")
_SQLITE_COLUMN = re.compile(r"\bevents\.(\w+)")
_POSTGRES_KEY = re.compile(r"Key \(([^)]*)\)=")
_POSTGRES_CONSTRAINT = re.compile(r'unique constraint "([^"]+)"')


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


@dataclass(frozen=True)
class NewEvent:
    title: str
    slug: str
    admin_id: int
    event_date: str
    event_sort_key: datetime


@dataclass(frozen=True)
class EventRecord:
    id: int
    title: str
    slug: str
    admin_id: int
    event_date: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_title": self.title,
            "event_slug": self.slug,
            "admin_id": self.admin_id,
            "event_date": self.event_date,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class PhotoRecord:
    id: int | str
    event_id: int
    blob_id: str
    created_at: Optional[datetime] = None


class EventStore(ABC):
    """Record store consumed by the event engine.

    Failures surface as TransientStoreError; a rejected insert on a unique
    column surfaces as UniquenessConflictError.
    """

    @abstractmethod
    async def exists_by_title(self, normalized_title: str) -> bool:
        ...

    @abstractmethod
    async def insert_event(self, new_event: NewEvent) -> EventRecord:
        ...

    @abstractmethod
    async def delete_photos_for_event(self, event_id: int) -> None:
        ...

    @abstractmethod
    async def delete_event(self, event_id: int) -> None:
        ...

    @abstractmethod
    async def list_events(self) -> List[EventRecord]:
        """All events, latest event time first"""
        ...

    @abstractmethod
    async def get_event_by_slug(self, slug: str) -> Optional[EventRecord]:
        ...

    @abstractmethod
    async def find_admin_id(self, email: str) -> Optional[int]:
        ...

    @abstractmethod
    async def add_photo(self, event_id: int, blob_id: str) -> PhotoRecord:
        ...

    @abstractmethod
    async def list_photos(self, event_id: int) -> List[PhotoRecord]:
        ...


# -------- SQLAlchemy store --------

def conflict_columns_from_message(message: str) -> Set[ConflictColumn]:
    """Pick the violated columns out of a driver's unique-violation text.

    Handles SQLite ("UNIQUE constraint failed: events.event_title") and
    Postgres ("Key (event_slug)=(x) already exists") wording. Only column
    and constraint identifiers are read; the echoed values are ignored.
    """
    identifiers = []
    sqlite = _SQLITE_UNIQUE.search(message)
    if sqlite:
        identifiers.extend(_SQLITE_COLUMN.findall(sqlite.group(1)))
    identifiers.extend(_POSTGRES_KEY.findall(message))
    if not identifiers:
        identifiers.extend(_POSTGRES_CONSTRAINT.findall(message))

    columns = set()
    for identifier in identifiers:
        if "event_title" in identifier:
            columns.add(ConflictColumn.TITLE)
        if "event_slug" in identifier:
            columns.add(ConflictColumn.SLUG)
    return columns


def _event_from_row(event: Event) -> EventRecord:
    return EventRecord(
        id=event.id,
        title=event.event_title,
        slug=event.event_slug,
        admin_id=event.admin_id,
        event_date=event.event_date,
        created_at=event.created_at,
    )


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlEventStore(EventStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def exists_by_title(self, normalized_title: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Event.id).where(Event.event_title == normalized_title).limit(1)
                )
                return result.first() is not None
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e

    async def insert_event(self, new_event: NewEvent) -> EventRecord:
        async with self._session_factory() as session:
            event = Event(
                event_title=new_event.title,
                event_slug=new_event.slug,
                admin_id=new_event.admin_id,
                event_date=new_event.event_date,
                event_sort_key=_utc_naive(new_event.event_sort_key),
            )
            session.add(event)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                message = str(e.orig)
                columns = conflict_columns_from_message(message)
                if not columns:
                    raise TransientStoreError(message) from e
                # SQLite names only the first failing column
                try:
                    columns |= await self._colliding_columns(session, new_event)
                except SQLAlchemyError:
                    logger.warning("Could not re-check colliding columns after unique violation")
                raise UniquenessConflictError(columns, detail=message) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise TransientStoreError(str(e)) from e
            await session.refresh(event)
            return _event_from_row(event)

    @staticmethod
    async def _colliding_columns(session: AsyncSession, new_event: NewEvent) -> Set[ConflictColumn]:
        columns = set()
        result = await session.execute(
            select(Event.event_title, Event.event_slug).where(
                (Event.event_title == new_event.title) | (Event.event_slug == new_event.slug)
            )
        )
        for title, slug in result.all():
            if title == new_event.title:
                columns.add(ConflictColumn.TITLE)
            if slug == new_event.slug:
                columns.add(ConflictColumn.SLUG)
        return columns

    async def delete_photos_for_event(self, event_id: int) -> None:
        await self._execute_delete(delete(Photo).where(Photo.event_id == event_id))

    async def delete_event(self, event_id: int) -> None:
        await self._execute_delete(delete(Event).where(Event.id == event_id))

    async def _execute_delete(self, statement) -> None:
        async with self._session_factory() as session:
            try:
                await session.execute(statement)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise TransientStoreError(str(e)) from e

    async def list_events(self) -> List[EventRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Event).order_by(Event.event_sort_key.desc(), Event.id.desc())
                )
                return [_event_from_row(e) for e in result.scalars().all()]
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e

    async def get_event_by_slug(self, slug: str) -> Optional[EventRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Event).where(Event.event_slug == slug))
                event = result.scalar_one_or_none()
                return _event_from_row(event) if event else None
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e

    async def find_admin_id(self, email: str) -> Optional[int]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Admin.id).where(Admin.email == email))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e

    async def add_photo(self, event_id: int, blob_id: str) -> PhotoRecord:
        async with self._session_factory() as session:
            photo = Photo(event_id=event_id, blob_id=blob_id)
            session.add(photo)
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise TransientStoreError(str(e)) from e
            await session.refresh(photo)
            return PhotoRecord(id=photo.id, event_id=photo.event_id,
                               blob_id=photo.blob_id, created_at=photo.created_at)

    async def list_photos(self, event_id: int) -> List[PhotoRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Photo).where(Photo.event_id == event_id).order_by(Photo.id)
                )
                return [
                    PhotoRecord(id=p.id, event_id=p.event_id, blob_id=p.blob_id, created_at=p.created_at)
                    for p in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e


# -------- Firestore store --------
# Shape: collection "events/{id}" with the same field names as the SQL table,
# "photos/{auto}" with event_id, "admins/{auto}" with email, and
# "counters/events" holding the last assigned integer id.

_BATCH_LIMIT = 500


def _event_from_doc(data: Dict[str, Any]) -> EventRecord:
    created = data.get("created_at")
    return EventRecord(
        id=int(data["id"]),
        title=data["event_title"],
        slug=data["event_slug"],
        admin_id=int(data.get("admin_id") or 0),
        event_date=data["event_date"],
        created_at=datetime.fromisoformat(created) if isinstance(created, str) else created,
    )


class FirestoreEventStore(EventStore):
    """Firestore-backed store; the blocking client runs in the threadpool."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    async def _call(self, func, *args):
        try:
            return await run_in_threadpool(func, *args)
        except (UniquenessConflictError, TransientStoreError):
            raise
        except Exception as e:
            logger.error(f"Firestore call {func.__name__} failed: {e}")
            raise TransientStoreError(str(e)) from e

    async def exists_by_title(self, normalized_title: str) -> bool:
        return await self._call(self._exists_by_title_fs, normalized_title)

    def _exists_by_title_fs(self, normalized_title: str) -> bool:
        docs = self.client.collection("events").where("event_title", "==", normalized_title).limit(1).get()
        return len(docs) > 0

    async def insert_event(self, new_event: NewEvent) -> EventRecord:
        return await self._call(self._insert_event_fs, new_event)

    def _insert_event_fs(self, new_event: NewEvent) -> EventRecord:
        from firebase_admin import firestore

        fs = self.client
        events = fs.collection("events")
        counter_ref = fs.collection("counters").document("events")

        @firestore.transactional
        def _insert(transaction) -> Dict[str, Any]:
            columns = set()
            if list(transaction.get(events.where("event_title", "==", new_event.title).limit(1))):
                columns.add(ConflictColumn.TITLE)
            if list(transaction.get(events.where("event_slug", "==", new_event.slug).limit(1))):
                columns.add(ConflictColumn.SLUG)
            if columns:
                raise UniquenessConflictError(columns)

            counter = counter_ref.get(transaction=transaction)
            next_id = (counter.to_dict() or {}).get("value", 0) + 1 if counter.exists else 1
            data = {
                "id": next_id,
                "event_title": new_event.title,
                "event_slug": new_event.slug,
                "admin_id": new_event.admin_id,
                "event_date": new_event.event_date,
                "event_sort_key": new_event.event_sort_key,
                "created_at": datetime.utcnow().isoformat(),
            }
            transaction.set(counter_ref, {"value": next_id})
            transaction.set(events.document(str(next_id)), data)
            return data

        return _event_from_doc(_insert(fs.transaction()))

    async def delete_photos_for_event(self, event_id: int) -> None:
        await self._call(self._delete_photos_fs, event_id)

    def _delete_photos_fs(self, event_id: int) -> None:
        fs = self.client
        docs = fs.collection("photos").where("event_id", "==", event_id).get()
        for start in range(0, len(docs), _BATCH_LIMIT):
            batch = fs.batch()
            for doc in docs[start:start + _BATCH_LIMIT]:
                batch.delete(doc.reference)
            batch.commit()

    async def delete_event(self, event_id: int) -> None:
        await self._call(self._delete_event_fs, event_id)

    def _delete_event_fs(self, event_id: int) -> None:
        self.client.collection("events").document(str(event_id)).delete()

    async def list_events(self) -> List[EventRecord]:
        return await self._call(self._list_events_fs)

    def _list_events_fs(self) -> List[EventRecord]:
        from firebase_admin import firestore

        docs = self.client.collection("events").order_by(
            "event_sort_key", direction=firestore.Query.DESCENDING
        ).get()
        return [_event_from_doc(d.to_dict()) for d in docs]

    async def get_event_by_slug(self, slug: str) -> Optional[EventRecord]:
        return await self._call(self._get_event_by_slug_fs, slug)

    def _get_event_by_slug_fs(self, slug: str) -> Optional[EventRecord]:
        docs = self.client.collection("events").where("event_slug", "==", slug).limit(1).get()
        return _event_from_doc(docs[0].to_dict()) if docs else None

    async def find_admin_id(self, email: str) -> Optional[int]:
        return await self._call(self._find_admin_id_fs, email)

    def _find_admin_id_fs(self, email: str) -> Optional[int]:
        docs = self.client.collection("admins").where("email", "==", email).limit(1).get()
        if not docs:
            return None
        return int(docs[0].to_dict().get("id", 0))

    async def add_photo(self, event_id: int, blob_id: str) -> PhotoRecord:
        return await self._call(self._add_photo_fs, event_id, blob_id)

    def _add_photo_fs(self, event_id: int, blob_id: str) -> PhotoRecord:
        created_at = datetime.utcnow()
        _, ref = self.client.collection("photos").add({
            "event_id": event_id,
            "blob_id": blob_id,
            "created_at": created_at.isoformat(),
        })
        return PhotoRecord(id=ref.id, event_id=event_id, blob_id=blob_id, created_at=created_at)

    async def list_photos(self, event_id: int) -> List[PhotoRecord]:
        return await self._call(self._list_photos_fs, event_id)

    def _list_photos_fs(self, event_id: int) -> List[PhotoRecord]:
        docs = self.client.collection("photos").where("event_id", "==", event_id).get()
        results: List[PhotoRecord] = []
        for d in docs:
            item = d.to_dict()
            results.append(PhotoRecord(id=d.id, event_id=event_id, blob_id=item.get("blob_id", "")))
        return results


def get_event_store() -> EventStore:
    """FastAPI dependency returning the configured store"""
    if use_firestore():
        return FirestoreEventStore()
    return SqlEventStore(async_session)
