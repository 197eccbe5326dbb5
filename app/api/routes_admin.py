"""
Admin API routes - requires authentication
"""

import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, Query

from app.api.ws import LISTING_ROOM, websocket_manager
from app.core.errors import TransientStoreError
from app.schemas.event import EventCreate, TitleCheckResponse, validate_draft
from app.services.event_deleter import EventDeleter
from app.services.event_submitter import CreationContext, EventSubmitter, SubmissionStatus
from app.services.repositories import EventStore, get_event_store
from app.services.slugs import generate_slug, normalize_title
from app.services.uniqueness import TitleUniquenessChecker
from app.utils.security import verify_admin_token
from app.utils.responses import success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter()

STORE_UNAVAILABLE_MESSAGE = "The event store is unavailable, please try again!"

@router.get("/events/title-check")
async def check_title(
    title: str = Query(...),
    store: EventStore = Depends(get_event_store),
    token: str = Depends(verify_admin_token)
):
    """Check right away whether an event title is taken"""
    checker = TitleUniquenessChecker(store)
    probe = await checker.check_now(title)
    if probe.exists is None:
        return error_response(message=probe.error or STORE_UNAVAILABLE_MESSAGE, error_code="store_unavailable", status_code=503)

    return success_response(
        message="Title checked",
        data=TitleCheckResponse(title=normalize_title(title), exists=probe.exists).model_dump()
    )

@router.post("/events")
async def create_event(
    payload: Dict[str, Any] = Body(...),
    store: EventStore = Depends(get_event_store),
    token: str = Depends(verify_admin_token)
):
    """Create a new event"""
    if payload.get("slug") is None and isinstance(payload.get("title"), str):
        payload = {**payload, "slug": generate_slug(payload["title"])}

    draft, errors = validate_draft(payload, EventCreate)
    if errors:
        return error_response(
            message="Event validation failed",
            error_code="validation_error",
            details=errors,
            status_code=422
        )

    try:
        admin_id = await store.find_admin_id(draft.organizer_email) or 0
    except TransientStoreError as e:
        logger.error(f"Error fetching admin {draft.organizer_email}: {e}")
        return error_response(message=STORE_UNAVAILABLE_MESSAGE, error_code="store_unavailable", status_code=503)

    checker = TitleUniquenessChecker(store)
    probe = await checker.check_now(draft.title)
    if probe.exists is None:
        return error_response(message=probe.error or STORE_UNAVAILABLE_MESSAGE, error_code="store_unavailable", status_code=503)

    submitter = EventSubmitter(store)
    result = await submitter.submit(
        draft,
        CreationContext(admin_id=admin_id, admin_email=draft.organizer_email),
        probe
    )

    if result.status in (SubmissionStatus.REJECTED, SubmissionStatus.CONFLICT):
        return error_response(
            message=result.message,
            error_code="conflict",
            details=result.field_errors,
            status_code=409
        )
    if result.status is SubmissionStatus.FAILED:
        return error_response(message=result.message, error_code="store_unavailable", status_code=503)

    await websocket_manager.broadcast(LISTING_ROOM, {"type": "event_created", "event": result.event.to_dict()})

    return success_response(
        message="Event created successfully",
        data=result.event.to_dict(),
        status_code=201
    )

@router.post("/events/{event_id}/photos")
async def add_photo(
    event_id: int,
    blob_id: str = Body(..., embed=True),
    store: EventStore = Depends(get_event_store),
    token: str = Depends(verify_admin_token)
):
    """Attach a captured photo to an event"""
    try:
        photo = await store.add_photo(event_id, blob_id)
    except TransientStoreError as e:
        logger.error(f"Error saving photo for event {event_id}: {e}")
        return error_response(message=STORE_UNAVAILABLE_MESSAGE, error_code="store_unavailable", status_code=503)

    return success_response(
        message="Photo saved",
        data={"id": photo.id, "event_id": photo.event_id, "blob_id": photo.blob_id},
        status_code=201
    )

@router.delete("/events/{event_id}")
async def delete_event(
    event_id: int,
    store: EventStore = Depends(get_event_store),
    token: str = Depends(verify_admin_token)
):
    """Delete an event after deleting its photos"""
    report = await EventDeleter(store).delete(event_id)

    if report.partial:
        return error_response(
            message=report.message,
            error_code="partial_deletion",
            details=report.to_dict(),
            status_code=502
        )
    if not report.ok:
        return error_response(
            message=report.message,
            error_code="store_unavailable",
            details=report.to_dict(),
            status_code=503
        )

    await websocket_manager.broadcast(LISTING_ROOM, {"type": "event_deleted", "event_id": event_id})

    return success_response(
        message="Event deleted successfully",
        data=report.to_dict()
    )
