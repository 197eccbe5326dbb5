"""
Public API routes - no authentication required
"""

import logging
from fastapi import APIRouter, Depends, Request, Query
from fastapi.responses import Response

from app.core.errors import TransientStoreError
from app.schemas.event import SlugPreview
from app.services.creation_session import TIMEZONES, default_form_values
from app.services.qr_service import QRService
from app.services.repositories import EventStore, get_event_store
from app.services.slugs import generate_slug
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, error_response, rate_limit_error, not_found_error

logger = logging.getLogger(__name__)

router = APIRouter()

FETCH_FAILED_MESSAGE = "Oops! There was an error fetching events. Please try again!"

def _check_rate(request: Request):
    if not rate_limit_check(get_client_ip(request)):
        rate_limit_error()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events")
async def list_events(
    request: Request,
    store: EventStore = Depends(get_event_store)
):
    """List events, latest event time first"""
    _check_rate(request)
    try:
        events = await store.list_events()
    except TransientStoreError as e:
        logger.error(f"Error fetching events: {e}")
        return error_response(message=FETCH_FAILED_MESSAGE, error_code="store_unavailable", status_code=503)

    return success_response(
        message="Events retrieved successfully",
        data=[event.to_dict() for event in events]
    )

@router.get("/events/form-defaults")
async def form_defaults():
    """Initial values and timezone choices for the creation form"""
    return success_response(
        message="Form defaults",
        data={"values": default_form_values(), "timezones": TIMEZONES}
    )

@router.get("/events/{slug}")
async def get_event(
    slug: str,
    request: Request,
    store: EventStore = Depends(get_event_store)
):
    """Get one event by its slug"""
    _check_rate(request)
    try:
        event = await store.get_event_by_slug(slug)
    except TransientStoreError as e:
        logger.error(f"Error fetching event {slug}: {e}")
        return error_response(message=FETCH_FAILED_MESSAGE, error_code="store_unavailable", status_code=503)
    if not event:
        not_found_error("Event")

    return success_response(message="Event retrieved", data=event.to_dict())

@router.get("/events/{slug}/photos")
async def list_event_photos(
    slug: str,
    request: Request,
    store: EventStore = Depends(get_event_store)
):
    """List the photos captured for an event"""
    _check_rate(request)
    try:
        event = await store.get_event_by_slug(slug)
        if not event:
            not_found_error("Event")
        photos = await store.list_photos(event.id)
    except TransientStoreError as e:
        logger.error(f"Error fetching photos for {slug}: {e}")
        return error_response(message=FETCH_FAILED_MESSAGE, error_code="store_unavailable", status_code=503)

    return success_response(
        message="Photos retrieved",
        data={
            "event": event.to_dict(),
            "photos": [
                {
                    "id": photo.id,
                    "blob_id": photo.blob_id,
                    "created_at": photo.created_at.isoformat() if photo.created_at else None,
                }
                for photo in photos
            ],
        }
    )

@router.get("/events/{slug}/qr.png")
async def get_qr_code(
    slug: str,
    store: EventStore = Depends(get_event_store)
):
    """QR code image linking to the event page"""
    try:
        event = await store.get_event_by_slug(slug)
    except TransientStoreError as e:
        logger.error(f"Error fetching event {slug}: {e}")
        return error_response(message=FETCH_FAILED_MESSAGE, error_code="store_unavailable", status_code=503)
    if not event:
        not_found_error("Event")

    return Response(
        content=QRService.generate_event_qr(event.slug),
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=3600"}
    )

@router.get("/slug")
async def preview_slug(title: str = Query("")):
    """Slug and event URL that a title would produce"""
    slug = generate_slug(title)
    preview = SlugPreview(title=title, slug=slug, url=QRService.get_event_url(slug) if slug else "")
    return success_response(message="Slug generated", data=preview.model_dump())
