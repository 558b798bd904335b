"""Event routes for organizers."""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlmodel import Session

from eventsnap.aws.storage import ObjectStore, get_object_store
from eventsnap.core.database import get_session
from eventsnap.core.errors import PermissionDenied
from eventsnap.core.session import PENDING_CREATE_EVENT, UserSession, require_user, require_user_for
from eventsnap.models import Event
from eventsnap.services import events as directory

router = APIRouter(prefix="/events", tags=["events"])


def get_event_or_404(session: Session, event_id: str) -> Event:
    event = directory.get_event(session, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.post("", status_code=201)
def create_event(
    request: Request,
    name: str = Form(...),
    date: str = Form(...),
    description: str | None = Form(None),
    cover: UploadFile = File(...),
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    user_session: UserSession = Depends(require_user_for(PENDING_CREATE_EVENT)),
):
    """
    Create an event.

    Generates a unique 6-digit code, uploads the cover image, and adds
    the event to the organizer's created events.
    """
    event = directory.create_event(
        session,
        store,
        owner_id=user_session.email,
        name=name,
        date=date,
        cover=cover.file.read(),
        cover_content_type=cover.content_type or "image/jpeg",
        description=description,
    )
    user_session.current_event_id = event.id
    user_session.save(request)
    return event


@router.get("")
async def list_events(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """Events owned by the signed-in organizer, newest first."""
    return directory.list_by_owner(session, user_session.email)


@router.get("/stats")
async def event_statistics(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """Event, photo, video and guest totals for the signed-in organizer."""
    return directory.organizer_statistics(session, user_session.email)


@router.get("/{event_id}")
async def event_detail(event_id: str, session: Session = Depends(get_session)):
    """Return a single event."""
    return get_event_or_404(session, event_id)


@router.get("/{event_id}/links")
async def event_links(event_id: str, session: Session = Depends(get_session)):
    """Shareable attendee link and organizer upload link."""
    event = get_event_or_404(session, event_id)
    return {
        "share_url": event.event_url or directory.share_url(event.id),
        "upload_url": directory.upload_url(event.id),
    }


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    confirm: bool = False,
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """
    Delete an event.

    Requires ``confirm=true``. Only the event's owner may delete it;
    anyone else gets 403 and the event is left untouched.
    """
    if not confirm:
        raise HTTPException(status_code=400, detail="Deletion must be confirmed")

    get_event_or_404(session, event_id)
    if not directory.delete_event(session, event_id, user_session.email):
        raise PermissionDenied("Only the event owner can delete this event")
    return {"deleted": event_id}
