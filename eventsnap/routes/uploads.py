"""Photo upload routes for organizers."""
from dataclasses import asdict

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlmodel import Session

from eventsnap.aws.storage import ObjectStore, get_object_store
from eventsnap.core.database import get_session
from eventsnap.core.errors import PermissionDenied
from eventsnap.core.session import UserSession, require_user
from eventsnap.services.events import get_event, is_owner
from eventsnap.services.uploads import UploadItem, upload_event_images

router = APIRouter(prefix="/events/{event_id}/images", tags=["uploads"])


def to_upload_item(file: UploadFile) -> UploadItem:
    return UploadItem(
        filename=file.filename or "upload",
        content_type=file.content_type or "",
        content=file.file.read(),
    )


@router.post("")
def upload_images(
    event_id: str,
    request: Request,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    user_session: UserSession = Depends(require_user),
):
    """
    Upload photos to an event.

    Files that are not images, exceed the size limit, or look like
    selfies are skipped. Each remaining file succeeds or fails on its own;
    the response lists uploaded URLs, failed names and skipped files.
    """
    event = get_event(session, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not is_owner(event, user_session.email):
        raise PermissionDenied("Only the event owner can upload photos")

    report = upload_event_images(session, store, event_id, [to_upload_item(f) for f in files])

    user_session.current_event_id = event_id
    user_session.save(request)
    return {**asdict(report), "counts": report.counts}
