"""Photo gallery and bulk download routes."""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlmodel import Session

from eventsnap.aws.storage import ObjectStore, get_object_store
from eventsnap.core.database import get_session
from eventsnap.core.session import UserSession, require_user
from eventsnap.services import matches
from eventsnap.services.downloads import build_photo_archive
from eventsnap.services.events import get_event

router = APIRouter(prefix="/photos", tags=["photos"])


def gallery(session: Session, user_id: str, event_id: str | None = None) -> list[dict]:
    """
    Matched photos across the user's records, newest record first.

    A photo matched in several records appears once.
    """
    records = matches.list_matches(session, user_id)
    if event_id is not None:
        records = [r for r in records if r.event_id == event_id]

    names: dict[str, str] = {}
    images: dict[str, dict] = {}
    for record in records:
        if record.event_id not in names:
            event = get_event(session, record.event_id)
            names[record.event_id] = event.name if event else ""
        for url in record.matched_images:
            images.setdefault(url, {
                "imageId": url.rsplit("/", 1)[-1],
                "imageUrl": url,
                "eventId": record.event_id,
                "eventName": names[record.event_id],
                "matchedDate": record.uploaded_at.isoformat(),
            })
    return list(images.values())


def zip_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/me")
async def my_photos(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """Every photo the signed-in user was matched in."""
    return gallery(session, user_session.email)


@router.get("/events/{event_id}")
async def my_event_photos(
    event_id: str,
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """The signed-in user's photos from one event."""
    return gallery(session, user_session.email, event_id)


@router.get("/me/archive")
def download_my_photos(
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    user_session: UserSession = Depends(require_user),
):
    """Download every matched photo as a ZIP archive."""
    urls = [image["imageUrl"] for image in gallery(session, user_session.email)]
    if not urls:
        raise HTTPException(status_code=404, detail="No photos to download")
    return zip_response(build_photo_archive(store, urls), "my-photos.zip")


@router.get("/events/{event_id}/archive")
def download_event_photos(
    event_id: str,
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    user_session: UserSession = Depends(require_user),
):
    """Download the signed-in user's photos from one event as a ZIP archive."""
    urls = [image["imageUrl"] for image in gallery(session, user_session.email, event_id)]
    if not urls:
        raise HTTPException(status_code=404, detail="No photos to download")
    return zip_response(build_photo_archive(store, urls), f"event-{event_id}-photos.zip")
