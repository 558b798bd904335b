"""Attendee routes: find my photos, manage my selfie."""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel
from sqlmodel import Session

from eventsnap.aws.faces import FaceComparer, get_face_comparer
from eventsnap.aws.storage import ObjectStore, get_object_store
from eventsnap.core.database import get_session
from eventsnap.core.session import PENDING_GET_PHOTOS, UserSession, require_user, require_user_for
from eventsnap.routes.uploads import to_upload_item
from eventsnap.services import matches
from eventsnap.services.matching import MatchingOrchestrator, MatchRun, MatchState
from eventsnap.services.uploads import update_selfie

router = APIRouter(prefix="/attendees", tags=["attendees"])


class FindPhotos(BaseModel):
    event_code: str
    selfie_url: str | None = None


def get_matching_orchestrator(
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    comparer: FaceComparer = Depends(get_face_comparer),
) -> MatchingOrchestrator:
    return MatchingOrchestrator(session, store, comparer)


def run_payload(run: MatchRun) -> dict:
    event = run.event
    return {
        "state": run.state.value,
        "history": [s.value for s in run.history],
        "event": (
            {"id": event.id, "name": event.name, "date": event.date, "coverImage": event.cover_image}
            if event
            else None
        ),
        "selfie_url": run.selfie_url,
        "needs_selfie": run.state == MatchState.AWAIT_SELFIE,
        "cached": run.cached,
        "persisted": run.persisted,
        "matches": [
            {"url": m.url, "similarity": None if run.cached else m.similarity}
            for m in run.matches
        ],
    }


def finish(run: MatchRun, request: Request, user_session: UserSession) -> dict:
    run.raise_for_error()
    user_session.current_event_id = run.event.id
    user_session.save(request)
    return run_payload(run)


@router.post("/find")
def find_photos(
    body: FindPhotos,
    request: Request,
    orchestrator: MatchingOrchestrator = Depends(get_matching_orchestrator),
    user_session: UserSession = Depends(require_user_for(PENDING_GET_PHOTOS)),
):
    """
    Find the signed-in user's photos in an event.

    Returns cached matches when the user already searched this event.
    Otherwise compares the given or stored selfie against the event's
    photos; ``needs_selfie`` is true when the user has no selfie yet.
    """
    run = orchestrator.find_photos(user_session.email, body.event_code, body.selfie_url)
    return finish(run, request, user_session)


@router.post("/find-with-selfie")
def find_photos_with_selfie(
    request: Request,
    event_code: str = Form(...),
    selfie: UploadFile = File(...),
    orchestrator: MatchingOrchestrator = Depends(get_matching_orchestrator),
    user_session: UserSession = Depends(require_user_for(PENDING_GET_PHOTOS)),
):
    """Upload a selfie for an event and find matching photos with it."""
    run = orchestrator.match_with_new_selfie(user_session.email, event_code, to_upload_item(selfie))
    return finish(run, request, user_session)


@router.post("/selfie")
def replace_selfie(
    selfie: UploadFile = File(...),
    session: Session = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
    user_session: UserSession = Depends(require_user),
):
    """Replace the user's selfie everywhere it is used."""
    url = update_selfie(session, store, user_session.email, to_upload_item(selfie))
    return {"selfie_url": url}


@router.get("/me/selfie")
async def my_selfie(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """The selfie used for new searches, if any."""
    return {"selfie_url": matches.latest_selfie(session, user_session.email)}


@router.get("/me/matches")
async def my_matches(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """All match records of the signed-in user, most recent first."""
    return matches.list_matches(session, user_session.email)


@router.get("/me/matches/{event_id}")
async def my_event_matches(
    event_id: str,
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """The signed-in user's match record for one event."""
    record = matches.get_match(session, user_session.email, event_id)
    if not record:
        raise HTTPException(status_code=404, detail="No photos found for this event")
    return record


@router.get("/me/stats")
async def my_statistics(
    session: Session = Depends(get_session),
    user_session: UserSession = Depends(require_user),
):
    """Event and photo totals plus first and last match dates."""
    return matches.get_statistics(session, user_session.email)
