"""Sign-in, sign-out and session routes."""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session

from eventsnap.core.database import get_session
from eventsnap.core.errors import AuthRequired
from eventsnap.core.identity import verify_google_credential
from eventsnap.core.session import (
    PENDING_ACTIONS,
    PENDING_CREATE_EVENT,
    PENDING_GET_PHOTOS,
    UserSession,
    get_user_session,
)
from eventsnap.models.user import ROLE_ATTENDEE, ROLE_ORGANIZER
from eventsnap.services.users import upsert_user

router = APIRouter(prefix="/auth", tags=["auth"])


class GoogleSignIn(BaseModel):
    credential: str
    mobile: str = ""


class Intent(BaseModel):
    action: str
    redirect_url: str | None = None


def role_for(pending_action: str | None) -> str:
    return ROLE_ORGANIZER if pending_action == PENDING_CREATE_EVENT else ROLE_ATTENDEE


def redirect_for(user_session: UserSession, pending_action: str | None) -> str:
    """Where to send the user once the pending action can resume."""
    if pending_action == PENDING_CREATE_EVENT:
        return "/events?create=true"
    if pending_action == PENDING_GET_PHOTOS:
        target = user_session.pending_redirect_url or "/attendee-dashboard"
        user_session.pending_redirect_url = None
        return target
    return "/"


@router.post("/google")
async def google_sign_in(
    body: GoogleSignIn,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Sign in with a Google ID token.

    Upserts the user with the role implied by the pending action
    ("organizer" for createEvent, otherwise "attendee"), hydrates the
    session, and returns where the client should navigate next.
    """
    claims = verify_google_credential(body.credential)
    user_session = get_user_session(request)
    pending_action = user_session.pending_action

    email = claims["email"]
    user = upsert_user(
        session,
        email,
        name=claims.get("name", ""),
        mobile=body.mobile,
        role=role_for(pending_action),
    )

    user_session.email = email
    user_session.name = user.name
    user_session.mobile = user.mobile
    user_session.token = body.credential
    user_session.pending_action = None
    redirect = redirect_for(user_session, pending_action)
    user_session.save(request)

    return {"email": email, "name": user.name, "role": user.role, "redirect": redirect}


@router.post("/intent")
async def record_intent(
    body: Intent,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Start a role-changing action.

    Signed-in users get their role updated and a redirect; signed-out
    users have the action remembered and receive 401 so the client shows
    the sign-in prompt.
    """
    if body.action not in PENDING_ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    user_session = get_user_session(request)
    if body.redirect_url:
        user_session.pending_redirect_url = body.redirect_url
        user_session.save(request)

    if not user_session.is_authenticated:
        raise AuthRequired(pending_action=body.action)

    user = upsert_user(session, user_session.email, role=role_for(body.action))
    redirect = redirect_for(user_session, body.action)
    user_session.save(request)
    return {"role": user.role, "redirect": redirect}


@router.post("/signout")
async def sign_out(request: Request):
    """Clear the session."""
    user_session = get_user_session(request)
    user_session.clear()
    request.session.clear()
    return {"signed_out": True}


@router.get("/session")
async def current_session(request: Request):
    """Return the current session, without the identity token."""
    data = get_user_session(request).to_dict()
    data.pop("token", None)
    data["authenticated"] = bool(data["email"])
    return data
