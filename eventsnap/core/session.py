"""Per-request user session backed by the signed session cookie.

The browser used to keep these values in local storage. They now live in
Starlette's cookie session and are read and written through ``UserSession``,
which every handler receives explicitly.
"""
from dataclasses import asdict, dataclass, fields

from fastapi import Request

from eventsnap.core.errors import AuthRequired

PENDING_CREATE_EVENT = "createEvent"
PENDING_GET_PHOTOS = "getPhotos"
PENDING_ACTIONS = (PENDING_CREATE_EVENT, PENDING_GET_PHOTOS)

_SESSION_KEY = "user"


@dataclass
class UserSession:
    """Client session state for the signed-in user.

    Attributes:
        email: Signed-in user's email, also their user id.
        name: Display name from the identity provider.
        mobile: Contact number, may be empty.
        token: Identity token presented at sign-in.
        pending_action: Intent to resume after sign-in
            ("createEvent" or "getPhotos").
        pending_redirect_url: Where to send the user after sign-in.
        current_event_id: Last event the user worked with.
    """
    email: str | None = None
    name: str | None = None
    mobile: str | None = None
    token: str | None = None
    pending_action: str | None = None
    pending_redirect_url: str | None = None
    current_event_id: str | None = None

    @classmethod
    def hydrate(cls, data: dict | None) -> "UserSession":
        """Build a session from persisted values, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @property
    def is_authenticated(self) -> bool:
        return bool(self.email)

    def to_dict(self) -> dict:
        return asdict(self)

    def clear(self) -> None:
        for f in fields(self):
            setattr(self, f.name, None)

    def save(self, request: Request) -> None:
        """Write the session back to the request's cookie session."""
        request.session[_SESSION_KEY] = self.to_dict()


def get_user_session(request: Request) -> UserSession:
    """Dependency returning the hydrated session for this request."""
    return UserSession.hydrate(request.session.get(_SESSION_KEY))


def require_user(request: Request) -> UserSession:
    """Dependency that rejects requests without a signed-in user."""
    user_session = get_user_session(request)
    if not user_session.is_authenticated:
        raise AuthRequired()
    return user_session


def require_user_for(pending_action: str):
    """Build a dependency that remembers ``pending_action`` when signed out."""

    def dependency(request: Request) -> UserSession:
        user_session = get_user_session(request)
        if not user_session.is_authenticated:
            raise AuthRequired(pending_action=pending_action)
        return user_session

    return dependency
