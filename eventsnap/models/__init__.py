from eventsnap.models.attendee_match import DEFAULT_SELFIE_EVENT_ID, AttendeeMatch
from eventsnap.models.event import Event
from eventsnap.models.user import User

__all__ = ["Event", "AttendeeMatch", "User", "DEFAULT_SELFIE_EVENT_ID"]
