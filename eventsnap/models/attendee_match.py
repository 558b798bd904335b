"""Attendee match records: which event photos matched a user's selfie."""

from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from eventsnap.models.event import utcnow

# Reserved event id under which a user's default selfie is stored.
DEFAULT_SELFIE_EVENT_ID = "default"


class AttendeeMatch(SQLModel, table=True):
    """Matched photos for one user at one event.

    At most one record exists per (user, event); writes overwrite it.

    Attributes:
        user_id: Email of the attendee.
        event_id: Event code, or ``DEFAULT_SELFIE_EVENT_ID`` for the
            record holding the user's default selfie.
        selfie_url: Public URL of the selfie used for matching.
        matched_images: Public URLs of matched photos, best match first.
        uploaded_at: When the record was first written.
        last_updated: When the record last changed.
    """
    __tablename__ = "attendee_match"

    user_id: str = Field(primary_key=True)
    event_id: str = Field(primary_key=True)
    selfie_url: str
    matched_images: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    uploaded_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
