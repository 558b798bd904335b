"""User model, upserted on every sign-in."""

from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from eventsnap.models.event import utcnow

ROLE_ORGANIZER = "organizer"
ROLE_ATTENDEE = "attendee"


class User(SQLModel, table=True):
    """A signed-in person, organizer or attendee.

    Attributes:
        user_id: The user's email; primary key.
        email: The user's email.
        name: Display name.
        mobile: Contact number, may be empty.
        role: "organizer", "attendee", or None when not yet known.
        created_events: Codes of events the user created, without duplicates.
    """
    user_id: str = Field(primary_key=True)
    email: str
    name: str = ""
    mobile: str = ""
    role: str | None = None
    created_events: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
