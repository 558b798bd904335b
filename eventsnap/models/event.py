"""Event model for organizer-created photo galleries.

An event is identified by a 6-digit code that attendees type in (or reach
through a share link) to find their photos. Photos, the cover image and
attendee selfies live in object storage under the event's code; this table
only holds the metadata.
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(UTC)


class Event(SQLModel, table=True):
    """An organizer's event gallery.

    Attributes:
        id: 6-digit numeric code, unique across the directory.
        name: Event title.
        date: Event date as entered by the organizer (ISO date string).
        description: Optional free text.
        cover_image: Public URL of the cover image.
        owner_id: Email of the organizer who owns the event.
        organizer_id: Legacy owner attribute, read only by the owner
            lookup compatibility path and the normalization step.
        user_id: Legacy owner attribute, see ``organizer_id``.
        user_email: Legacy owner attribute, see ``organizer_id``.
        photo_count: Number of photos uploaded to the event.
        video_count: Number of videos uploaded to the event.
        guest_count: Number of guests who joined the event.
        created_at: When the event was created.
        updated_at: When the event metadata last changed.
        event_url: Shareable attendee link for the event.
    """
    id: str = Field(primary_key=True, max_length=6)
    name: str
    date: str
    description: str | None = None
    cover_image: str = ""
    owner_id: str | None = Field(default=None, index=True)
    organizer_id: str | None = Field(default=None, index=True)
    user_id: str | None = Field(default=None, index=True)
    user_email: str | None = Field(default=None, index=True)
    photo_count: int = Field(default=0)
    video_count: int = Field(default=0)
    guest_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    event_url: str = ""
