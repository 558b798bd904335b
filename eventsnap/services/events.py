"""Event Directory: event metadata, codes and ownership.

Events were historically written with the owner under three attribute
names (``organizer_id``, ``user_id``, ``user_email``). New events only set
``owner_id``. ``normalize_event_owners`` backfills ``owner_id`` for old
rows, and ``list_by_owner`` is the single place that still reads the
legacy columns.
"""
import logging
import random
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, or_, select

from eventsnap.aws.storage import ObjectStore, event_cover_key, event_images_prefix, is_image_key
from eventsnap.core.config import settings
from eventsnap.core.errors import EventSnapError, TransientServiceError, ValidationError
from eventsnap.models import Event
from eventsnap.models.user import ROLE_ORGANIZER
from eventsnap.services.users import upsert_user

logger = logging.getLogger(__name__)


def share_url(event_id: str) -> str:
    """Attendee link for an event."""
    return f"{settings.public_origin}/attendee-dashboard?eventId={event_id}"


def upload_url(event_id: str) -> str:
    """Organizer link to the upload page for an event."""
    return f"{settings.public_origin}/upload-image?eventId={event_id}"


def generate_event_id(
    session: Session,
    max_attempts: int | None = None,
    rng: random.Random | None = None,
) -> str:
    """
    Generate a 6-digit event code not used by any existing event.

    Retries on collision up to ``max_attempts`` times. If every attempt
    collides, the last generated code is returned anyway.
    """
    max_attempts = max_attempts or settings.event_id_max_attempts
    rng = rng or random

    event_id = str(rng.randint(100000, 999999))
    attempts = 0
    while attempts < max_attempts:
        attempts += 1
        if get_event(session, event_id) is None:
            return event_id
        event_id = str(rng.randint(100000, 999999))

    logger.warning(f"Reached maximum attempts to generate a unique event ID, using {event_id}")
    return event_id


def get_event(session: Session, event_id: str) -> Event | None:
    return session.get(Event, event_id)


def create_event(
    session: Session,
    store: ObjectStore,
    owner_id: str,
    name: str,
    date: str,
    cover: bytes | None,
    cover_content_type: str = "image/jpeg",
    description: str | None = None,
) -> Event:
    """
    Create an event with its cover image and record it on the owner.

    Raises:
        ValidationError: If name, date or cover is missing.
        TransientServiceError: If the code is already taken or the cover
            upload fails.
    """
    if not name or not name.strip() or not date or not cover:
        raise ValidationError("Please fill in all required fields: name, date and cover image.")

    event_id = generate_event_id(session)
    event = Event(
        id=event_id,
        name=name.strip(),
        date=date,
        description=description,
        owner_id=owner_id,
        event_url=share_url(event_id),
    )
    # Insert first: a taken code must never reach the cover upload
    session.add(event)
    try:
        session.flush()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Could not store event {event_id}: {e}")
        raise TransientServiceError("Could not create the event. Please try again.") from e

    try:
        event.cover_image = store.put_object(
            event_cover_key(event_id),
            cover,
            cover_content_type,
            metadata={"event-id": event_id},
        )
    except EventSnapError:
        session.rollback()
        raise

    session.commit()
    session.refresh(event)
    logger.info(f"Created event {event_id} ({event.name}) for {owner_id}")

    upsert_user(session, owner_id, role=ROLE_ORGANIZER, created_events=[event_id])
    return event


def is_owner(event: Event, requester_id: str) -> bool:
    owners = {event.owner_id, event.organizer_id, event.user_id, event.user_email}
    return bool(requester_id) and requester_id in owners


def delete_event(session: Session, event_id: str, requester_id: str) -> bool:
    """Delete an event. Only its owner may do so; returns False otherwise."""
    event = get_event(session, event_id)
    if event is None:
        return False
    if not is_owner(event, requester_id):
        logger.warning(f"{requester_id} tried to delete event {event_id} owned by {event.owner_id}")
        return False

    session.delete(event)
    session.commit()
    logger.info(f"Deleted event {event_id}")
    return True


def list_by_owner(session: Session, owner: str) -> list[Event]:
    """
    Events owned by ``owner``, newest first.

    Matches ``owner_id`` and the three legacy owner columns, and
    de-duplicates by event code.
    """
    columns = (Event.owner_id, Event.organizer_id, Event.user_id, Event.user_email)
    events: dict[str, Event] = {}
    for column in columns:
        for event in session.exec(select(Event).where(column == owner)).all():
            events.setdefault(event.id, event)
    return sorted(events.values(), key=lambda e: e.created_at, reverse=True)


def normalize_event_owners(session: Session) -> int:
    """
    Backfill ``owner_id`` from the legacy owner columns.

    Idempotent. Returns the number of events updated.
    """
    statement = select(Event).where(Event.owner_id == None).where(  # noqa: E711
        or_(
            Event.organizer_id != None,  # noqa: E711
            Event.user_id != None,  # noqa: E711
            Event.user_email != None,  # noqa: E711
        )
    )
    updated = 0
    for event in session.exec(statement).all():
        event.owner_id = event.organizer_id or event.user_id or event.user_email
        session.add(event)
        updated += 1

    if updated:
        session.commit()
        logger.info(f"Normalized owner for {updated} events")
    return updated


def increment_counts(
    session: Session,
    event_id: str,
    photos: int = 0,
    videos: int = 0,
    guests: int = 0,
) -> Event | None:
    """Adjust an event's counters. Returns None if the event is gone."""
    event = get_event(session, event_id)
    if event is None:
        return None

    event.photo_count += photos
    event.video_count += videos
    event.guest_count += guests
    event.updated_at = datetime.now(UTC)
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


def organizer_statistics(session: Session, owner: str) -> dict:
    """Totals across the events owned by ``owner``."""
    events = list_by_owner(session, owner)
    return {
        "eventCount": len(events),
        "photoCount": sum(e.photo_count for e in events),
        "videoCount": sum(e.video_count for e in events),
        "guestCount": sum(e.guest_count for e in events),
    }


def refresh_event_counters(session: Session, store: ObjectStore) -> dict:
    """
    Recount every event's photos from object storage.

    Per-event listing failures are logged and skipped.

    Returns dict with refresh statistics.
    """
    stats = {"checked": 0, "updated": 0, "failed": 0}
    for event in session.exec(select(Event)).all():
        stats["checked"] += 1
        try:
            keys = store.list_objects(event_images_prefix(event.id))
        except EventSnapError as e:
            logger.error(f"Counter refresh failed for event {event.id}: {e}")
            stats["failed"] += 1
            continue

        photo_count = sum(1 for key in keys if is_image_key(key))
        if photo_count != event.photo_count:
            event.photo_count = photo_count
            event.updated_at = datetime.now(UTC)
            session.add(event)
            stats["updated"] += 1

    session.commit()
    return stats
