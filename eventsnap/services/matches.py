"""Attendee Match Store: per (user, event) selfie and matched photos.

Writes are last-write-wins; two sessions matching the same event for the
same user can overwrite each other without any conflict detection.
"""
import logging
from datetime import UTC, datetime

from sqlmodel import Session, select

from eventsnap.models import DEFAULT_SELFIE_EVENT_ID, AttendeeMatch
from eventsnap.services.users import merge_unique

logger = logging.getLogger(__name__)


def upsert_match(
    session: Session,
    user_id: str,
    event_id: str,
    selfie_url: str,
    matched_images: list[str],
) -> AttendeeMatch:
    """
    Write the record for (user, event), replacing any existing one.

    ``matched_images`` is stored in order with duplicates removed. The
    first ``uploaded_at`` survives an overwrite.
    """
    now = datetime.now(UTC)
    record = session.get(AttendeeMatch, (user_id, event_id))
    if record is None:
        record = AttendeeMatch(
            user_id=user_id,
            event_id=event_id,
            selfie_url=selfie_url,
            matched_images=merge_unique([], matched_images),
            uploaded_at=now,
            last_updated=now,
        )
    else:
        record.selfie_url = selfie_url
        record.matched_images = merge_unique([], matched_images)
        record.last_updated = now

    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def get_match(session: Session, user_id: str, event_id: str) -> AttendeeMatch | None:
    return session.get(AttendeeMatch, (user_id, event_id))


def list_matches(session: Session, user_id: str, include_default: bool = False) -> list[AttendeeMatch]:
    """All of a user's records, most recently updated first."""
    statement = select(AttendeeMatch).where(AttendeeMatch.user_id == user_id)
    if not include_default:
        statement = statement.where(AttendeeMatch.event_id != DEFAULT_SELFIE_EVENT_ID)
    records = session.exec(statement).all()
    return sorted(records, key=lambda r: r.last_updated, reverse=True)


def get_statistics(session: Session, user_id: str) -> dict:
    """
    Summarize a user's matches.

    Returns a dict with ``eventCount``, ``photoCount`` (distinct matched
    photos), and ``firstDate`` / ``lastDate`` (ISO timestamps of the
    earliest and latest record, or None when there are no records).
    """
    records = list_matches(session, user_id)
    photos: set[str] = set()
    for record in records:
        photos.update(record.matched_images)

    dates = [r.uploaded_at for r in records]
    return {
        "eventCount": len(records),
        "photoCount": len(photos),
        "firstDate": min(dates).isoformat() if dates else None,
        "lastDate": max(dates).isoformat() if dates else None,
    }


def get_default_selfie(session: Session, user_id: str) -> str | None:
    record = get_match(session, user_id, DEFAULT_SELFIE_EVENT_ID)
    return record.selfie_url if record else None


def set_default_selfie(session: Session, user_id: str, selfie_url: str) -> AttendeeMatch:
    return upsert_match(session, user_id, DEFAULT_SELFIE_EVENT_ID, selfie_url, [])


def latest_selfie(session: Session, user_id: str) -> str | None:
    """The default selfie, else the selfie of the most recent record."""
    default = get_default_selfie(session, user_id)
    if default:
        return default
    records = list_matches(session, user_id)
    return records[0].selfie_url if records else None


def owns_selfie(session: Session, user_id: str, selfie_url: str) -> bool:
    """Whether ``selfie_url`` is the default selfie or on one of the user's records."""
    records = list_matches(session, user_id, include_default=True)
    return any(r.selfie_url == selfie_url for r in records)


def propagate_selfie_update(session: Session, user_id: str, selfie_url: str) -> int:
    """
    Point every record of the user at a new selfie.

    Returns the number of records updated.
    """
    now = datetime.now(UTC)
    records = list_matches(session, user_id, include_default=True)
    for record in records:
        record.selfie_url = selfie_url
        record.last_updated = now
        session.add(record)
    session.commit()
    logger.info(f"Updated selfie on {len(records)} records for {user_id}")
    return len(records)
