"""Organizer bulk uploads and attendee selfie updates."""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from eventsnap.aws.storage import ObjectStore, event_image_key, selfie_filename, upload_filename, user_selfie_key
from eventsnap.core.config import settings
from eventsnap.core.errors import EventSnapError, NotFoundError, ValidationError
from eventsnap.services import matches
from eventsnap.services.events import get_event, increment_counts

logger = logging.getLogger(__name__)


@dataclass
class UploadItem:
    """A file received from the client."""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class UploadReport:
    """Per-file outcome of a bulk upload."""
    uploaded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    @property
    def counts(self) -> dict:
        return {
            "uploaded": len(self.uploaded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }


def looks_like_selfie(filename: str) -> bool:
    name = filename.lower()
    return "selfie" in name or "self" in name


def image_problem(item: UploadItem, max_bytes: int | None = None) -> str | None:
    """Why a file is not an acceptable image, or None if it is."""
    max_bytes = max_bytes or settings.max_upload_bytes
    if not (item.content_type or "").startswith("image/"):
        return f"{item.filename} is not a valid image file"
    if item.size > max_bytes:
        return f"{item.filename} exceeds the {max_bytes // (1024 * 1024)}MB size limit"
    return None


def validate_upload(item: UploadItem, max_bytes: int | None = None) -> str | None:
    """
    Check an event photo before upload.

    Returns the reason it is rejected, or None if it may be uploaded.
    Selfies are rejected by filename so attendee selfies never end up in
    the event gallery.
    """
    problem = image_problem(item, max_bytes)
    if problem:
        return problem
    if looks_like_selfie(item.filename):
        return f"{item.filename} looks like a selfie"
    return None


def ensure_image(item: UploadItem) -> None:
    """Raise ValidationError unless ``item`` is an acceptable image."""
    problem = image_problem(item)
    if problem:
        raise ValidationError(problem)


def upload_event_images(
    session: Session,
    store: ObjectStore,
    event_id: str,
    items: list[UploadItem],
) -> UploadReport:
    """
    Upload photos to an event.

    Invalid files are skipped, the rest are uploaded concurrently. Each
    file succeeds or fails on its own; the event's photo count grows by
    the number of successful uploads.

    Raises:
        ValidationError: If no files were given.
        NotFoundError: If the event does not exist.
    """
    if not items:
        raise ValidationError("Please select at least one image to upload.")
    if get_event(session, event_id) is None:
        raise NotFoundError(f"Event {event_id} not found")

    report = UploadReport()
    valid: list[UploadItem] = []
    for item in items:
        reason = validate_upload(item)
        if reason:
            report.skipped.append({"name": item.filename, "reason": reason})
        else:
            valid.append(item)

    if report.skipped:
        logger.info(f"Skipped {len(report.skipped)} files for event {event_id}")

    def upload(item: UploadItem) -> str:
        return store.put_object(
            event_image_key(event_id, upload_filename(item.filename)),
            item.content,
            item.content_type,
            metadata={"event-id": event_id},
        )

    if valid:
        with ThreadPoolExecutor(max_workers=len(valid)) as executor:
            futures = [(item, executor.submit(upload, item)) for item in valid]
            for item, future in futures:
                try:
                    report.uploaded.append(future.result())
                except EventSnapError as e:
                    logger.error(f"Failed to upload {item.filename}: {e}")
                    report.failed.append(item.filename)

    if report.uploaded:
        increment_counts(session, event_id, photos=len(report.uploaded))

    logger.info(f"Upload to event {event_id}: {report.counts}")
    return report


def update_selfie(session: Session, store: ObjectStore, user_id: str, selfie: UploadItem) -> str:
    """
    Replace a user's selfie.

    The new selfie becomes the default selfie and is copied onto every
    existing match record of the user. Those database writes are best
    effort: failures are logged and the new URL is still returned.

    Returns:
        Public URL of the uploaded selfie.
    """
    ensure_image(selfie)
    url = store.put_object(
        user_selfie_key(user_id, selfie_filename(selfie.filename)),
        selfie.content,
        selfie.content_type,
    )

    try:
        matches.propagate_selfie_update(session, user_id, url)
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Failed to update selfie for existing events of {user_id}: {e}")

    try:
        matches.set_default_selfie(session, user_id, url)
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Failed to store default selfie for {user_id}: {e}")

    return url
