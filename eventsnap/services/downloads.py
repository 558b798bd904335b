"""Bulk photo downloads packed into a ZIP archive."""
import io
import logging
import time
import zipfile

from eventsnap.aws.storage import ObjectStore
from eventsnap.core.config import settings
from eventsnap.core.errors import EventSnapError

logger = logging.getLogger(__name__)


def archive_name(url: str, used: set[str]) -> str:
    """File name for ``url`` inside the archive, unique within ``used``."""
    name = url.rsplit("/", 1)[-1] or "photo.jpg"
    candidate, n = name, 1
    while candidate in used:
        stem, dot, ext = name.rpartition(".")
        candidate = f"{stem}-{n}.{ext}" if dot else f"{name}-{n}"
        n += 1
    used.add(candidate)
    return candidate


def build_photo_archive(
    store: ObjectStore,
    urls: list[str],
    delay: float | None = None,
    sleep=time.sleep,
) -> bytes:
    """
    Fetch photos one at a time and pack them into a ZIP archive.

    Waits ``delay`` seconds between fetches. Photos that fail to download
    are listed in ``failed.txt`` inside the archive.
    """
    delay = settings.download_delay_seconds if delay is None else delay
    buffer = io.BytesIO()
    failed: list[str] = []
    used: set[str] = set()

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for index, url in enumerate(urls):
            if index and delay:
                sleep(delay)
            try:
                content = store.get_object(url)
            except EventSnapError as e:
                logger.error(f"Error downloading {url}: {e}")
                failed.append(url)
                continue
            archive.writestr(archive_name(url, used), content)

        if failed:
            archive.writestr("failed.txt", "\n".join(failed) + "\n")

    logger.info(f"Built archive with {len(urls) - len(failed)}/{len(urls)} photos")
    return buffer.getvalue()
