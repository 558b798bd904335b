"""Object Store Gateway over S3.

Keys are partitioned by event and purpose:

    events/shared/{event_id}/images/{filename}
    events/shared/{event_id}/cover.jpg
    events/shared/{event_id}/selfies/{filename}
    users/{user_id}/selfies/{filename}

Objects are written public-read and addressed by their public URL,
``https://{bucket}.s3.amazonaws.com/{key}``. Failed calls raise
``TransientServiceError``; nothing is retried here.
"""
import logging
import time
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError

from eventsnap.aws.client import get_s3_client
from eventsnap.core.config import settings
from eventsnap.core.errors import TransientServiceError, ValidationError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")


def event_prefix(event_id: str) -> str:
    return f"events/shared/{event_id}/"


def event_images_prefix(event_id: str) -> str:
    return f"{event_prefix(event_id)}images/"


def event_image_key(event_id: str, filename: str) -> str:
    return f"{event_images_prefix(event_id)}{filename}"


def event_cover_key(event_id: str) -> str:
    return f"{event_prefix(event_id)}cover.jpg"


def event_selfie_key(event_id: str, filename: str) -> str:
    return f"{event_prefix(event_id)}selfies/{filename}"


def user_selfie_key(user_id: str, filename: str) -> str:
    return f"users/{user_id}/selfies/{filename}"


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def upload_filename(filename: str) -> str:
    """Prefix an uploaded photo's name so repeated names do not collide."""
    return f"{timestamp_ms()}-{filename}"


def selfie_filename(filename: str) -> str:
    return f"selfie-{timestamp_ms()}-{filename}"


def is_image_key(key: str) -> bool:
    return key.lower().endswith(IMAGE_EXTENSIONS)


class ObjectStore:
    """Upload, list and fetch objects in one bucket."""

    def __init__(self, client=None, bucket: str | None = None, max_keys: int | None = None):
        self._client = client
        self.bucket = bucket or settings.s3_bucket_name
        self.max_keys = max_keys or settings.s3_list_max_keys

    @property
    def client(self):
        # Resolved on first use so importing this module never touches AWS
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    @property
    def base_url(self) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/"

    def url_for(self, key: str) -> str:
        return f"{self.base_url}{key}"

    def key_from_url(self, url: str) -> str:
        """Return the object key behind one of this bucket's public URLs."""
        if not url.startswith(self.base_url):
            raise ValidationError(f"Could not determine storage path for {url}")
        return url[len(self.base_url):]

    def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Write ``body`` under ``key`` with public-read visibility.

        Returns:
            The public URL of the object.
        """
        extra = {
            "upload-date": datetime.now(UTC).isoformat(),
            **(metadata or {}),
        }
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ACL="public-read",
                Metadata=extra,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise TransientServiceError(f"Failed to upload {key.rsplit('/', 1)[-1]}. Please try again.") from e

        logger.debug(f"Uploaded {key} ({len(body)} bytes)")
        return self.url_for(key)

    def list_objects(self, prefix: str) -> list[str]:
        """
        List keys under ``prefix``.

        Follows continuation tokens until the listing is exhausted or
        ``max_keys`` keys have been collected.
        """
        keys: list[str] = []
        params = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": self.max_keys}

        try:
            while True:
                response = self.client.list_objects_v2(**params)
                for item in response.get("Contents", []):
                    keys.append(item["Key"])
                    if len(keys) >= self.max_keys:
                        return keys

                if not response.get("IsTruncated"):
                    return keys
                params["ContinuationToken"] = response["NextContinuationToken"]
                params["MaxKeys"] = self.max_keys - len(keys)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list {prefix}: {e}")
            raise TransientServiceError("Could not list event images. Please try again.") from e

    def get_object(self, url: str) -> bytes:
        """Download the object behind a public URL."""
        key = self.key_from_url(url)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download {key}: {e}")
            raise TransientServiceError(f"Failed to download {key.rsplit('/', 1)[-1]}") from e


def get_object_store() -> ObjectStore:
    """Dependency returning the object store for the configured bucket."""
    return ObjectStore()
