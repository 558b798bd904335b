"""Face Comparison Gateway over Rekognition CompareFaces."""
import logging

from botocore.exceptions import BotoCoreError, ClientError

from eventsnap.aws.client import get_rekognition_client
from eventsnap.core.config import settings
from eventsnap.core.errors import TransientServiceError

logger = logging.getLogger(__name__)


class FaceComparer:
    """Compare a selfie against event photos stored in the same bucket.

    ``similarity_threshold`` is sent with every CompareFaces call, so
    Rekognition itself drops faces below it. Callers apply their own
    acceptance threshold on top.
    """

    def __init__(
        self,
        client=None,
        bucket: str | None = None,
        similarity_threshold: float | None = None,
        quality_filter: str | None = None,
    ):
        self._client = client
        self.bucket = bucket or settings.s3_bucket_name
        self.similarity_threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else settings.face_similarity_threshold
        )
        self.quality_filter = quality_filter or settings.face_quality_filter

    @property
    def client(self):
        if self._client is None:
            self._client = get_rekognition_client()
        return self._client

    def compare(self, source_key: str, target_key: str) -> float | None:
        """
        Compare the face in ``source_key`` with faces in ``target_key``.

        Returns:
            The highest similarity (0-100) among matched faces, or None
            when no face matched.

        Raises:
            TransientServiceError: If the Rekognition call fails.
        """
        try:
            response = self.client.compare_faces(
                SourceImage={"S3Object": {"Bucket": self.bucket, "Name": source_key}},
                TargetImage={"S3Object": {"Bucket": self.bucket, "Name": target_key}},
                SimilarityThreshold=self.similarity_threshold,
                QualityFilter=self.quality_filter,
            )
        except (ClientError, BotoCoreError) as e:
            raise TransientServiceError(f"Face comparison failed for {target_key}: {e}") from e

        matches = response.get("FaceMatches") or []
        if not matches:
            return None
        return max(float(m.get("Similarity", 0.0)) for m in matches)


def get_face_comparer() -> FaceComparer:
    """Dependency returning the configured face comparer."""
    return FaceComparer()
