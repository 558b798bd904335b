"""Tests for the S3 and Rekognition gateways against stubbed boto3 clients."""

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import ANY, Stubber

from eventsnap.aws import storage
from eventsnap.aws.faces import FaceComparer
from eventsnap.aws.storage import ObjectStore
from eventsnap.core.errors import TransientServiceError, ValidationError

BUCKET = "test-bucket"


def make_client(service: str):
    return boto3.client(
        service,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture(name="s3")
def s3_fixture():
    client = make_client("s3")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture(name="rekognition")
def rekognition_fixture():
    client = make_client("rekognition")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


class TestKeys:
    """Tests for object key and file name helpers."""

    def test_key_scheme(self):
        """Test the key layout for images, covers and selfies."""
        assert storage.event_image_key("123456", "a.jpg") == "events/shared/123456/images/a.jpg"
        assert storage.event_cover_key("123456") == "events/shared/123456/cover.jpg"
        assert storage.event_selfie_key("123456", "s.jpg") == "events/shared/123456/selfies/s.jpg"
        assert storage.user_selfie_key("a@example.com", "s.jpg") == "users/a@example.com/selfies/s.jpg"

    def test_image_keys(self):
        """Test which keys count as images."""
        assert storage.is_image_key("x/A.JPG")
        assert storage.is_image_key("x/b.jpeg")
        assert storage.is_image_key("x/c.png")
        assert not storage.is_image_key("x/d.gif")

    def test_filenames(self):
        """Test the timestamped upload and selfie file names."""
        assert storage.selfie_filename("me.jpg").startswith("selfie-")
        assert storage.upload_filename("a.jpg").endswith("-a.jpg")


class TestObjectStore:
    """Tests for the S3 object store."""

    def test_put_object_public_read(self, s3):
        """Test that uploads are public-read with metadata."""
        client, stubber = s3
        stubber.add_response(
            "put_object",
            {},
            {
                "Bucket": BUCKET,
                "Key": "events/shared/123456/images/a.jpg",
                "Body": b"data",
                "ContentType": "image/jpeg",
                "ACL": "public-read",
                "Metadata": ANY,
            },
        )
        store = ObjectStore(client=client, bucket=BUCKET)

        url = store.put_object("events/shared/123456/images/a.jpg", b"data", "image/jpeg")

        assert url == f"https://{BUCKET}.s3.amazonaws.com/events/shared/123456/images/a.jpg"

    def test_put_object_failure(self, s3):
        """Test that a failed upload raises TransientServiceError."""
        client, stubber = s3
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        store = ObjectStore(client=client, bucket=BUCKET)

        with pytest.raises(TransientServiceError):
            store.put_object("events/shared/123456/images/a.jpg", b"data", "image/jpeg")

    def test_list_objects_follows_pages(self, s3):
        """Test that listing follows continuation tokens."""
        client, stubber = s3
        prefix = "events/shared/123456/images/"
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": f"{prefix}a.jpg"}, {"Key": f"{prefix}b.jpg"}],
                "IsTruncated": True,
                "NextContinuationToken": "token-1",
            },
            {"Bucket": BUCKET, "Prefix": prefix, "MaxKeys": 1000},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": f"{prefix}c.jpg"}], "IsTruncated": False},
            {"Bucket": BUCKET, "Prefix": prefix, "MaxKeys": 998, "ContinuationToken": "token-1"},
        )
        store = ObjectStore(client=client, bucket=BUCKET, max_keys=1000)

        assert store.list_objects(prefix) == [f"{prefix}a.jpg", f"{prefix}b.jpg", f"{prefix}c.jpg"]

    def test_list_objects_stops_at_max_keys(self, s3):
        """Test that listing stops once max_keys keys are collected."""
        client, stubber = s3
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "p/a.jpg"}, {"Key": "p/b.jpg"}],
                "IsTruncated": True,
                "NextContinuationToken": "token-1",
            },
            {"Bucket": BUCKET, "Prefix": "p/", "MaxKeys": 2},
        )
        store = ObjectStore(client=client, bucket=BUCKET, max_keys=2)

        assert store.list_objects("p/") == ["p/a.jpg", "p/b.jpg"]

    def test_list_objects_empty(self, s3):
        """Test listing an empty prefix."""
        client, stubber = s3
        stubber.add_response(
            "list_objects_v2",
            {"IsTruncated": False, "KeyCount": 0},
            {"Bucket": BUCKET, "Prefix": "p/", "MaxKeys": 1000},
        )
        store = ObjectStore(client=client, bucket=BUCKET, max_keys=1000)

        assert store.list_objects("p/") == []

    def test_get_object(self, s3):
        """Test downloading an object by its public URL."""
        client, stubber = s3
        stubber.add_response(
            "get_object",
            {"Body": StreamingBody(io.BytesIO(b"jpeg"), 4)},
            {"Bucket": BUCKET, "Key": "events/shared/1/images/a.jpg"},
        )
        store = ObjectStore(client=client, bucket=BUCKET)

        assert store.get_object(store.url_for("events/shared/1/images/a.jpg")) == b"jpeg"

    def test_key_from_foreign_url(self):
        """Test that URLs outside the bucket are rejected."""
        store = ObjectStore(client=object(), bucket=BUCKET)
        with pytest.raises(ValidationError):
            store.key_from_url("https://other.s3.amazonaws.com/a.jpg")


class TestFaceComparer:
    """Tests for the Rekognition face comparer."""

    def expected(self, target: str) -> dict:
        return {
            "SourceImage": {"S3Object": {"Bucket": BUCKET, "Name": "users/a/selfies/s.jpg"}},
            "TargetImage": {"S3Object": {"Bucket": BUCKET, "Name": target}},
            "SimilarityThreshold": 80.0,
            "QualityFilter": "HIGH",
        }

    def test_best_of_multiple_matches(self, rekognition):
        """Test that the highest similarity is returned."""
        client, stubber = rekognition
        stubber.add_response(
            "compare_faces",
            {"FaceMatches": [{"Similarity": 84.2}, {"Similarity": 97.1}, {"Similarity": 90.0}]},
            self.expected("events/shared/1/images/a.jpg"),
        )
        comparer = FaceComparer(client=client, bucket=BUCKET, similarity_threshold=80.0)

        assert comparer.compare("users/a/selfies/s.jpg", "events/shared/1/images/a.jpg") == 97.1

    def test_no_match(self, rekognition):
        """Test that no face match returns None."""
        client, stubber = rekognition
        stubber.add_response(
            "compare_faces",
            {"FaceMatches": [], "UnmatchedFaces": []},
            self.expected("events/shared/1/images/b.jpg"),
        )
        comparer = FaceComparer(client=client, bucket=BUCKET, similarity_threshold=80.0)

        assert comparer.compare("users/a/selfies/s.jpg", "events/shared/1/images/b.jpg") is None

    def test_service_error(self, rekognition):
        """Test that a service error raises TransientServiceError."""
        client, stubber = rekognition
        stubber.add_client_error("compare_faces", service_error_code="InvalidParameterException")
        comparer = FaceComparer(client=client, bucket=BUCKET, similarity_threshold=80.0)

        with pytest.raises(TransientServiceError):
            comparer.compare("users/a/selfies/s.jpg", "events/shared/1/images/c.jpg")
