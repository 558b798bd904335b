"""Shared test fixtures."""

import threading

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from eventsnap.aws.faces import get_face_comparer
from eventsnap.aws.storage import ObjectStore, get_object_store
from eventsnap.core.config import settings
from eventsnap.core.database import get_session
from eventsnap.core.errors import TransientServiceError
from eventsnap.main import app
from eventsnap.models import Event
from eventsnap.routes import auth as auth_routes
from eventsnap.services import matches

BUCKET = "test-bucket"
ORGANIZER = "organizer@example.com"
ATTENDEE = "attendee@example.com"


class FakeObjectStore(ObjectStore):
    """In-memory object store with the real key and URL handling."""

    def __init__(self):
        super().__init__(client=object(), bucket=BUCKET, max_keys=1000)
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_names: set[str] = set()
        self._lock = threading.Lock()

    def put_object(self, key, body, content_type, metadata=None):
        if any(key.endswith(name) for name in self.fail_names):
            raise TransientServiceError(f"Failed to upload {key}")
        with self._lock:
            self.objects[key] = body
            self.content_types[key] = content_type
        return self.url_for(key)

    def list_objects(self, prefix):
        return sorted(k for k in self.objects if k.startswith(prefix))[: self.max_keys]

    def get_object(self, url):
        key = self.key_from_url(url)
        if key not in self.objects:
            raise TransientServiceError(f"Failed to download {key}")
        return self.objects[key]


class FakeFaceComparer:
    """Returns canned similarities keyed by target file name."""

    def __init__(self, scores: dict | None = None):
        self.scores = scores or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def compare(self, source_key, target_key):
        with self._lock:
            self.calls.append((source_key, target_key))
        name = target_key.rsplit("/", 1)[-1]
        score = self.scores.get(name)
        if isinstance(score, Exception):
            raise score
        return score


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture(name="comparer")
def comparer_fixture() -> FakeFaceComparer:
    return FakeFaceComparer()


@pytest.fixture(name="client")
def client_fixture(session: Session, store: FakeObjectStore, comparer: FakeFaceComparer, monkeypatch):
    """Create a test client with the test database and fake AWS gateways."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_face_comparer] = lambda: comparer
    monkeypatch.setattr(settings, "match_batch_delay_seconds", 0)
    monkeypatch.setattr(settings, "download_delay_seconds", 0)
    monkeypatch.setattr(
        auth_routes,
        "verify_google_credential",
        lambda credential: {"email": credential, "name": credential.split("@")[0].title()},
    )
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def sign_in(client: TestClient, email: str) -> dict:
    """Sign in through the Google route; the fake verifier echoes the email."""
    response = client.post("/auth/google", json={"credential": email})
    assert response.status_code == 200
    return response.json()


@pytest.fixture(name="organizer_client")
def organizer_client_fixture(client: TestClient) -> TestClient:
    client.post("/auth/intent", json={"action": "createEvent"})
    sign_in(client, ORGANIZER)
    return client


@pytest.fixture(name="attendee_client")
def attendee_client_fixture(client: TestClient) -> TestClient:
    sign_in(client, ATTENDEE)
    return client


@pytest.fixture(name="sample_event")
def sample_event_fixture(session: Session) -> Event:
    """Create a sample event owned by the organizer."""
    event = Event(
        id="042913",
        name="Spring Gala",
        date="2026-04-12",
        cover_image=f"https://{BUCKET}.s3.amazonaws.com/events/shared/042913/cover.jpg",
        owner_id=ORGANIZER,
        event_url="http://localhost:5173/attendee-dashboard?eventId=042913",
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="event_images")
def event_images_fixture(store: FakeObjectStore, sample_event: Event) -> list[str]:
    """Put three photos and one non-image object under the sample event."""
    keys = [
        f"events/shared/{sample_event.id}/images/{name}"
        for name in ("a.jpg", "b.JPEG", "c.png", "notes.txt")
    ]
    for key in keys:
        store.objects[key] = b"img"
    return keys


@pytest.fixture(name="default_selfie")
def default_selfie_fixture(session: Session, store: FakeObjectStore) -> str:
    """Store a default selfie for the attendee."""
    key = f"users/{ATTENDEE}/selfies/selfie-1-me.jpg"
    store.objects[key] = b"face"
    url = store.url_for(key)
    matches.set_default_selfie(session, ATTENDEE, url)
    return url
