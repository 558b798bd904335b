"""Matching Orchestrator: find an attendee's photos in an event.

One invocation walks an explicit state machine:

    LOOKUP_EVENT -> CHECK_EXISTING_MATCH -> RETURN_CACHED -> DONE
                                         -> RUN_COMPARISON -> PERSIST_RESULT -> DONE
                                         -> AWAIT_SELFIE

Every state may also move to ERROR. An existing record for (user, event)
short-circuits to its cached matches without any comparison call. Otherwise
the event's images are compared against the selfie in fixed-size batches:
comparisons inside a batch run concurrently, batches run one after another
with a pause in between to keep the load on Rekognition down.

Candidates must clear two thresholds: Rekognition's own similarity
threshold on the call, and the acceptance threshold applied here.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from eventsnap.aws.faces import FaceComparer
from eventsnap.aws.storage import (
    ObjectStore,
    event_images_prefix,
    event_selfie_key,
    is_image_key,
    selfie_filename,
)
from eventsnap.core.config import settings
from eventsnap.core.errors import (
    EventSnapError,
    NotFoundError,
    PermissionDenied,
    TransientServiceError,
)
from eventsnap.models import Event
from eventsnap.services import matches
from eventsnap.services.events import get_event
from eventsnap.services.uploads import UploadItem, ensure_image

logger = logging.getLogger(__name__)


class MatchState(str, Enum):
    LOOKUP_EVENT = "lookup_event"
    CHECK_EXISTING_MATCH = "check_existing_match"
    RETURN_CACHED = "return_cached"
    RUN_COMPARISON = "run_comparison"
    PERSIST_RESULT = "persist_result"
    AWAIT_SELFIE = "await_selfie"
    DONE = "done"
    ERROR = "error"


TRANSITIONS: dict[MatchState, set[MatchState]] = {
    MatchState.LOOKUP_EVENT: {MatchState.CHECK_EXISTING_MATCH, MatchState.RUN_COMPARISON},
    MatchState.CHECK_EXISTING_MATCH: {
        MatchState.RETURN_CACHED,
        MatchState.RUN_COMPARISON,
        MatchState.AWAIT_SELFIE,
    },
    MatchState.RETURN_CACHED: {MatchState.DONE},
    MatchState.RUN_COMPARISON: {MatchState.PERSIST_RESULT},
    MatchState.PERSIST_RESULT: {MatchState.DONE},
    MatchState.AWAIT_SELFIE: set(),
    MatchState.DONE: set(),
    MatchState.ERROR: set(),
}

TERMINAL_STATES = {MatchState.DONE, MatchState.AWAIT_SELFIE, MatchState.ERROR}


@dataclass
class MatchCandidate:
    """An event photo and its similarity to the selfie."""
    url: str
    similarity: float


@dataclass
class MatchRun:
    """Outcome of one orchestrator invocation."""
    state: MatchState = MatchState.LOOKUP_EVENT
    history: list[MatchState] = field(default_factory=lambda: [MatchState.LOOKUP_EVENT])
    event: Event | None = None
    selfie_url: str | None = None
    matches: list[MatchCandidate] = field(default_factory=list)
    cached: bool = False
    persisted: bool = False
    error: EventSnapError | None = None

    def advance(self, next_state: MatchState) -> None:
        if next_state != MatchState.ERROR and next_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid match transition {self.state.value} -> {next_state.value}")
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Match run already finished in {self.state.value}")
        self.state = next_state
        self.history.append(next_state)

    def fail(self, error: EventSnapError) -> "MatchRun":
        self.error = error
        self.advance(MatchState.ERROR)
        return self

    @property
    def matched_urls(self) -> list[str]:
        return [m.url for m in self.matches]

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def code_variants(code: str) -> list[str]:
    """Event code as given, zero-padded to 6 digits, and unpadded."""
    code = code.strip()
    variants = [code, code.zfill(6), code.lstrip("0")]
    return [v for v in dict.fromkeys(variants) if v]


def resolve_event(session: Session, code: str) -> Event:
    """
    Resolve a typed event code, tolerating missing or extra leading zeros.

    Raises:
        NotFoundError: If no variant of the code names an event.
    """
    for variant in code_variants(code):
        event = get_event(session, variant)
        if event is not None:
            return event
    raise NotFoundError(
        f'Event with code "{code}" not found. Please check the code and try again.'
    )


def filter_and_rank(
    scored: list[tuple[str, float | None]], threshold: float
) -> list[MatchCandidate]:
    """Keep candidates at or above ``threshold``, best first."""
    kept = [
        MatchCandidate(url=url, similarity=similarity)
        for url, similarity in scored
        if similarity is not None and similarity >= threshold
    ]
    return sorted(kept, key=lambda c: c.similarity, reverse=True)


class MatchingOrchestrator:
    """Drive the selfie-to-event photo matching workflow."""

    def __init__(
        self,
        session: Session,
        store: ObjectStore,
        comparer: FaceComparer,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        acceptance_threshold: float | None = None,
        sleep=time.sleep,
    ):
        self.session = session
        self.store = store
        self.comparer = comparer
        self.batch_size = batch_size or settings.match_batch_size
        self.batch_delay = settings.match_batch_delay_seconds if batch_delay is None else batch_delay
        self.acceptance_threshold = (
            settings.match_acceptance_threshold
            if acceptance_threshold is None
            else acceptance_threshold
        )
        self._sleep = sleep

    def find_photos(self, user_id: str, event_code: str, selfie_url: str | None = None) -> MatchRun:
        """
        Find the user's photos in the event named by ``event_code``.

        Uses cached matches when a record exists. Otherwise compares with
        ``selfie_url``, the user's default selfie, or their most recent
        selfie, in that order. With no selfie at all the run ends in
        AWAIT_SELFIE so the client can ask for one.
        """
        run = MatchRun()
        try:
            run.event = resolve_event(self.session, event_code)
        except EventSnapError as e:
            return run.fail(e)

        run.advance(MatchState.CHECK_EXISTING_MATCH)
        existing = matches.get_match(self.session, user_id, run.event.id)
        if existing is not None:
            logger.info(f"Using cached matches for {user_id} at event {run.event.id}")
            run.selfie_url = existing.selfie_url
            run.matches = [MatchCandidate(url=url, similarity=0.0) for url in existing.matched_images]
            run.cached = True
            run.advance(MatchState.RETURN_CACHED)
            run.advance(MatchState.DONE)
            return run

        if selfie_url and not matches.owns_selfie(self.session, user_id, selfie_url):
            logger.warning(f"{user_id} tried to match with a selfie that is not theirs")
            return run.fail(PermissionDenied("You can only search with your own selfie."))

        run.selfie_url = selfie_url or matches.latest_selfie(self.session, user_id)
        if not run.selfie_url:
            run.advance(MatchState.AWAIT_SELFIE)
            return run

        run.advance(MatchState.RUN_COMPARISON)
        return self._compare_and_persist(run, user_id)

    def match_with_new_selfie(
        self,
        user_id: str,
        event_code: str,
        selfie: UploadItem,
    ) -> MatchRun:
        """Upload a selfie for the event, then compare it against the event's photos."""
        run = MatchRun()
        try:
            run.event = resolve_event(self.session, event_code)
            ensure_image(selfie)
            run.selfie_url = self.store.put_object(
                event_selfie_key(run.event.id, selfie_filename(selfie.filename)),
                selfie.content,
                selfie.content_type,
                metadata={"event-id": run.event.id},
            )
        except EventSnapError as e:
            return run.fail(e)

        run.advance(MatchState.RUN_COMPARISON)
        return self._compare_and_persist(run, user_id)

    def _compare_and_persist(self, run: MatchRun, user_id: str) -> MatchRun:
        try:
            run.matches = self.run_comparison(run.event, run.selfie_url)
        except EventSnapError as e:
            return run.fail(e)

        run.advance(MatchState.PERSIST_RESULT)
        run.persisted = self.persist_result(user_id, run)
        run.advance(MatchState.DONE)
        return run

    def list_candidates(self, event: Event) -> list[str]:
        """Image keys uploaded to an event."""
        keys = self.store.list_objects(event_images_prefix(event.id))
        if not keys:
            raise NotFoundError("No images found in this event.")
        image_keys = [key for key in keys if is_image_key(key)]
        if not image_keys:
            raise NotFoundError("No valid images found in this event.")
        return image_keys

    def run_comparison(self, event: Event, selfie_url: str) -> list[MatchCandidate]:
        """
        Compare a selfie with every image of an event.

        Raises:
            NotFoundError: If the event has no images or nothing matched.
            TransientServiceError: If the images cannot be listed.
            ValidationError: If the selfie is not in this bucket.
        """
        selfie_key = self.store.key_from_url(selfie_url)
        image_keys = self.list_candidates(event)

        scored: list[tuple[str, float | None]] = []
        batches = [
            image_keys[i:i + self.batch_size]
            for i in range(0, len(image_keys), self.batch_size)
        ]
        for index, batch in enumerate(batches):
            scored.extend(self._compare_batch(selfie_key, batch))
            logger.debug(
                f"Compared {min((index + 1) * self.batch_size, len(image_keys))}/{len(image_keys)} "
                f"images for event {event.id}"
            )
            if index + 1 < len(batches):
                self._sleep(self.batch_delay)

        ranked = filter_and_rank(scored, self.acceptance_threshold)
        if not ranked:
            raise NotFoundError("No matching faces found in the event images.")
        logger.info(f"Found {len(ranked)} matches in event {event.id}")
        return ranked

    def _compare_batch(self, selfie_key: str, batch: list[str]) -> list[tuple[str, float | None]]:
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            scores = list(executor.map(lambda key: self._compare_one(selfie_key, key), batch))
        return [(self.store.url_for(key), score) for key, score in zip(batch, scores)]

    def _compare_one(self, selfie_key: str, target_key: str) -> float | None:
        # A failed comparison counts as no match for this image only
        try:
            return self.comparer.compare(selfie_key, target_key)
        except TransientServiceError as e:
            logger.error(f"Error processing image {target_key}: {e}")
            return None

    def persist_result(self, user_id: str, run: MatchRun) -> bool:
        """Store the matches. Failures are logged; the run still succeeds."""
        try:
            matches.upsert_match(self.session, user_id, run.event.id, run.selfie_url, run.matched_urls)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to store attendee image data for {user_id}: {e}")
            return False
        return True
