"""Tests for the attendee match store."""

from sqlmodel import Session, select

from eventsnap.models import DEFAULT_SELFIE_EVENT_ID, AttendeeMatch
from eventsnap.services import matches

USER = "attendee@example.com"


class TestUpsertMatch:
    """Tests for writing match records."""

    def test_single_record_per_user_and_event(self, session: Session):
        """Test that a second write replaces the first."""
        matches.upsert_match(session, USER, "123456", "selfie-1", ["u1", "u2"])
        matches.upsert_match(session, USER, "123456", "selfie-2", ["u3"])

        records = session.exec(select(AttendeeMatch).where(AttendeeMatch.user_id == USER)).all()
        assert len(records) == 1
        assert records[0].selfie_url == "selfie-2"
        assert records[0].matched_images == ["u3"]

    def test_removes_duplicate_matches(self, session: Session):
        """Test that duplicate photo URLs are dropped."""
        record = matches.upsert_match(session, USER, "123456", "s", ["u1", "u2", "u1"])
        assert record.matched_images == ["u1", "u2"]

    def test_overwrite_keeps_uploaded_at(self, session: Session):
        """Test that an overwrite keeps the first upload time."""
        first = matches.upsert_match(session, USER, "123456", "s", ["u1"])
        uploaded_at = first.uploaded_at
        second = matches.upsert_match(session, USER, "123456", "s", ["u2"])
        assert second.uploaded_at == uploaded_at
        assert second.last_updated >= uploaded_at


class TestQueries:
    """Tests for reading match records."""

    def test_get_match(self, session: Session):
        """Test fetching one record by user and event."""
        matches.upsert_match(session, USER, "123456", "s", ["u1"])
        assert matches.get_match(session, USER, "123456").matched_images == ["u1"]
        assert matches.get_match(session, USER, "654321") is None

    def test_list_matches_excludes_default(self, session: Session):
        """Test that the default selfie record is not listed."""
        matches.upsert_match(session, USER, "123456", "s", ["u1"])
        matches.set_default_selfie(session, USER, "s")

        assert [r.event_id for r in matches.list_matches(session, USER)] == ["123456"]
        all_records = matches.list_matches(session, USER, include_default=True)
        assert {r.event_id for r in all_records} == {"123456", DEFAULT_SELFIE_EVENT_ID}

    def test_statistics(self, session: Session):
        """Test event and photo totals and date range."""
        matches.upsert_match(session, USER, "111111", "s", ["u1", "u2"])
        matches.upsert_match(session, USER, "222222", "s", ["u2", "u3"])
        matches.set_default_selfie(session, USER, "s")

        stats = matches.get_statistics(session, USER)
        assert stats["eventCount"] == 2
        assert stats["photoCount"] == 3
        assert stats["firstDate"] is not None
        assert stats["firstDate"] <= stats["lastDate"]

    def test_statistics_empty(self, session: Session):
        """Test statistics for a user without records."""
        assert matches.get_statistics(session, USER) == {
            "eventCount": 0,
            "photoCount": 0,
            "firstDate": None,
            "lastDate": None,
        }


class TestSelfies:
    """Tests for default and propagated selfies."""

    def test_default_selfie(self, session: Session):
        """Test storing and reading the default selfie."""
        assert matches.get_default_selfie(session, USER) is None
        matches.set_default_selfie(session, USER, "selfie-url")
        assert matches.get_default_selfie(session, USER) == "selfie-url"

    def test_latest_selfie_prefers_default(self, session: Session):
        """Test that the default selfie wins over record selfies."""
        matches.upsert_match(session, USER, "123456", "event-selfie", ["u1"])
        assert matches.latest_selfie(session, USER) == "event-selfie"

        matches.set_default_selfie(session, USER, "default-selfie")
        assert matches.latest_selfie(session, USER) == "default-selfie"

    def test_propagate_selfie_update(self, session: Session):
        """Test that every record gets the new selfie."""
        matches.upsert_match(session, USER, "111111", "old", ["u1"])
        matches.upsert_match(session, USER, "222222", "old", ["u2"])
        matches.upsert_match(session, "other@example.com", "111111", "theirs", ["u1"])

        updated = matches.propagate_selfie_update(session, USER, "new")

        assert updated == 2
        assert {r.selfie_url for r in matches.list_matches(session, USER)} == {"new"}
        assert matches.get_match(session, "other@example.com", "111111").selfie_url == "theirs"
        # Matches are left alone
        assert matches.get_match(session, USER, "111111").matched_images == ["u1"]

    def test_owns_selfie(self, session: Session):
        """Test that only the user's own default or record selfies are recognised."""
        matches.set_default_selfie(session, USER, "default-url")
        matches.upsert_match(session, USER, "123456", "record-url", ["u1"])
        matches.set_default_selfie(session, "other@example.com", "other-url")

        assert matches.owns_selfie(session, USER, "default-url")
        assert matches.owns_selfie(session, USER, "record-url")
        assert not matches.owns_selfie(session, USER, "other-url")
