"""User records, upserted on sign-in and on role-changing actions."""
import logging
from datetime import UTC, datetime

from sqlmodel import Session

from eventsnap.models import User

logger = logging.getLogger(__name__)


def merge_unique(existing: list[str], new: list[str]) -> list[str]:
    """Ordered union of two lists, keeping first occurrences."""
    return list(dict.fromkeys([*existing, *new]))


def get_user(session: Session, user_id: str) -> User | None:
    return session.get(User, user_id)


def upsert_user(
    session: Session,
    email: str,
    name: str = "",
    mobile: str = "",
    role: str | None = None,
    created_events: list[str] | None = None,
) -> User:
    """
    Create or update the user keyed by ``email``.

    A missing ``role`` keeps the stored one. ``created_events`` is merged
    into the stored list rather than replacing it.
    """
    user = session.get(User, email)
    now = datetime.now(UTC)

    if user is None:
        user = User(
            user_id=email,
            email=email,
            name=name,
            mobile=mobile,
            role=role,
            created_events=merge_unique([], created_events or []),
            created_at=now,
            updated_at=now,
        )
        logger.info(f"Created user {email} with role {role}")
    else:
        user.name = name or user.name
        user.mobile = mobile or user.mobile
        user.role = role or user.role
        if created_events:
            # Reassign so the JSON column is flagged as changed
            user.created_events = merge_unique(user.created_events or [], created_events)
        user.updated_at = now

    session.add(user)
    session.commit()
    session.refresh(user)
    return user
