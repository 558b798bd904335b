#!/usr/bin/env python3
"""
One-off script to move legacy event owners into owner_id.

Older events recorded their owner as organizer_id, user_id or user_email.
This copies the first of those into owner_id so owner lookups only need
one column. The app also does this at startup; the script lets you
preview the change first.

Usage:
    python scripts/migrate_event_owners.py [--dry-run] [--recount]

Options:
    --dry-run    Show which events would change without writing
    --recount    Also recount each event's photos from S3
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session, select

from eventsnap.aws.client import has_bucket_configured
from eventsnap.aws.storage import ObjectStore
from eventsnap.core.database import create_db_and_tables, engine
from eventsnap.models import Event
from eventsnap.services.events import normalize_event_owners, refresh_event_counters


def main(dry_run: bool = False, recount: bool = False):
    """Backfill owner_id, and optionally recount photos."""
    create_db_and_tables()

    with Session(engine) as session:
        statement = select(Event).where(Event.owner_id == None)  # noqa: E711
        legacy = [
            e for e in session.exec(statement).all()
            if e.organizer_id or e.user_id or e.user_email
        ]

        if not legacy:
            print("No events with legacy owners found.")
        else:
            print(f"Found {len(legacy)} events with legacy owners:\n")
            for event in legacy:
                owner = event.organizer_id or event.user_id or event.user_email
                print(f"  {event.id}  {event.name!r} -> {owner}")
            print()

            if dry_run:
                print("Dry run - no changes made.")
            else:
                updated = normalize_event_owners(session)
                print(f"Updated {updated} events.")

        if not recount:
            return
        if not has_bucket_configured():
            print("Error: S3_BUCKET_NAME is not set, cannot recount photos.")
            sys.exit(1)
        if dry_run:
            print("Dry run - skipping photo recount.")
            return

        stats = refresh_event_counters(session, ObjectStore())
        print(
            f"\nRecount complete: {stats['checked']} checked, "
            f"{stats['updated']} updated, {stats['failed']} failed"
        )


if __name__ == "__main__":
    main(dry_run="--dry-run" in sys.argv, recount="--recount" in sys.argv)
