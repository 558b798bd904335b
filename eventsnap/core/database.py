"""Database configuration and session management.

Events, attendee matches and users live in SQLModel tables. SQLite is the
default backend; when it is used, each connection is switched to WAL mode
so the counter refresh job can write while requests read, and foreign keys
are enforced.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from eventsnap.core.config import settings

is_sqlite = settings.database_url.startswith("sqlite")

# FastAPI may hand a connection to a different thread than the one that
# opened it, which SQLite rejects unless check_same_thread is off.
connect_args = {"check_same_thread": False} if is_sqlite else {}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


if is_sqlite:

    @sa_event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite pragmas on each new connection."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
