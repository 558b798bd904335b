"""EventSnap: event photo sharing with face matching."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlmodel import Session
from starlette.middleware.sessions import SessionMiddleware

from eventsnap.core.config import settings
from eventsnap.core.database import create_db_and_tables, engine
from eventsnap.core.errors import AuthRequired, EventSnapError
from eventsnap.core.scheduler import shutdown_scheduler, start_scheduler
from eventsnap.core.session import get_user_session
from eventsnap.routes import attendees, auth, events, photos, uploads
from eventsnap.services.events import normalize_event_owners

# Configure logging
log_dir = Path.home() / ".logs" / "eventsnap"
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting EventSnap application")
    create_db_and_tables()
    with Session(engine) as session:
        normalize_event_owners(session)
    start_scheduler()
    yield
    # Shutdown
    shutdown_scheduler()
    logger.info("EventSnap application shut down")


app = FastAPI(
    title=settings.app_name,
    description="Organizers share event photos; attendees find themselves with a selfie",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for the browser client
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)


@app.exception_handler(AuthRequired)
async def auth_required_handler(request: Request, exc: AuthRequired):
    """Remember what the user was doing so sign-in can resume it."""
    if exc.pending_action:
        user_session = get_user_session(request)
        user_session.pending_action = exc.pending_action
        user_session.save(request)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "pending_action": exc.pending_action},
    )


@app.exception_handler(EventSnapError)
async def eventsnap_error_handler(request: Request, exc: EventSnapError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(auth.router)
app.include_router(events.router)
app.include_router(uploads.router)
app.include_router(attendees.router)
app.include_router(photos.router)


@app.get("/")
async def root(request: Request):
    """Redirect root to the events dashboard."""
    rp = request.scope.get("root_path", "")
    return RedirectResponse(f"{rp}/events")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
