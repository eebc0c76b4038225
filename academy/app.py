"""
Academy Admin - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- CORS and security middleware
- Authentication, invitation, password reset and admin routes
- Database lifecycle management
- Background reclamation of expired records

Run locally with:
    uvicorn academy.app:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy import __version__
from academy.admin.routes import router as admin_router
from academy.auth.database import get_engine, get_session_factory, init_db
from academy.auth.routes import profile_router, router as auth_router
from academy.config import settings
from academy.errors import register_error_handlers
from academy.gateway.middleware import SecurityMiddleware
from academy.invitations.routes import router as invitations_router
from academy.notifications import SmtpSender
from academy.password_reset.routes import router as password_reset_router
from academy.reclaim import start_reclaim_scheduler, stop_reclaim_scheduler


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Initialize SQLModel database unless a session factory is already set
        - Configure the SMTP notifier unless one is already set
        - Start the reclamation scheduler

    Shutdown:
        - Stop the scheduler and dispose the engine this lifespan created
    """
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set")

    engine = None
    if getattr(app.state, "db_session_factory", None) is None:
        engine = get_engine(settings.DATABASE_URL)
        init_db(engine)
        app.state.db_engine = engine
        app.state.db_session_factory = get_session_factory(engine)

    if getattr(app.state, "notifier", None) is None:
        app.state.notifier = SmtpSender.from_settings(settings)
    if not app.state.notifier.enabled:
        logger.warning("Email service not configured - invitations and resets will not be mailed")

    scheduler = start_reclaim_scheduler(
        app.state.db_session_factory, settings.RECLAIM_INTERVAL_MINUTES
    )

    yield

    stop_reclaim_scheduler(scheduler)
    if engine is not None:
        engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Academy Admin",
        description="Role-based access control, invitations and password resets",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Session-ID"],
    )
    app.add_middleware(SecurityMiddleware)

    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(invitations_router)
    app.include_router(password_reset_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for local dev tooling."""
        return {
            "status": "healthy",
            "version": __version__,
            "services": {
                "database": True,
                "email": app.state.notifier.enabled,
            },
        }

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
