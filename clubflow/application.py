"""FastAPI application factory."""
import logging
import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clubflow.config import Settings
from clubflow.database import Database
from clubflow.errors import install_error_handlers
from clubflow.routers import activity, admin, clubs, events, news, notifications, registrations, users
from clubflow.services.side_effects import SideEffectPipeline

logger = logging.getLogger(__name__)


def _setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application around an explicit settings object and database handle."""
    settings = settings or Settings()
    _setup_logging(settings)
    database = database or Database(settings.DATABASE_URL, echo=settings.DB_ECHO)

    app = FastAPI(
        title="Clubflow",
        description="University club events, news and registration workflows",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.side_effects = SideEffectPipeline(database.session_factory)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(clubs.router, prefix="/api/clubs", tags=["Clubs"])
    app.include_router(events.router, prefix="/api/events", tags=["Events"])
    app.include_router(registrations.router, prefix="/api/events", tags=["Registrations"])
    app.include_router(news.router, prefix="/api/news", tags=["News"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(activity.router, prefix="/api/activity", tags=["Activity"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    @app.on_event("startup")
    def on_startup():
        """Create database tables on startup (for SQLite dev mode)."""
        if settings.is_sqlite:
            database.create_all()

    @app.on_event("shutdown")
    def on_shutdown():
        database.dispose()

    @app.get("/api/health")
    def health_check():
        return {"status": "ok"}

    logger.info("Application configured against %s", database.engine.url.render_as_string(hide_password=True))
    return app
