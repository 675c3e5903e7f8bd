"""Database handle: engine, session factory and the per-request session dependency."""
import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _configure_sqlite(engine: Engine) -> None:
    """Foreign keys on, and every transaction takes the write lock up front.

    SQLite has no row locks; ``BEGIN IMMEDIATE`` makes concurrent writers
    queue on the database lock instead of failing mid-transaction.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        # Let SQLAlchemy emit BEGIN itself.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the engine for the lifetime of the process."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            self.engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
            _configure_sqlite(self.engine)
        else:
            self.engine = create_engine(url, echo=echo, pool_pre_ping=True)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_all(self) -> None:
        # Register every model with Base.metadata before creating tables.
        import clubflow.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Created tables on %s", self.engine.url.render_as_string(hide_password=True))

    def drop_all(self) -> None:
        import clubflow.models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """Yield a session bound to the application's database handle."""
    session = request.app.state.database.session_factory()
    try:
        yield session
    finally:
        session.close()
