"""Alembic environment for clubflow.

The URL comes from ``clubflow.config.Settings`` (``DATABASE_URL`` in the
environment or ``.env``); online migrations run on the same engine setup the
service uses, so SQLite gets its foreign-key and locking pragmas here too.
"""
from logging.config import fileConfig
import os
import sys

from alembic import context

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from clubflow.config import Settings  # noqa: E402
from clubflow.database import Base, Database  # noqa: E402
import clubflow.models  # noqa: E402,F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = Settings()
target_metadata = Base.metadata


def run_offline(url: str) -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    database = Database(url)
    try:
        with database.engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                # SQLite cannot ALTER most constraints in place.
                render_as_batch=settings.is_sqlite,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        database.dispose()


if context.is_offline_mode():
    run_offline(settings.DATABASE_URL)
else:
    run_online(settings.DATABASE_URL)
