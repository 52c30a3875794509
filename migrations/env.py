"""Alembic migration environment.

The database URL comes from ``DATABASE_URL`` / ``.env`` through the
application settings unless ``sqlalchemy.url`` is set in ``alembic.ini`` or on a
programmatic ``Config``.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from community_issues.db import models  # noqa: F401
from community_issues.db.base import Base, get_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Batch mode so table alterations work on SQLite.
MIGRATION_OPTIONS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "render_as_batch": True,
}


def migrate() -> None:
    url = get_database_url(config.get_main_option("sqlalchemy.url"))

    if context.is_offline_mode():
        context.configure(url=url, literal_binds=True, **MIGRATION_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **MIGRATION_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


migrate()
