# migrations/env.py
import os
import sys
import logging
from logging.config import fileConfig

from flask import current_app
from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
log = logging.getLogger('alembic.env')

# --- Flask-Migrate Integration ---
# Assumes migrations folder is one level down from project root
project_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from voicerouter.extensions import db # noqa: E402
from voicerouter.database import models # noqa: E402,F401 Ensures models are registered with metadata

# Use the metadata from the Flask-SQLAlchemy db instance
target_metadata = db.metadata


def get_engine_url():
    """Database URL from the Flask config; alembic.ini only as a last resort."""
    url = current_app.config.get('SQLALCHEMY_DATABASE_URI')
    return url or config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_engine_url()
    if not url:
        raise ValueError("Database URL not found. Set DATABASE_URI in the environment.")

    context.configure(
        url=url.replace('%', '%%'),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against the app's engine."""
    connectable = db.engine

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite needs batch mode for ALTER TABLE
            render_as_batch=connection.dialect.name == 'sqlite',
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    log.info(f"Running migrations against {db.engine.url.render_as_string(hide_password=True)}")
    run_migrations_online()
