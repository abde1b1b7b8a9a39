# migrations/env.py
from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

# Project root on sys.path so "import claimdesk" works when alembic is run
# directly from the repo.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from claimdesk.extensions import db  # noqa: E402
from claimdesk.settings import _normalize_db_url  # noqa: E402
import claimdesk.models  # noqa: E402,F401  (registers tables on db.metadata)

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = logging.getLogger("alembic.env")
target_metadata = db.metadata

# DATABASE_URL set: plain alembic (CI, containers).
# Otherwise: `flask db ...`, which runs inside the app context.
DB_URL = _normalize_db_url(os.getenv("DATABASE_URL"))


def _flask_engine():
    from flask import current_app

    return current_app.extensions["migrate"].db.engine


def _database_url() -> str:
    if DB_URL:
        return DB_URL
    return _flask_engine().url.render_as_string(hide_password=False)


def process_revision_directives(ctx, revision, directives):
    """Skip empty autogenerate revisions."""
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No changes in schema detected.")


def run_migrations_offline():
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    engine = create_engine(DB_URL) if DB_URL else _flask_engine()

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            process_revision_directives=process_revision_directives,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
