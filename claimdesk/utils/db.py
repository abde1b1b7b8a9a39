# claimdesk/utils/db.py
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from claimdesk.errors import DependencyError
from claimdesk.extensions import db


def commit_or_rollback(action: str) -> None:
    """Commit the session; on failure roll back, log and raise DependencyError."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise DependencyError(f"{action} failed. Please try again.") from exc
