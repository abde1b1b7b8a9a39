import os
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy import event
from sqlalchemy.engine import Engine

# ======================
# Database
# ======================
db = SQLAlchemy()
migrate = Migrate()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY constraints unless asked per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ======================
# Login Manager
# ======================
login_manager = LoginManager()
login_manager.login_view = "auth.login"

# ======================
# Rate Limiter
# ======================
# Prefer Redis in production, fall back to in-memory locally.
_limiter_storage = (
    os.getenv("LIMITER_STORAGE_URL")
    or os.getenv("REDIS_URL")
    or "memory://"
)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],              # No global limits by default
    storage_uri=_limiter_storage,
)
