"""SQLite-backed sample and alert stores."""

from solarify_engine.db.engine import close_db, init_db
from solarify_engine.db.repository import Repository

__all__ = ["close_db", "init_db", "Repository"]
