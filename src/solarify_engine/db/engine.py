"""SQLite connection setup with WAL mode for concurrent reads."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from solarify_engine.db.migrations import run_migrations

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


async def _check_integrity(db_path: Path) -> bool:
    """Run PRAGMA integrity_check and return True if the database is healthy."""
    try:
        async with aiosqlite.connect(str(db_path)) as db:
            async with db.execute("PRAGMA integrity_check") as cursor:
                rows = await cursor.fetchall()
    except Exception:
        logger.error("Database integrity check raised an exception", exc_info=True)
        return False
    if len(rows) == 1 and str(rows[0][0]).lower() == "ok":
        return True
    problems = [str(r[0]) for r in rows[:10]]
    logger.error("Database integrity check failed: %s", "; ".join(problems))
    return False


def _quarantine(db_path: Path) -> Path:
    """Move a corrupt database (and its WAL/SHM files) aside."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    backup = db_path.with_suffix(f".corrupt-{stamp}.db")
    for suffix in ("", "-wal", "-shm"):
        src = db_path.parent / (db_path.name + suffix)
        if src.exists():
            shutil.move(str(src), str(db_path.parent / (backup.name + suffix)))
    return backup


async def init_db(db_path: str | Path) -> aiosqlite.Connection:
    """Open the database, apply pragmas and run migrations.

    A file that fails the integrity check is kept as a timestamped backup and
    replaced by a fresh database. ``":memory:"`` opens a private in-memory
    database.
    """
    if str(db_path) != MEMORY_PATH:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        if db_path.exists() and not await _check_integrity(db_path):
            backup = _quarantine(db_path)
            logger.warning("Database corruption detected; moved to %s and starting fresh", backup)

    db = await aiosqlite.connect(str(db_path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA synchronous=NORMAL")
    await db.execute("PRAGMA busy_timeout=5000")
    db.row_factory = aiosqlite.Row

    await run_migrations(db)
    logger.info("Database initialised at %s", db_path)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Checkpoint the WAL and close the connection."""
    try:
        await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
    except aiosqlite.Error:
        logger.warning("WAL checkpoint failed", exc_info=True)
    await db.close()
    logger.info("Database connection closed")
