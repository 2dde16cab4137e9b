"""Versioned schema migrations.

Versions are applied in order, each in its own transaction. The stored
version only advances once a step has fully succeeded, so an interrupted
upgrade is simply re-run on the next start.
"""

from __future__ import annotations

import logging

import aiosqlite

from solarify_engine.db.models import MIGRATIONS, SCHEMA_VERSION, SCHEMA_VERSION_TABLE

logger = logging.getLogger(__name__)


async def run_migrations(db: aiosqlite.Connection, target: int = SCHEMA_VERSION) -> int:
    """Bring the schema up to ``target`` and return the resulting version."""
    current = await get_schema_version(db)
    if current > target:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported ({target})"
        )
    if current == target:
        logger.debug("Database schema is up to date (version %d)", current)
        return current

    await db.execute(SCHEMA_VERSION_TABLE)
    for version in range(current + 1, target + 1):
        logger.info("Applying schema migration %d", version)
        try:
            # Explicit BEGIN so DDL such as ALTER TABLE rolls back with the step.
            await db.execute("BEGIN")
            for statement in MIGRATIONS[version]:
                await db.execute(statement)
            await db.execute(
                "INSERT OR REPLACE INTO schema_version (id, version) VALUES (1, ?)",
                (version,),
            )
            await db.commit()
        except aiosqlite.Error:
            await db.rollback()
            logger.error("Schema migration %d failed; database left at %d", version, version - 1)
            raise
    return target


async def get_schema_version(db: aiosqlite.Connection) -> int:
    """Current schema version; 0 when the schema has not been created."""
    try:
        async with db.execute("SELECT version FROM schema_version WHERE id = 1") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
    except aiosqlite.OperationalError:
        return 0
