"""Universe rows for LibraryDatabase.

Universes only exist here as owners for containers and stories.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.memory.entities import Universe

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)


def add_universe(db: LibraryDatabase, name: str, description: str = "") -> Universe:
    """Insert a new universe.

    Args:
        db: LibraryDatabase instance.
        name: Universe name.
        description: Optional description.

    Returns:
        The created Universe.
    """
    universe_id = str(uuid.uuid4())
    now = datetime.now().isoformat()
    with db.transaction() as cursor:
        cursor.execute(
            """
            INSERT INTO universes (id, name, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (universe_id, name, description, now, now),
        )
    logger.info("Added universe: %s id=%s", name, universe_id)
    return Universe(
        id=universe_id, name=name, description=description, created_at=now, updated_at=now
    )


def get_universe(db: LibraryDatabase, universe_id: str) -> Universe | None:
    """Get a universe by ID, or None if it does not exist."""
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM universes WHERE id = ?", (universe_id,))
        row = cursor.fetchone()
    return row_to_universe(row) if row else None


def list_universes(db: LibraryDatabase) -> list[Universe]:
    """List all universes, oldest first."""
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM universes ORDER BY created_at ASC, rowid ASC")
        rows = cursor.fetchall()
    return [row_to_universe(row) for row in rows]


def delete_universe(db: LibraryDatabase, universe_id: str) -> bool:
    """Delete a universe; its containers and stories go by cascade.

    Returns:
        True if a universe was deleted.
    """
    with db.transaction() as cursor:
        cursor.execute("DELETE FROM universes WHERE id = ?", (universe_id,))
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted universe %s", universe_id)
    return deleted


def row_to_universe(row: sqlite3.Row) -> Universe:
    return Universe(**dict(row))
