"""Story version ledger for LibraryDatabase."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.memory.entities import StoryVersion
from src.utils.exceptions import LastVersionError, NotFoundError

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)


def create_version(db: LibraryDatabase, story_id: str, name: str) -> StoryVersion:
    """Insert a new version for a story.

    The story's active pointers are left alone; repointing is the caller's job.

    Args:
        db: LibraryDatabase instance.
        story_id: Owning story.
        name: Version name (Original, Alternate Ending, ...).

    Returns:
        The created StoryVersion.

    Raises:
        NotFoundError: If the story does not exist.
    """
    version_id = str(uuid.uuid4())
    now = datetime.now().isoformat()
    with db.transaction() as cursor:
        cursor.execute("SELECT 1 FROM stories WHERE id = ?", (story_id,))
        if cursor.fetchone() is None:
            raise NotFoundError("story", story_id)
        cursor.execute(
            """
            INSERT INTO story_versions (id, story_id, name, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (version_id, story_id, name, now, now),
        )
    logger.debug("Created version '%s' id=%s for story %s", name, version_id, story_id)
    return StoryVersion(
        id=version_id, story_id=story_id, name=name, created_at=now, updated_at=now
    )


def get_version(db: LibraryDatabase, version_id: str) -> StoryVersion | None:
    """Get a version by ID, or None if it does not exist."""
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM story_versions WHERE id = ?", (version_id,))
        row = cursor.fetchone()
    return row_to_version(row) if row else None


def list_versions(db: LibraryDatabase, story_id: str) -> list[StoryVersion]:
    """List a story's versions, oldest first."""
    with db.read_cursor() as cursor:
        cursor.execute(
            """
            SELECT * FROM story_versions WHERE story_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (story_id,),
        )
        rows = cursor.fetchall()
    return [row_to_version(row) for row in rows]


def count_versions(db: LibraryDatabase, story_id: str) -> int:
    with db.read_cursor() as cursor:
        cursor.execute("SELECT COUNT(*) FROM story_versions WHERE story_id = ?", (story_id,))
        return cursor.fetchone()[0]


def rename_version(db: LibraryDatabase, version_id: str, new_name: str) -> None:
    """Rename a version.

    Raises:
        NotFoundError: If the version does not exist.
    """
    with db.transaction() as cursor:
        cursor.execute(
            "UPDATE story_versions SET name = ?, updated_at = ? WHERE id = ?",
            (new_name, datetime.now().isoformat(), version_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("version", version_id)
    logger.info("Renamed version %s to '%s'", version_id, new_name)


def delete_version(db: LibraryDatabase, version_id: str) -> None:
    """Delete a version and, by cascade, its snapshots.

    This only guards against removing a story's last version. Repointing a story
    away from the version first is the caller's job.

    Raises:
        NotFoundError: If the version does not exist.
        LastVersionError: If it is the story's only version.
    """
    with db.transaction() as cursor:
        cursor.execute("SELECT story_id FROM story_versions WHERE id = ?", (version_id,))
        row = cursor.fetchone()
        if row is None:
            raise NotFoundError("version", version_id)
        story_id = row["story_id"]

        cursor.execute("SELECT COUNT(*) FROM story_versions WHERE story_id = ?", (story_id,))
        if cursor.fetchone()[0] <= 1:
            logger.warning("Refused to delete %s: last version of story %s", version_id, story_id)
            raise LastVersionError(
                f"Cannot delete the only version of story {story_id}; "
                "a story must keep at least one version"
            )

        cursor.execute("DELETE FROM story_versions WHERE id = ?", (version_id,))
    logger.info("Deleted version %s of story %s", version_id, story_id)


def row_to_version(row: sqlite3.Row) -> StoryVersion:
    """Convert a database row to a StoryVersion."""
    return StoryVersion(**dict(row))
