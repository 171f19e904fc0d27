"""Story snapshot ledger and retention for LibraryDatabase."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.memory.entities import StorySnapshot
from src.utils.exceptions import NotFoundError

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)

# Newest first; rowid breaks ties between snapshots stamped in the same instant
_NEWEST_FIRST = "created_at DESC, rowid DESC"


def create_snapshot(db: LibraryDatabase, version_id: str, content: str = "") -> StorySnapshot:
    """Insert a new snapshot stamped with the current time.

    Args:
        db: LibraryDatabase instance.
        version_id: Owning version.
        content: Snapshot content.

    Returns:
        The created StorySnapshot.

    Raises:
        NotFoundError: If the version does not exist.
    """
    snapshot_id = str(uuid.uuid4())
    now = datetime.now().isoformat()
    with db.transaction() as cursor:
        cursor.execute("SELECT 1 FROM story_versions WHERE id = ?", (version_id,))
        if cursor.fetchone() is None:
            raise NotFoundError("version", version_id)
        cursor.execute(
            """
            INSERT INTO story_snapshots (id, version_id, content, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (snapshot_id, version_id, content, now),
        )
    logger.debug(
        "Created snapshot %s in version %s (%d chars)", snapshot_id, version_id, len(content)
    )
    return StorySnapshot(id=snapshot_id, version_id=version_id, content=content, created_at=now)


def get_snapshot(db: LibraryDatabase, snapshot_id: str) -> StorySnapshot | None:
    """Get a snapshot by ID, or None if it does not exist."""
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM story_snapshots WHERE id = ?", (snapshot_id,))
        row = cursor.fetchone()
    return row_to_snapshot(row) if row else None


def get_latest_snapshot(db: LibraryDatabase, version_id: str) -> StorySnapshot | None:
    """Get the most recently created snapshot of a version, or None if it has none."""
    with db.read_cursor() as cursor:
        cursor.execute(
            "SELECT * FROM story_snapshots WHERE version_id = ? "
            f"ORDER BY {_NEWEST_FIRST} LIMIT 1",
            (version_id,),
        )
        row = cursor.fetchone()
    return row_to_snapshot(row) if row else None


def list_snapshots(db: LibraryDatabase, version_id: str) -> list[StorySnapshot]:
    """List a version's snapshots, newest first."""
    with db.read_cursor() as cursor:
        cursor.execute(
            f"SELECT * FROM story_snapshots WHERE version_id = ? ORDER BY {_NEWEST_FIRST}",
            (version_id,),
        )
        rows = cursor.fetchall()
    return [row_to_snapshot(row) for row in rows]


def update_snapshot_content(db: LibraryDatabase, snapshot_id: str, content: str) -> None:
    """Replace a snapshot's content in place (autosave); no new row is created.

    Raises:
        NotFoundError: If the snapshot does not exist.
    """
    with db.transaction() as cursor:
        cursor.execute(
            "UPDATE story_snapshots SET content = ? WHERE id = ?", (content, snapshot_id)
        )
        if cursor.rowcount == 0:
            raise NotFoundError("snapshot", snapshot_id)
    logger.debug("Autosaved snapshot %s (%d chars)", snapshot_id, len(content))


def delete_oldest_snapshots(db: LibraryDatabase, version_id: str, keep_count: int) -> int:
    """Apply count-based retention to a version's snapshots.

    Snapshots are ranked newest first; the first ``keep_count`` survive and the
    rest are deleted.

    Args:
        db: LibraryDatabase instance.
        version_id: Version to prune.
        keep_count: Number of newest snapshots to keep. Negative values are a
            no-op; zero deletes every snapshot of the version.

    Returns:
        Number of snapshots deleted.
    """
    if keep_count < 0:
        logger.debug("Retention skipped for version %s: keep_count=%d", version_id, keep_count)
        return 0

    with db.transaction() as cursor:
        cursor.execute(
            f"""
            DELETE FROM story_snapshots WHERE id IN (
                SELECT id FROM story_snapshots WHERE version_id = ?
                ORDER BY {_NEWEST_FIRST}
                LIMIT -1 OFFSET ?
            )
            """,
            (version_id, keep_count),
        )
        deleted = cursor.rowcount

    if deleted:
        logger.info(
            "Retention removed %d snapshots from version %s (keep=%d)",
            deleted,
            version_id,
            keep_count,
        )
    return deleted


def row_to_snapshot(row: sqlite3.Row) -> StorySnapshot:
    """Convert a database row to a StorySnapshot."""
    return StorySnapshot(**dict(row))
