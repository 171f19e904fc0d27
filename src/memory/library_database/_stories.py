"""Story rows for LibraryDatabase.

Only the fields the versioning engine owns are written here after creation:
the active pointer pair, word count and last-edited timestamp, and sibling order.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.memory.entities import Story
from src.utils.exceptions import NotFoundError, OwnershipMismatchError

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)


def add_story(
    db: LibraryDatabase,
    universe_id: str,
    title: str,
    container_id: str | None = None,
    description: str = "",
    story_type: str = "chapter",
    status: str = "draft",
    target_word_count: int | None = None,
    order: int = 0,
    variation_type: str = "original",
    parent_variation_id: str | None = None,
) -> Story:
    """Insert a bare story row with no active pointers.

    Callers that need a usable story go through ``StoryService.create_story``,
    which adds the initial version and snapshot in the same transaction.

    Args:
        db: LibraryDatabase instance.
        universe_id: Owning universe.
        title: Story title.
        container_id: Containing container, or None for a standalone story.
        description: Story description.
        story_type: Story type (chapter, short-story, scene, ...).
        status: Writing status.
        target_word_count: Optional word goal.
        order: Position among the container's stories.
        variation_type: Variation tag (original, screenplay, ...).
        parent_variation_id: Story this one is a variation of.

    Returns:
        The inserted Story.

    Raises:
        NotFoundError: If the universe, container or parent story does not exist.
        OwnershipMismatchError: If the container or parent story belongs to another
            universe.
    """
    story_id = str(uuid.uuid4())
    now = datetime.now().isoformat()

    with db.transaction() as cursor:
        cursor.execute("SELECT 1 FROM universes WHERE id = ?", (universe_id,))
        if cursor.fetchone() is None:
            raise NotFoundError("universe", universe_id)
        if container_id is not None:
            cursor.execute("SELECT universe_id FROM containers WHERE id = ?", (container_id,))
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError("container", container_id)
            if row["universe_id"] != universe_id:
                raise OwnershipMismatchError(
                    f"Container {container_id} does not belong to universe {universe_id}"
                )

        if parent_variation_id is None:
            # A story that is not a variation starts its own group
            variation_group_id = str(uuid.uuid4())
        else:
            cursor.execute(
                "SELECT universe_id, variation_group_id FROM stories WHERE id = ?",
                (parent_variation_id,),
            )
            parent = cursor.fetchone()
            if parent is None:
                raise NotFoundError("story", parent_variation_id)
            if parent["universe_id"] != universe_id:
                raise OwnershipMismatchError(
                    f"Story {parent_variation_id} does not belong to universe {universe_id}"
                )
            variation_group_id = parent["variation_group_id"]

        cursor.execute(
            """
            INSERT INTO stories (
                id, universe_id, container_id, title, description, story_type, status,
                word_count, target_word_count, "order", variation_group_id, variation_type,
                parent_variation_id, active_version_id, active_snapshot_id,
                last_edited_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, NULL, NULL, ?, ?, ?)
            """,
            (
                story_id,
                universe_id,
                container_id,
                title,
                description,
                story_type,
                status,
                target_word_count,
                order,
                variation_group_id,
                variation_type,
                parent_variation_id,
                now,
                now,
                now,
            ),
        )
        cursor.execute("SELECT * FROM stories WHERE id = ?", (story_id,))
        story = row_to_story(cursor.fetchone())

    logger.debug("Inserted story row: %s id=%s container=%s", title, story_id, container_id)
    return story


def get_story(db: LibraryDatabase, story_id: str) -> Story | None:
    """Get a story by ID, or None if it does not exist."""
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM stories WHERE id = ?", (story_id,))
        row = cursor.fetchone()
    return row_to_story(row) if row else None


def list_stories(db: LibraryDatabase, container_id: str) -> list[Story]:
    """List the stories of a container by order, then creation time."""
    with db.read_cursor() as cursor:
        cursor.execute(
            """
            SELECT * FROM stories WHERE container_id = ?
            ORDER BY "order" ASC, created_at ASC, rowid ASC
            """,
            (container_id,),
        )
        rows = cursor.fetchall()
    return [row_to_story(row) for row in rows]


def list_universe_stories(db: LibraryDatabase, universe_id: str) -> list[Story]:
    """List every story of a universe, standalone and contained."""
    with db.read_cursor() as cursor:
        cursor.execute(
            "SELECT * FROM stories WHERE universe_id = ? ORDER BY created_at ASC, rowid ASC",
            (universe_id,),
        )
        rows = cursor.fetchall()
    return [row_to_story(row) for row in rows]


def list_standalone_stories(db: LibraryDatabase, universe_id: str) -> list[Story]:
    """List the stories of a universe that sit outside any container."""
    with db.read_cursor() as cursor:
        cursor.execute(
            """
            SELECT * FROM stories WHERE universe_id = ? AND container_id IS NULL
            ORDER BY "order" ASC, created_at ASC, rowid ASC
            """,
            (universe_id,),
        )
        rows = cursor.fetchall()
    return [row_to_story(row) for row in rows]


def list_story_variations(db: LibraryDatabase, variation_group_id: str) -> list[Story]:
    """List every story of a variation group, the original first."""
    with db.read_cursor() as cursor:
        cursor.execute(
            """
            SELECT * FROM stories WHERE variation_group_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (variation_group_id,),
        )
        rows = cursor.fetchall()
    return [row_to_story(row) for row in rows]


def count_container_stories(db: LibraryDatabase, container_id: str) -> int:
    with db.read_cursor() as cursor:
        cursor.execute("SELECT COUNT(*) FROM stories WHERE container_id = ?", (container_id,))
        return cursor.fetchone()[0]


def delete_story(db: LibraryDatabase, story_id: str) -> bool:
    """Delete a story; its versions and snapshots go by cascade.

    Returns:
        True if a story was deleted.
    """
    with db.transaction() as cursor:
        cursor.execute("DELETE FROM stories WHERE id = ?", (story_id,))
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted story %s", story_id)
    return deleted


def set_active_pointers(
    db: LibraryDatabase, story_id: str, version_id: str | None, snapshot_id: str | None
) -> None:
    """Point a story at a version and one of its snapshots.

    Raises:
        NotFoundError: If the story does not exist.
    """
    with db.transaction() as cursor:
        cursor.execute(
            """
            UPDATE stories SET active_version_id = ?, active_snapshot_id = ?, updated_at = ?
            WHERE id = ?
            """,
            (version_id, snapshot_id, datetime.now().isoformat(), story_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("story", story_id)
    logger.debug(
        "Story %s pointers -> version=%s snapshot=%s", story_id, version_id, snapshot_id
    )


def set_active_snapshot(db: LibraryDatabase, story_id: str, snapshot_id: str | None) -> None:
    """Repoint only the active snapshot of a story.

    Raises:
        NotFoundError: If the story does not exist.
    """
    with db.transaction() as cursor:
        cursor.execute(
            "UPDATE stories SET active_snapshot_id = ?, updated_at = ? WHERE id = ?",
            (snapshot_id, datetime.now().isoformat(), story_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("story", story_id)
    logger.debug("Story %s snapshot pointer -> %s", story_id, snapshot_id)


def record_story_edit(db: LibraryDatabase, story_id: str, word_count: int) -> None:
    """Store a fresh word count and stamp ``last_edited_at``.

    Raises:
        NotFoundError: If the story does not exist.
    """
    now = datetime.now().isoformat()
    with db.transaction() as cursor:
        cursor.execute(
            """
            UPDATE stories SET word_count = ?, last_edited_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (word_count, now, now, story_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("story", story_id)


def reorder_stories(db: LibraryDatabase, container_id: str, ordered_ids: list[str]) -> None:
    """Assign story order within a container by list position, all or nothing.

    Raises:
        OwnershipMismatchError: If any story is not in ``container_id``.
    """
    with db.transaction() as cursor:
        for story_id in ordered_ids:
            cursor.execute("SELECT container_id FROM stories WHERE id = ?", (story_id,))
            row = cursor.fetchone()
            if row is None or row["container_id"] != container_id:
                logger.warning(
                    "Refused reorder: story %s is not in container %s", story_id, container_id
                )
                raise OwnershipMismatchError(
                    f"Story {story_id} does not belong to container {container_id}"
                )
        for index, story_id in enumerate(ordered_ids):
            cursor.execute('UPDATE stories SET "order" = ? WHERE id = ?', (index, story_id))
    logger.info("Reordered %d stories in container %s", len(ordered_ids), container_id)


def row_to_story(row: sqlite3.Row) -> Story:
    """Convert a database row to a Story."""
    return Story(**dict(row))
