"""Container hierarchy operations for LibraryDatabase.

Containers form a tree per universe. Two invariants are enforced at write time
because both depend on ancestor/descendant state that a schema constraint cannot see:

- depth (root = 0) never reaches ``MAX_NESTING_DEPTH``;
- a container that owns stories never acquires a child container.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.memory.entities import Container, ContainerChildren
from src.utils.exceptions import (
    LeafProtectionError,
    MaxDepthExceededError,
    NotFoundError,
    OwnershipMismatchError,
)

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)

_CONTAINER_ORDER = '"order" ASC, created_at ASC, rowid ASC'

# Ancestor walk from a container up to its root; the bound stops runaway recursion
# on a store that contains a parent cycle.
_ANCESTOR_DEPTH_SQL = """
    WITH RECURSIVE ancestors(id, parent_container_id, depth) AS (
        SELECT id, parent_container_id, 0 FROM containers WHERE id = ?
        UNION ALL
        SELECT c.id, c.parent_container_id, a.depth + 1
        FROM containers c
        JOIN ancestors a ON c.id = a.parent_container_id
        WHERE a.depth < ?
    )
    SELECT MAX(depth) FROM ancestors
"""

_SUBTREE_SQL = """
    WITH RECURSIVE subtree(id, depth) AS (
        SELECT id, 0 FROM containers WHERE id = ?
        UNION ALL
        SELECT c.id, s.depth + 1
        FROM containers c
        JOIN subtree s ON c.parent_container_id = s.id
        WHERE s.depth < ?
    )
    SELECT c.*, s.depth AS depth
    FROM subtree s
    JOIN containers c ON c.id = s.id
    ORDER BY s.depth ASC, c."order" ASC, c.created_at ASC, c.rowid ASC
"""


def create_container(
    db: LibraryDatabase,
    universe_id: str,
    parent_id: str | None,
    container_type: str,
    title: str,
    description: str | None = None,
    order: int = 0,
) -> Container:
    """Create a container, validating the hierarchy invariants in the same transaction.

    Args:
        db: LibraryDatabase instance.
        universe_id: Owning universe.
        parent_id: Parent container, or None for a root container.
        container_type: Kind tag (series, novel, collection, ...).
        title: Container title.
        description: Optional description.
        order: Position among siblings.

    Returns:
        The created Container.

    Raises:
        NotFoundError: If the universe or the parent does not exist.
        OwnershipMismatchError: If the parent belongs to another universe.
        LeafProtectionError: If the parent already owns stories.
        MaxDepthExceededError: If the new container would sit at depth >= MAX_NESTING_DEPTH.
    """
    from . import MAX_NESTING_DEPTH

    logger.debug(
        "create_container called: universe=%s, parent=%s, type=%s, title=%s",
        universe_id,
        parent_id,
        container_type,
        title,
    )
    container_id = str(uuid.uuid4())
    now = datetime.now().isoformat()

    with db.transaction() as cursor:
        cursor.execute("SELECT 1 FROM universes WHERE id = ?", (universe_id,))
        if cursor.fetchone() is None:
            raise NotFoundError("universe", universe_id)

        if parent_id is not None:
            cursor.execute("SELECT universe_id FROM containers WHERE id = ?", (parent_id,))
            parent_row = cursor.fetchone()
            if parent_row is None:
                raise NotFoundError("container", parent_id)
            if parent_row["universe_id"] != universe_id:
                logger.warning(
                    "Refused child container: parent %s belongs to universe %s, not %s",
                    parent_id,
                    parent_row["universe_id"],
                    universe_id,
                )
                raise OwnershipMismatchError(
                    f"Parent container {parent_id} does not belong to universe {universe_id}"
                )

            cursor.execute("SELECT COUNT(*) FROM stories WHERE container_id = ?", (parent_id,))
            story_count = cursor.fetchone()[0]
            if story_count > 0:
                logger.warning(
                    "Refused child container: parent %s already holds %d stories",
                    parent_id,
                    story_count,
                )
                raise LeafProtectionError(
                    f"Container {parent_id} holds {story_count} stories and cannot "
                    "have child containers"
                )

            depth = _ancestor_depth(cursor, parent_id, MAX_NESTING_DEPTH) + 1
            if depth >= MAX_NESTING_DEPTH:
                logger.warning(
                    "Refused child container under %s: depth %d reaches limit %d",
                    parent_id,
                    depth,
                    MAX_NESTING_DEPTH,
                )
                raise MaxDepthExceededError(
                    f"Maximum nesting depth of {MAX_NESTING_DEPTH} exceeded",
                    depth=depth,
                    max_depth=MAX_NESTING_DEPTH,
                )

        cursor.execute(
            """
            INSERT INTO containers (
                id, universe_id, parent_container_id, container_type, title,
                description, "order", created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                container_id,
                universe_id,
                parent_id,
                container_type,
                title,
                description,
                order,
                now,
                now,
            ),
        )
        cursor.execute("SELECT * FROM containers WHERE id = ?", (container_id,))
        container = row_to_container(cursor.fetchone())

    logger.info(
        "Created container: %s (%s) id=%s parent=%s", title, container_type, container_id, parent_id
    )
    return container


def get_container(db: LibraryDatabase, container_id: str) -> Container | None:
    """Get a container by ID.

    Args:
        db: LibraryDatabase instance.
        container_id: Container ID.

    Returns:
        Container or None if not found.
    """
    with db.read_cursor() as cursor:
        cursor.execute("SELECT * FROM containers WHERE id = ?", (container_id,))
        row = cursor.fetchone()
    return row_to_container(row) if row else None


def list_containers(db: LibraryDatabase, universe_id: str) -> list[Container]:
    """List every container of a universe, ordered by sibling order then creation time."""
    with db.read_cursor() as cursor:
        cursor.execute(
            f"SELECT * FROM containers WHERE universe_id = ? ORDER BY {_CONTAINER_ORDER}",
            (universe_id,),
        )
        rows = cursor.fetchall()
    return [row_to_container(row) for row in rows]


def list_child_containers(db: LibraryDatabase, parent_id: str) -> list[Container]:
    """List the direct child containers of a container."""
    with db.read_cursor() as cursor:
        cursor.execute(
            f"SELECT * FROM containers WHERE parent_container_id = ? ORDER BY {_CONTAINER_ORDER}",
            (parent_id,),
        )
        rows = cursor.fetchall()
    return [row_to_container(row) for row in rows]


def get_container_children(db: LibraryDatabase, container_id: str) -> ContainerChildren:
    """Get the direct children of a container: sub-containers and stories.

    Raises:
        NotFoundError: If the container does not exist.
    """
    from . import _stories

    with db.read_cursor():
        if get_container(db, container_id) is None:
            raise NotFoundError("container", container_id)
        return ContainerChildren(
            containers=list_child_containers(db, container_id),
            stories=_stories.list_stories(db, container_id),
        )


def get_container_depth(db: LibraryDatabase, container_id: str) -> int:
    """Compute a container's depth (root = 0) with a recursive ancestor query.

    Raises:
        NotFoundError: If the container does not exist.
    """
    from . import MAX_NESTING_DEPTH

    with db.read_cursor() as cursor:
        cursor.execute("SELECT 1 FROM containers WHERE id = ?", (container_id,))
        if cursor.fetchone() is None:
            raise NotFoundError("container", container_id)
        return _ancestor_depth(cursor, container_id, MAX_NESTING_DEPTH * 2)


def get_subtree(
    db: LibraryDatabase, root_id: str, max_depth: int | None = None
) -> list[Container]:
    """Return a container and all of its descendants in one recursive query.

    Results are breadth-first: by depth relative to the root, then sibling order,
    then creation time. Each returned container carries its relative ``depth``.

    Args:
        db: LibraryDatabase instance.
        root_id: Container at the top of the subtree.
        max_depth: Deepest relative level to include (0 returns the root only).
            None walks the whole tree.

    Returns:
        Ordered list of containers, root first.

    Raises:
        NotFoundError: If the root container does not exist.
    """
    from . import MAX_NESTING_DEPTH

    bound = MAX_NESTING_DEPTH if max_depth is None else max(max_depth, 0)
    with db.read_cursor() as cursor:
        cursor.execute(_SUBTREE_SQL, (root_id, bound))
        rows = cursor.fetchall()
    if not rows:
        raise NotFoundError("container", root_id)
    logger.debug("Subtree of %s: %d containers (max_depth=%s)", root_id, len(rows), max_depth)
    return [row_to_container(row) for row in rows]


def reorder_children(db: LibraryDatabase, parent_id: str, ordered_ids: list[str]) -> None:
    """Assign sibling order by list position, all or nothing.

    Args:
        db: LibraryDatabase instance.
        parent_id: Parent container whose children are reordered.
        ordered_ids: Child container IDs in their new order.

    Raises:
        OwnershipMismatchError: If any ID is not currently a child of ``parent_id``.
            No order value changes in that case.
    """
    now = datetime.now().isoformat()
    with db.transaction() as cursor:
        for child_id in ordered_ids:
            cursor.execute(
                "SELECT parent_container_id FROM containers WHERE id = ?", (child_id,)
            )
            row = cursor.fetchone()
            if row is None or row["parent_container_id"] != parent_id:
                logger.warning(
                    "Refused reorder: container %s is not a child of %s", child_id, parent_id
                )
                raise OwnershipMismatchError(
                    f"Container {child_id} is not a child of container {parent_id}"
                )

        for index, child_id in enumerate(ordered_ids):
            cursor.execute(
                'UPDATE containers SET "order" = ?, updated_at = ? WHERE id = ?',
                (index, now, child_id),
            )
    logger.info("Reordered %d children of container %s", len(ordered_ids), parent_id)


def update_container(
    db: LibraryDatabase,
    container_id: str,
    title: str | None = None,
    description: str | None = None,
    container_type: str | None = None,
    order: int | None = None,
) -> Container:
    """Sparse update: only the provided fields change; ``updated_at`` is always refreshed.

    Raises:
        NotFoundError: If the container does not exist.
    """
    from . import CONTAINER_UPDATE_FIELDS

    updates: dict[str, Any] = {
        field: value
        for field, value in (
            ("title", title),
            ("description", description),
            ("container_type", container_type),
            ("order", order),
        )
        if value is not None
    }
    for field in updates:
        if field not in CONTAINER_UPDATE_FIELDS:
            raise ValueError(f"Invalid update field: {field}")

    assignments = [f'"{field}" = ?' for field in updates]
    assignments.append("updated_at = ?")
    values = [*updates.values(), datetime.now().isoformat(), container_id]

    with db.transaction() as cursor:
        cursor.execute(
            f"UPDATE containers SET {', '.join(assignments)} WHERE id = ?",
            values,
        )
        if cursor.rowcount == 0:
            raise NotFoundError("container", container_id)
        cursor.execute("SELECT * FROM containers WHERE id = ?", (container_id,))
        container = row_to_container(cursor.fetchone())

    logger.info("Updated container %s: %s", container_id, sorted(updates))
    return container


def delete_container(db: LibraryDatabase, container_id: str) -> list[str]:
    """Delete a container and its whole subtree.

    The subtree is collected with the recursive query and removed deepest level
    first. Stories inside any removed container go by storage cascade.

    Returns:
        Every removed container ID, children before parents, the root last.

    Raises:
        NotFoundError: If the container does not exist.
    """
    from . import MAX_NESTING_DEPTH

    with db.transaction() as cursor:
        cursor.execute(_SUBTREE_SQL, (container_id, MAX_NESTING_DEPTH))
        rows = cursor.fetchall()
        if not rows:
            raise NotFoundError("container", container_id)

        # Deepest first; within a level keep reverse sibling order
        deleted_ids = [row["id"] for row in reversed(rows)]
        for removed_id in deleted_ids:
            cursor.execute("DELETE FROM containers WHERE id = ?", (removed_id,))

    logger.info("Deleted container %s with %d descendants", container_id, len(deleted_ids) - 1)
    return deleted_ids


def _ancestor_depth(cursor: sqlite3.Cursor, container_id: str, limit: int) -> int:
    """Number of ancestors above a container (its depth, root = 0)."""
    cursor.execute(_ANCESTOR_DEPTH_SQL, (container_id, limit))
    row = cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


def row_to_container(row: sqlite3.Row) -> Container:
    """Convert a database row to a Container."""
    return Container(**dict(row))
