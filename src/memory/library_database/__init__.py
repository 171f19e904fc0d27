"""SQLite-backed library database for universes, containers, stories and their history."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Literal

from networkx import DiGraph

from src.memory.entities import (
    Container,
    ContainerChildren,
    IntegrityIssue,
    Story,
    StorySnapshot,
    StoryVersion,
    Universe,
)
from src.utils.exceptions import DatabaseClosedError, StorageError

from . import _containers, _graph, _schema, _snapshots, _stories, _universes, _versions

logger = logging.getLogger(__name__)

# Containers may nest at depths 0..MAX_NESTING_DEPTH-1 (root = 0)
MAX_NESTING_DEPTH = 10

# Container kinds always accepted (Settings.custom_container_kinds extends this)
BUILTIN_CONTAINER_KINDS = frozenset(
    {
        "series",
        "novel",
        "collection",
        "anthology",
        "volume",
        "arc",
        "part",
        "book",
        "season",
        "act",
    }
)

VALID_STORY_TYPES = frozenset(
    {"chapter", "short-story", "scene", "episode", "poem", "outline", "treatment"}
)
VALID_STORY_STATUSES = frozenset({"draft", "in-progress", "completed", "published", "archived"})
VALID_VARIATION_TYPES = frozenset(
    {"original", "screenplay", "alternate-ending", "ai-generated", "custom"}
)

# Allowed fields for container updates (SQL injection prevention)
CONTAINER_UPDATE_FIELDS = frozenset({"title", "description", "container_type", "order"})


class LibraryDatabase:
    """SQLite-backed library database.

    Thread-safe implementation using a single RLock around one connection. The
    connection runs in autocommit mode; every write goes through ``transaction()``,
    which nests so that services can compose several writes into one atomic unit.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Thread safety lock
        self._lock = threading.RLock()

        # Autocommit connection; transactions are opened explicitly with BEGIN IMMEDIATE
        self.conn = sqlite3.connect(
            str(self.db_path), check_same_thread=False, isolation_level=None
        )
        self._closed = False  # Initialize immediately so __del__ can always clean up
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")

        _schema.init_schema(self)
        logger.info("Opened library database: %s", self.db_path)

    def __del__(self) -> None:
        """Safety net for resource cleanup."""
        if hasattr(self, "_closed") and not self._closed:
            try:
                self.close()
            except Exception as e:
                # Log but don't raise during garbage collection
                logger.debug("Error during LibraryDatabase cleanup in __del__: %s", e)

    def _ensure_open(self) -> None:
        """Check that the database connection is still open.

        Raises:
            DatabaseClosedError: If the database has been closed.
        """
        if self._closed:
            raise DatabaseClosedError(f"Database connection is closed: {self.db_path}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run a block of writes as one atomic transaction.

        A transaction opened while another is already active on this connection
        joins the outer one: only the outermost block commits or rolls back.

        Yields:
            Cursor bound to the open transaction.

        Raises:
            DatabaseClosedError: If the database has been closed.
            StorageError: If SQLite fails; the transaction is rolled back.
        """
        with self._lock:
            self._ensure_open()
            cursor = self.conn.cursor()

            if self.conn.in_transaction:
                try:
                    yield cursor
                except sqlite3.Error as e:
                    raise StorageError(str(e)) from e
                return

            try:
                cursor.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

            try:
                yield cursor
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error("Transaction rolled back after storage failure: %s", e)
                raise StorageError(str(e)) from e
            except BaseException:
                self.conn.rollback()
                logger.debug("Transaction rolled back")
                raise

            try:
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error("Commit failed, transaction rolled back: %s", e)
                raise StorageError(str(e)) from e

    @contextmanager
    def read_cursor(self) -> Iterator[sqlite3.Cursor]:
        """Acquire the lock and yield a cursor for read-only queries.

        Yields:
            Cursor on the shared connection.

        Raises:
            DatabaseClosedError: If the database has been closed.
            StorageError: If SQLite fails.
        """
        with self._lock:
            self._ensure_open()
            try:
                yield self.conn.cursor()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn and not self._closed:
                self.conn.close()
                self._closed = True
                logger.debug("Database connection closed: %s", self.db_path)

    def __enter__(self) -> LibraryDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Literal[False]:
        """Context manager exit - ensures connection is closed."""
        self.close()
        return False  # Don't suppress exceptions

    # =========================================================================
    # Universes (delegated to _universes)
    # =========================================================================

    def add_universe(self, name: str, description: str = "") -> Universe:
        return _universes.add_universe(self, name, description)

    def get_universe(self, universe_id: str) -> Universe | None:
        return _universes.get_universe(self, universe_id)

    def list_universes(self) -> list[Universe]:
        return _universes.list_universes(self)

    def delete_universe(self, universe_id: str) -> bool:
        return _universes.delete_universe(self, universe_id)

    # =========================================================================
    # Container hierarchy (delegated to _containers)
    # =========================================================================

    def create_container(
        self,
        universe_id: str,
        parent_id: str | None,
        container_type: str,
        title: str,
        description: str | None = None,
        order: int = 0,
    ) -> Container:
        return _containers.create_container(
            self, universe_id, parent_id, container_type, title, description, order
        )

    def get_container(self, container_id: str) -> Container | None:
        return _containers.get_container(self, container_id)

    def list_containers(self, universe_id: str) -> list[Container]:
        return _containers.list_containers(self, universe_id)

    def list_child_containers(self, parent_id: str) -> list[Container]:
        return _containers.list_child_containers(self, parent_id)

    def get_container_children(self, container_id: str) -> ContainerChildren:
        return _containers.get_container_children(self, container_id)

    def get_container_depth(self, container_id: str) -> int:
        return _containers.get_container_depth(self, container_id)

    def get_subtree(self, root_id: str, max_depth: int | None = None) -> list[Container]:
        return _containers.get_subtree(self, root_id, max_depth)

    def reorder_children(self, parent_id: str, ordered_ids: list[str]) -> None:
        _containers.reorder_children(self, parent_id, ordered_ids)

    def update_container(
        self,
        container_id: str,
        title: str | None = None,
        description: str | None = None,
        container_type: str | None = None,
        order: int | None = None,
    ) -> Container:
        return _containers.update_container(
            self, container_id, title, description, container_type, order
        )

    def delete_container(self, container_id: str) -> list[str]:
        return _containers.delete_container(self, container_id)

    # =========================================================================
    # Story rows (delegated to _stories)
    # =========================================================================

    def add_story(
        self,
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
        return _stories.add_story(
            self,
            universe_id,
            title,
            container_id=container_id,
            description=description,
            story_type=story_type,
            status=status,
            target_word_count=target_word_count,
            order=order,
            variation_type=variation_type,
            parent_variation_id=parent_variation_id,
        )

    def get_story(self, story_id: str) -> Story | None:
        return _stories.get_story(self, story_id)

    def list_stories(self, container_id: str) -> list[Story]:
        return _stories.list_stories(self, container_id)

    def list_universe_stories(self, universe_id: str) -> list[Story]:
        return _stories.list_universe_stories(self, universe_id)

    def list_standalone_stories(self, universe_id: str) -> list[Story]:
        return _stories.list_standalone_stories(self, universe_id)

    def list_story_variations(self, variation_group_id: str) -> list[Story]:
        return _stories.list_story_variations(self, variation_group_id)

    def count_container_stories(self, container_id: str) -> int:
        return _stories.count_container_stories(self, container_id)

    def delete_story(self, story_id: str) -> bool:
        return _stories.delete_story(self, story_id)

    def set_active_pointers(
        self, story_id: str, version_id: str | None, snapshot_id: str | None
    ) -> None:
        _stories.set_active_pointers(self, story_id, version_id, snapshot_id)

    def set_active_snapshot(self, story_id: str, snapshot_id: str | None) -> None:
        _stories.set_active_snapshot(self, story_id, snapshot_id)

    def record_story_edit(self, story_id: str, word_count: int) -> None:
        _stories.record_story_edit(self, story_id, word_count)

    def reorder_stories(self, container_id: str, ordered_ids: list[str]) -> None:
        _stories.reorder_stories(self, container_id, ordered_ids)

    # =========================================================================
    # Versions (delegated to _versions)
    # =========================================================================

    def create_version(self, story_id: str, name: str) -> StoryVersion:
        return _versions.create_version(self, story_id, name)

    def get_version(self, version_id: str) -> StoryVersion | None:
        return _versions.get_version(self, version_id)

    def list_versions(self, story_id: str) -> list[StoryVersion]:
        return _versions.list_versions(self, story_id)

    def count_versions(self, story_id: str) -> int:
        return _versions.count_versions(self, story_id)

    def rename_version(self, version_id: str, new_name: str) -> None:
        _versions.rename_version(self, version_id, new_name)

    def delete_version(self, version_id: str) -> None:
        _versions.delete_version(self, version_id)

    # =========================================================================
    # Snapshots (delegated to _snapshots)
    # =========================================================================

    def create_snapshot(self, version_id: str, content: str = "") -> StorySnapshot:
        return _snapshots.create_snapshot(self, version_id, content)

    def get_snapshot(self, snapshot_id: str) -> StorySnapshot | None:
        return _snapshots.get_snapshot(self, snapshot_id)

    def get_latest_snapshot(self, version_id: str) -> StorySnapshot | None:
        return _snapshots.get_latest_snapshot(self, version_id)

    def list_snapshots(self, version_id: str) -> list[StorySnapshot]:
        return _snapshots.list_snapshots(self, version_id)

    def update_snapshot_content(self, snapshot_id: str, content: str) -> None:
        _snapshots.update_snapshot_content(self, snapshot_id, content)

    def delete_oldest_snapshots(self, version_id: str, keep_count: int) -> int:
        return _snapshots.delete_oldest_snapshots(self, version_id, keep_count)

    # =========================================================================
    # Graph and integrity (delegated to _graph)
    # =========================================================================

    def build_hierarchy_graph(self, universe_id: str) -> DiGraph[Any]:
        return _graph.build_hierarchy_graph(self, universe_id)

    def check_integrity(self) -> list[IntegrityIssue]:
        return _graph.check_integrity(self)
