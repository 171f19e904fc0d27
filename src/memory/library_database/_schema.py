"""Schema creation for LibraryDatabase."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)

# Schema version stamped on new databases
SCHEMA_VERSION = 1


def init_schema(db: LibraryDatabase) -> None:
    """Create all tables and indexes if they do not exist yet.

    Ownership cascades run universe -> containers -> child containers -> stories ->
    versions -> snapshots. The story's active version/snapshot columns are plain
    references without a foreign key; the service layer keeps them consistent.

    Args:
        db: LibraryDatabase instance.
    """
    with db.transaction() as cursor:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
            """
        )
        cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        row = cursor.fetchone()
        current_version = row[0] if row else 0

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS universes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS containers (
                id TEXT PRIMARY KEY,
                universe_id TEXT NOT NULL,
                parent_container_id TEXT,
                container_type TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                "order" INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (universe_id) REFERENCES universes(id) ON DELETE CASCADE,
                FOREIGN KEY (parent_container_id) REFERENCES containers(id) ON DELETE CASCADE
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS stories (
                id TEXT PRIMARY KEY,
                universe_id TEXT NOT NULL,
                container_id TEXT,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                story_type TEXT NOT NULL DEFAULT 'chapter',
                status TEXT NOT NULL DEFAULT 'draft',
                word_count INTEGER NOT NULL DEFAULT 0,
                target_word_count INTEGER,
                "order" INTEGER NOT NULL DEFAULT 0,
                variation_group_id TEXT NOT NULL,
                variation_type TEXT NOT NULL DEFAULT 'original',
                parent_variation_id TEXT,
                active_version_id TEXT,
                active_snapshot_id TEXT,
                last_edited_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (universe_id) REFERENCES universes(id) ON DELETE CASCADE,
                FOREIGN KEY (container_id) REFERENCES containers(id) ON DELETE CASCADE
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS story_versions (
                id TEXT PRIMARY KEY,
                story_id TEXT NOT NULL,
                name TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (story_id) REFERENCES stories(id) ON DELETE CASCADE
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS story_snapshots (
                id TEXT PRIMARY KEY,
                version_id TEXT NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                FOREIGN KEY (version_id) REFERENCES story_versions(id) ON DELETE CASCADE
            )
            """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_containers_universe ON containers(universe_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_containers_parent ON containers(parent_container_id)"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_stories_universe ON stories(universe_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_stories_container ON stories(container_id)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_stories_variation_group ON stories(variation_group_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_story_versions_story ON story_versions(story_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_story_snapshots_version "
            "ON story_snapshots(version_id, created_at)"
        )

        if current_version < SCHEMA_VERSION:
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            logger.info("Stamped library schema version %d", SCHEMA_VERSION)

    logger.debug("Database schema initialized: %s", db.db_path)
