"""Story service - story lifecycle and version/snapshot history.

Every multi-step operation runs inside one ``LibraryDatabase.transaction()``, so
a story's active version/snapshot pair is never observed half-updated.

Sub-modules:
    _lifecycle  - Story creation, lookup, ordering, deletion
    _snapshots  - Save-points, autosave, snapshot switching, retention
    _versions   - Version creation, switching, renaming, deletion with failover
"""

import logging

from src.memory.entities import Story, StorySnapshot, StoryVersion
from src.memory.library_database import LibraryDatabase
from src.services.story_service import _lifecycle, _snapshots, _versions
from src.settings import Settings

logger = logging.getLogger(__name__)

__all__ = ["StoryService"]


class StoryService:
    """Story lifecycle orchestrator.

    Composes the story, version and snapshot operations of the library
    database into atomic units that keep each story's active pointers valid.
    """

    def __init__(self, settings: Settings, db: LibraryDatabase):
        """Initialize StoryService.

        Args:
            settings: Application settings (snapshot retention, title limits).
            db: Library database shared with the other services.
        """
        logger.debug("Initializing StoryService")
        self.settings = settings
        self.db = db

    # ========== STORIES ==========

    def create_story(
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
        """Create a story with its "Original" version and an empty snapshot."""
        return _lifecycle.create_story(
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

    def get_story(self, story_id: str) -> Story:
        """Get a story, raising NotFoundError if it does not exist."""
        return _lifecycle.require_story(self, story_id)

    def list_stories(self, container_id: str) -> list[Story]:
        return _lifecycle.list_stories(self, container_id)

    def list_standalone_stories(self, universe_id: str) -> list[Story]:
        return _lifecycle.list_standalone_stories(self, universe_id)

    def list_story_variations(self, story_id: str) -> list[Story]:
        """List a story and every variation in its group, oldest first."""
        return _lifecycle.list_story_variations(self, story_id)

    def reorder_stories(self, container_id: str, ordered_ids: list[str]) -> None:
        _lifecycle.reorder_stories(self, container_id, ordered_ids)

    def delete_story(self, story_id: str) -> None:
        _lifecycle.delete_story(self, story_id)

    # ========== SNAPSHOTS ==========

    def get_active_snapshot(self, story_id: str) -> StorySnapshot:
        return _snapshots.get_active_snapshot(self, story_id)

    def create_snapshot(self, story_id: str, content: str) -> StorySnapshot:
        """Save a new snapshot on the active version and apply retention."""
        return _snapshots.create_snapshot(self, story_id, content)

    def update_snapshot_content(self, story_id: str, content: str) -> StorySnapshot:
        """Autosave the active snapshot in place."""
        return _snapshots.update_snapshot_content(self, story_id, content)

    def switch_snapshot(self, story_id: str, snapshot_id: str) -> Story:
        """Point the story at another snapshot of its active version."""
        return _snapshots.switch_snapshot(self, story_id, snapshot_id)

    def cleanup_old_snapshots(self, version_id: str, keep_count: int) -> int:
        """Keep only the ``keep_count`` newest snapshots of a version."""
        return _snapshots.cleanup_old_snapshots(self, version_id, keep_count)

    def list_snapshots(self, version_id: str) -> list[StorySnapshot]:
        return _versions.list_snapshots(self, version_id)

    # ========== VERSIONS ==========

    def create_version(self, story_id: str, name: str, content: str = "") -> StoryVersion:
        """Create a version with an initial snapshot and make it active."""
        return _versions.create_version(self, story_id, name, content)

    def rename_version(self, version_id: str, name: str) -> StoryVersion:
        return _versions.rename_version(self, version_id, name)

    def list_versions(self, story_id: str) -> list[StoryVersion]:
        return _versions.list_versions(self, story_id)

    def switch_version(self, story_id: str, version_id: str) -> Story:
        """Make another version active, viewing its latest snapshot."""
        return _versions.switch_version(self, story_id, version_id)

    def delete_version(self, story_id: str, version_id: str) -> None:
        """Delete a version, failing over the active pointers if needed."""
        _versions.delete_version(self, story_id, version_id)
