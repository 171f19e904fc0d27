"""Snapshot save-points, autosave, switching and retention for StoryService."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.memory.entities import Story, StorySnapshot
from src.utils.exceptions import (
    NotFoundError,
    SnapshotNotInActiveVersionError,
    ValidationError,
)
from src.utils.validation import validate_non_negative

from ._lifecycle import count_words, require_story

if TYPE_CHECKING:
    from . import StoryService

logger = logging.getLogger(__name__)


def _active_version_id(story: Story) -> str:
    if story.active_version_id is None:
        raise NotFoundError("version", f"active version of story {story.id}")
    return story.active_version_id


def get_active_snapshot(svc: StoryService, story_id: str) -> StorySnapshot:
    """Resolve the snapshot a story is currently viewing.

    Raises:
        NotFoundError: If the story or its active snapshot does not exist.
    """
    with svc.db.read_cursor():
        story = require_story(svc, story_id)
        if story.active_snapshot_id is None:
            raise NotFoundError("snapshot", f"active snapshot of story {story_id}")
        snapshot = svc.db.get_snapshot(story.active_snapshot_id)
    if snapshot is None:
        raise NotFoundError("snapshot", story.active_snapshot_id)
    return snapshot


def create_snapshot(svc: StoryService, story_id: str, content: str) -> StorySnapshot:
    """Save a new snapshot on the story's active version.

    In one transaction: insert the snapshot, point the story at it, store the
    word count and last-edited time, then prune the version down to
    ``settings.snapshot_retention`` snapshots. Pruning runs after the pointer
    moves, so the new snapshot is never evicted.

    Returns:
        The new snapshot.

    Raises:
        NotFoundError: If the story or its active version does not exist.
    """
    if content is None:
        raise ValidationError("Parameter 'content' cannot be None")

    keep = svc.settings.snapshot_retention
    with svc.db.transaction():
        story = require_story(svc, story_id)
        version_id = _active_version_id(story)
        snapshot = svc.db.create_snapshot(version_id, content)
        svc.db.set_active_snapshot(story_id, snapshot.id)
        svc.db.record_story_edit(story_id, count_words(content))
        pruned = svc.db.delete_oldest_snapshots(version_id, keep)

    logger.info(
        "Saved snapshot %s for story %s (pruned %d, keep=%d)", snapshot.id, story_id, pruned, keep
    )
    return snapshot


def update_snapshot_content(svc: StoryService, story_id: str, content: str) -> StorySnapshot:
    """Autosave: replace the active snapshot's content in place.

    The word count and last-edited time are refreshed; no new snapshot is created.

    Raises:
        NotFoundError: If the story has no active snapshot.
    """
    if content is None:
        raise ValidationError("Parameter 'content' cannot be None")

    with svc.db.transaction():
        story = require_story(svc, story_id)
        if story.active_snapshot_id is None:
            raise NotFoundError("snapshot", f"active snapshot of story {story_id}")
        svc.db.update_snapshot_content(story.active_snapshot_id, content)
        svc.db.record_story_edit(story_id, count_words(content))
        snapshot = svc.db.get_snapshot(story.active_snapshot_id)

    assert snapshot is not None  # nosec - updated in this transaction
    return snapshot


def switch_snapshot(svc: StoryService, story_id: str, snapshot_id: str) -> Story:
    """Point a story at another snapshot of its active version.

    Returns:
        The updated story.

    Raises:
        NotFoundError: If the story or snapshot does not exist.
        SnapshotNotInActiveVersionError: If the snapshot belongs to another version.
    """
    with svc.db.transaction():
        snapshot = svc.db.get_snapshot(snapshot_id)
        if snapshot is None:
            raise NotFoundError("snapshot", snapshot_id)
        story = require_story(svc, story_id)
        version_id = _active_version_id(story)
        if snapshot.version_id != version_id:
            logger.warning(
                "Refused snapshot switch for story %s: %s is in version %s, active is %s",
                story_id,
                snapshot_id,
                snapshot.version_id,
                version_id,
            )
            raise SnapshotNotInActiveVersionError(
                f"Snapshot {snapshot_id} does not belong to the active version of story "
                f"{story_id}"
            )
        svc.db.set_active_snapshot(story_id, snapshot_id)
        updated = require_story(svc, story_id)

    logger.info("Story %s switched to snapshot %s", story_id, snapshot_id)
    return updated


def cleanup_old_snapshots(svc: StoryService, version_id: str, keep_count: int) -> int:
    """Manually prune a version to its ``keep_count`` newest snapshots.

    Stories whose active snapshot was pruned are repointed to the version's
    latest surviving snapshot, or to none if nothing survived.

    Returns:
        Number of snapshots deleted.

    Raises:
        ValidationError: If keep_count is negative.
        NotFoundError: If the version does not exist.
    """
    validate_non_negative(keep_count, "keep_count")

    with svc.db.transaction() as cursor:
        if svc.db.get_version(version_id) is None:
            raise NotFoundError("version", version_id)
        deleted = svc.db.delete_oldest_snapshots(version_id, keep_count)
        if deleted:
            cursor.execute(
                """
                SELECT s.id FROM stories s
                WHERE s.active_version_id = ?
                AND s.active_snapshot_id IS NOT NULL
                AND NOT EXISTS (SELECT 1 FROM story_snapshots p WHERE p.id = s.active_snapshot_id)
                """,
                (version_id,),
            )
            orphaned = [row["id"] for row in cursor.fetchall()]
            if orphaned:
                latest = svc.db.get_latest_snapshot(version_id)
                for story_id in orphaned:
                    svc.db.set_active_snapshot(story_id, latest.id if latest else None)
                    logger.info(
                        "Repointed story %s to snapshot %s after cleanup",
                        story_id,
                        latest.id if latest else None,
                    )

    return deleted
