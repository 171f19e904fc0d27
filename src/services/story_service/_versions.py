"""Version creation, switching, renaming and deletion for StoryService."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.memory.entities import Story, StorySnapshot, StoryVersion
from src.utils.exceptions import (
    LastVersionError,
    NoSnapshotsForVersionError,
    NotFoundError,
    ValidationError,
    VersionNotOwnedError,
)
from src.utils.validation import validate_title

from ._lifecycle import count_words, require_story

if TYPE_CHECKING:
    from . import StoryService

logger = logging.getLogger(__name__)


def _require_owned_version(svc: StoryService, story_id: str, version_id: str) -> StoryVersion:
    version = svc.db.get_version(version_id)
    if version is None:
        raise NotFoundError("version", version_id)
    if version.story_id != story_id:
        logger.warning(
            "Version %s belongs to story %s, not %s", version_id, version.story_id, story_id
        )
        raise VersionNotOwnedError(f"Version {version_id} does not belong to story {story_id}")
    return version


def create_version(
    svc: StoryService, story_id: str, name: str, content: str = ""
) -> StoryVersion:
    """Create a version with an initial snapshot and make it active.

    Version, snapshot and both pointers are written in one transaction, so a
    version is never visible without a snapshot.

    Raises:
        ValidationError: If the name is invalid.
        NotFoundError: If the story does not exist.
    """
    name = validate_title(name, "name", svc.settings.title_max_length)
    if content is None:
        raise ValidationError("Parameter 'content' cannot be None")

    with svc.db.transaction():
        require_story(svc, story_id)
        version = svc.db.create_version(story_id, name)
        snapshot = svc.db.create_snapshot(version.id, content)
        svc.db.set_active_pointers(story_id, version.id, snapshot.id)
        svc.db.record_story_edit(story_id, count_words(content))

    logger.info("Created version '%s' id=%s for story %s", name, version.id, story_id)
    return version


def rename_version(svc: StoryService, version_id: str, name: str) -> StoryVersion:
    """Rename a version.

    Raises:
        ValidationError: If the name is invalid.
        NotFoundError: If the version does not exist.
    """
    name = validate_title(name, "name", svc.settings.title_max_length)
    with svc.db.transaction():
        svc.db.rename_version(version_id, name)
        version = svc.db.get_version(version_id)
    assert version is not None  # nosec - renamed in this transaction
    return version


def list_versions(svc: StoryService, story_id: str) -> list[StoryVersion]:
    return svc.db.list_versions(story_id)


def list_snapshots(svc: StoryService, version_id: str) -> list[StorySnapshot]:
    return svc.db.list_snapshots(version_id)


def switch_version(svc: StoryService, story_id: str, version_id: str) -> Story:
    """Make another version of the story active, viewing its latest snapshot.

    Returns:
        The updated story.

    Raises:
        NotFoundError: If the story or version does not exist.
        VersionNotOwnedError: If the version belongs to another story.
        NoSnapshotsForVersionError: If the version has no snapshots.
    """
    with svc.db.transaction():
        require_story(svc, story_id)
        _require_owned_version(svc, story_id, version_id)
        latest = svc.db.get_latest_snapshot(version_id)
        if latest is None:
            raise NoSnapshotsForVersionError(f"Version {version_id} has no snapshots")
        svc.db.set_active_pointers(story_id, version_id, latest.id)
        updated = require_story(svc, story_id)

    logger.info("Story %s switched to version %s (snapshot %s)", story_id, version_id, latest.id)
    return updated


def delete_version(svc: StoryService, story_id: str, version_id: str) -> None:
    """Delete a version of a story.

    If it is the active version, the story is first repointed to the
    last-created remaining version and that version's latest snapshot (or no
    snapshot if it has none). Repointing and deletion share one transaction.

    Raises:
        NotFoundError: If the story or version does not exist.
        VersionNotOwnedError: If the version belongs to another story.
        LastVersionError: If it is the story's only version.
    """
    with svc.db.transaction():
        story = require_story(svc, story_id)
        _require_owned_version(svc, story_id, version_id)

        versions = svc.db.list_versions(story_id)
        if len(versions) <= 1:
            logger.warning(
                "Refused to delete the only version %s of story %s", version_id, story_id
            )
            raise LastVersionError(f"Cannot delete the only version of story {story_id}")

        if story.active_version_id == version_id:
            replacement = [v for v in versions if v.id != version_id][-1]
            latest = svc.db.get_latest_snapshot(replacement.id)
            if latest is None:
                logger.warning(
                    "Replacement version %s has no snapshots; clearing snapshot pointer",
                    replacement.id,
                )
            svc.db.set_active_pointers(
                story_id, replacement.id, latest.id if latest is not None else None
            )
            logger.info(
                "Story %s failed over from version %s to %s", story_id, version_id, replacement.id
            )

        svc.db.delete_version(version_id)
