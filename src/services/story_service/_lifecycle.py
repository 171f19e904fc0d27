"""Story creation, lookup, ordering and deletion for StoryService."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.memory.entities import Story
from src.memory.library_database import (
    VALID_STORY_STATUSES,
    VALID_STORY_TYPES,
    VALID_VARIATION_TYPES,
)
from src.utils.exceptions import NotFoundError
from src.utils.validation import (
    validate_id_list,
    validate_non_negative,
    validate_not_empty,
    validate_string_in_choices,
    validate_title,
)

if TYPE_CHECKING:
    from . import StoryService

logger = logging.getLogger(__name__)

# Name of the version every new story starts on
INITIAL_VERSION_NAME = "Original"


def count_words(text: str) -> int:
    """Count words by splitting on whitespace."""
    return len(text.split())


def create_story(
    svc: StoryService,
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
    """Create a fully initialized story.

    The story row, its "Original" version, an empty initial snapshot and both
    active pointers are written in one transaction. If any step fails nothing
    of the story remains.

    Raises:
        ValidationError: If an input is invalid.
        NotFoundError: If the universe or container does not exist.
        OwnershipMismatchError: If the container belongs to another universe.
    """
    validate_not_empty(universe_id, "universe_id")
    title = validate_title(title, "title", svc.settings.title_max_length)
    story_type = validate_string_in_choices(story_type, "story_type", sorted(VALID_STORY_TYPES))
    status = validate_string_in_choices(status, "status", sorted(VALID_STORY_STATUSES))
    variation_type = validate_string_in_choices(
        variation_type, "variation_type", sorted(VALID_VARIATION_TYPES)
    )
    validate_non_negative(order, "order")
    if target_word_count is not None:
        validate_non_negative(target_word_count, "target_word_count")

    with svc.db.transaction():
        story = svc.db.add_story(
            universe_id,
            title,
            container_id=container_id,
            description=(description or "").strip(),
            story_type=story_type,
            status=status,
            target_word_count=target_word_count,
            order=order,
            variation_type=variation_type,
            parent_variation_id=parent_variation_id,
        )
        version = svc.db.create_version(story.id, INITIAL_VERSION_NAME)
        snapshot = svc.db.create_snapshot(version.id, "")
        svc.db.set_active_pointers(story.id, version.id, snapshot.id)
        created = svc.db.get_story(story.id)

    assert created is not None  # nosec - row was inserted in this transaction
    logger.info(
        "Created story '%s' id=%s (version=%s, snapshot=%s)",
        title,
        created.id,
        version.id,
        snapshot.id,
    )
    return created


def require_story(svc: StoryService, story_id: str) -> Story:
    """Get a story or raise NotFoundError."""
    story = svc.db.get_story(story_id)
    if story is None:
        raise NotFoundError("story", story_id)
    return story


def list_stories(svc: StoryService, container_id: str) -> list[Story]:
    return svc.db.list_stories(container_id)


def list_standalone_stories(svc: StoryService, universe_id: str) -> list[Story]:
    return svc.db.list_standalone_stories(universe_id)


def list_story_variations(svc: StoryService, story_id: str) -> list[Story]:
    """List the stories sharing a story's variation group, itself included.

    Raises:
        NotFoundError: If the story does not exist.
    """
    story = require_story(svc, story_id)
    return svc.db.list_story_variations(story.variation_group_id)


def reorder_stories(svc: StoryService, container_id: str, ordered_ids: list[str]) -> None:
    """Set story order inside a container from list position, all or nothing."""
    validate_id_list(ordered_ids, "ordered_ids")
    svc.db.reorder_stories(container_id, ordered_ids)


def delete_story(svc: StoryService, story_id: str) -> None:
    """Delete a story together with its versions and snapshots.

    Raises:
        NotFoundError: If the story does not exist.
    """
    if not svc.db.delete_story(story_id):
        raise NotFoundError("story", story_id)
