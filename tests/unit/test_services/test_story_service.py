"""Tests for StoryService: story lifecycle, versions and snapshots."""

from unittest.mock import patch

import pytest

from src.services.story_service import StoryService
from src.services.story_service._lifecycle import INITIAL_VERSION_NAME, count_words
from src.settings import Settings
from src.utils.exceptions import (
    LastVersionError,
    NoSnapshotsForVersionError,
    NotFoundError,
    OwnershipMismatchError,
    SnapshotNotInActiveVersionError,
    StorageError,
    ValidationError,
    VersionNotOwnedError,
)


def _set_created_at(db, snapshot_id, timestamp):
    db.conn.execute(
        "UPDATE story_snapshots SET created_at = ? WHERE id = ?", (timestamp, snapshot_id)
    )


class TestCountWords:
    """Tests for count_words."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("", 0),
            ("   ", 0),
            ("one", 1),
            ("one two  three", 3),
            ("line one\nline two\ttabbed", 5),
        ],
    )
    def test_counts_whitespace_separated_words(self, text, expected):
        """Test word counting on assorted whitespace."""
        assert count_words(text) == expected


class TestCreateStory:
    """Tests for StoryService.create_story."""

    def test_story_is_fully_initialized(self, services, story):
        """Test that a new story has an Original version and an empty active snapshot."""
        versions = services.story.list_versions(story.id)
        assert [v.name for v in versions] == [INITIAL_VERSION_NAME]
        assert story.active_version_id == versions[0].id

        snapshots = services.story.list_snapshots(versions[0].id)
        assert len(snapshots) == 1
        assert snapshots[0].content == ""
        assert story.active_snapshot_id == snapshots[0].id
        assert story.pointers.is_initialized is True
        assert story.word_count == 0

    def test_standalone_story(self, services, universe):
        """Test creating a story outside any container."""
        story = services.story.create_story(universe.id, "Standalone")
        assert story.container_id is None
        assert story.pointers.is_initialized is True

    def test_inputs_are_normalized(self, services, universe):
        """Test that title, type and status are cleaned up."""
        story = services.story.create_story(
            universe.id, "  Tale  ", story_type="Short-Story", status="In-Progress"
        )
        assert story.title == "Tale"
        assert story.story_type == "short-story"
        assert story.status == "in-progress"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"title": ""},
            {"title": "x" * 201},
            {"story_type": "novella"},
            {"status": "abandoned"},
            {"variation_type": "remix"},
            {"order": -1},
            {"target_word_count": -10},
        ],
    )
    def test_invalid_input_rejected(self, services, universe, kwargs):
        """Test that bad input raises ValidationError and writes nothing."""
        params = {"title": "Tale", **kwargs}
        with pytest.raises(ValidationError):
            services.story.create_story(universe.id, **params)
        assert services.db.list_universe_stories(universe.id) == []

    def test_missing_universe(self, services):
        """Test that an unknown universe raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.create_story("missing", "Tale")

    def test_failure_leaves_nothing_behind(self, services, universe, novel):
        """Test that a failing step rolls back the whole story."""
        with patch.object(
            services.db, "create_snapshot", side_effect=StorageError("disk I/O error")
        ):
            with pytest.raises(StorageError):
                services.story.create_story(universe.id, "Doomed", container_id=novel.id)

        assert services.db.list_universe_stories(universe.id) == []
        count = services.db.conn.execute("SELECT COUNT(*) FROM story_versions").fetchone()[0]
        assert count == 0

    def test_container_holding_children_accepts_story(self, services, universe):
        """Test that stories may be placed beside child containers."""
        series = services.container.create_container(universe.id, "series", "Series")
        services.container.create_container(universe.id, "book", "Book", parent_id=series.id)

        story = services.story.create_story(universe.id, "Interlude", container_id=series.id)

        assert story.container_id == series.id


class TestStoryLookupAndOrdering:
    """Tests for get, list, reorder and delete."""

    def test_get_missing_story(self, services):
        """Test that an unknown story raises NotFoundError."""
        with pytest.raises(NotFoundError, match="Story not found: missing"):
            services.story.get_story("missing")

    def test_reorder_stories(self, services, universe, novel, story):
        """Test reordering stories within a container."""
        second = services.story.create_story(universe.id, "Chapter 2", container_id=novel.id)

        services.story.reorder_stories(novel.id, [second.id, story.id])

        assert [s.id for s in services.story.list_stories(novel.id)] == [second.id, story.id]

    def test_reorder_rejects_foreign_story(self, services, universe, novel, story):
        """Test that a story from another container aborts the reorder."""
        loose = services.story.create_story(universe.id, "Loose")
        with pytest.raises(OwnershipMismatchError):
            services.story.reorder_stories(novel.id, [story.id, loose.id])

    def test_delete_story(self, services, story):
        """Test deleting a story with its history."""
        version_id = story.active_version_id
        services.story.delete_story(story.id)

        with pytest.raises(NotFoundError):
            services.story.get_story(story.id)
        assert services.story.list_versions(story.id) == []
        assert services.story.list_snapshots(version_id) == []

    def test_delete_missing_story(self, services):
        """Test that deleting an unknown story raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.delete_story("missing")

    def test_list_standalone_stories(self, services, universe, story):
        """Test that only stories outside containers are listed."""
        loose = services.story.create_story(universe.id, "Vignette")
        assert [s.id for s in services.story.list_standalone_stories(universe.id)] == [loose.id]

    def test_list_story_variations(self, services, universe, story):
        """Test that a variation is listed with its original, from either side."""
        ending = services.story.create_story(
            universe.id,
            "Chapter 1 (alt)",
            variation_type="alternate-ending",
            parent_variation_id=story.id,
        )
        services.story.create_story(universe.id, "Unrelated")

        expected = [story.id, ending.id]
        assert [s.id for s in services.story.list_story_variations(story.id)] == expected
        assert [s.id for s in services.story.list_story_variations(ending.id)] == expected

    def test_list_variations_of_missing_story(self, services):
        """Test that an unknown story raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.list_story_variations("missing")


class TestSnapshots:
    """Tests for snapshot save-points, autosave and switching."""

    def test_create_snapshot_becomes_active(self, services, story):
        """Test that a new save-point is active and updates the word count."""
        snapshot = services.story.create_snapshot(story.id, "The wind rose at dawn")

        updated = services.story.get_story(story.id)
        assert updated.active_snapshot_id == snapshot.id
        assert updated.active_version_id == story.active_version_id
        assert updated.word_count == 5
        assert updated.last_edited_at >= story.last_edited_at
        assert services.story.get_active_snapshot(story.id).content == "The wind rose at dawn"

    def test_create_snapshot_applies_retention(self, db, universe):
        """Test that save-points beyond the retention limit are pruned, oldest first."""
        service = StoryService(Settings(snapshot_retention=3), db)
        story = service.create_story(universe.id, "Tale")

        created = [service.create_snapshot(story.id, f"draft {n}") for n in range(5)]

        remaining = service.list_snapshots(story.active_version_id)
        assert [s.id for s in remaining] == [s.id for s in reversed(created[-3:])]
        assert service.get_story(story.id).active_snapshot_id == created[-1].id

    def test_create_snapshot_failure_rolls_back(self, services, story):
        """Test that a failing retention pass undoes the whole save-point."""
        services.story.create_snapshot(story.id, "one two three")
        before = services.story.get_story(story.id)
        count_before = len(services.story.list_snapshots(story.active_version_id))

        with patch.object(
            services.db, "delete_oldest_snapshots", side_effect=StorageError("disk I/O error")
        ):
            with pytest.raises(StorageError):
                services.story.create_snapshot(story.id, "a much longer replacement draft")

        after = services.story.get_story(story.id)
        assert after.pointers == before.pointers
        assert after.word_count == 3
        assert after.last_edited_at == before.last_edited_at
        assert len(services.story.list_snapshots(story.active_version_id)) == count_before

    def test_create_snapshot_rejects_none(self, services, story):
        """Test that None content is rejected."""
        with pytest.raises(ValidationError):
            services.story.create_snapshot(story.id, None)

    def test_create_snapshot_missing_story(self, services):
        """Test that saving for an unknown story raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.create_snapshot("missing", "text")

    def test_update_snapshot_content(self, services, story):
        """Test that autosave edits the active snapshot in place."""
        snapshot = services.story.update_snapshot_content(story.id, "edited in place")

        assert snapshot.id == story.active_snapshot_id
        assert snapshot.content == "edited in place"
        assert len(services.story.list_snapshots(story.active_version_id)) == 1
        assert services.story.get_story(story.id).word_count == 3

    def test_switch_snapshot_within_version(self, services, story):
        """Test switching back to an older save-point of the active version."""
        services.story.create_snapshot(story.id, "newer draft")

        switched = services.story.switch_snapshot(story.id, story.active_snapshot_id)

        assert switched.active_snapshot_id == story.active_snapshot_id
        assert switched.active_version_id == story.active_version_id

    def test_switch_snapshot_does_not_touch_word_count(self, services, story):
        """Test that switching only moves the pointer."""
        services.story.create_snapshot(story.id, "four words right here")

        switched = services.story.switch_snapshot(story.id, story.active_snapshot_id)

        assert switched.word_count == 4

    def test_switch_snapshot_across_versions_rejected(self, services, story):
        """Test that a snapshot from another version cannot be switched to directly."""
        original_snapshot = story.active_snapshot_id
        services.story.create_version(story.id, "Alternate")
        before = services.story.get_story(story.id)

        with pytest.raises(SnapshotNotInActiveVersionError):
            services.story.switch_snapshot(story.id, original_snapshot)

        after = services.story.get_story(story.id)
        assert after.pointers == before.pointers

    def test_switch_to_missing_snapshot(self, services, story):
        """Test that an unknown snapshot raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.switch_snapshot(story.id, "missing")

    def test_get_active_snapshot_when_unset(self, services, story):
        """Test that a story without an active snapshot raises NotFoundError."""
        services.db.set_active_snapshot(story.id, None)
        with pytest.raises(NotFoundError):
            services.story.get_active_snapshot(story.id)


class TestVersions:
    """Tests for version creation, switching, renaming and deletion."""

    def test_create_version_becomes_active(self, services, story):
        """Test that a new version starts with its own active snapshot."""
        version = services.story.create_version(story.id, "Alternate Ending", "A new end")

        updated = services.story.get_story(story.id)
        assert updated.active_version_id == version.id
        active = services.story.get_active_snapshot(story.id)
        assert active.version_id == version.id
        assert active.content == "A new end"
        assert updated.word_count == 3

    def test_create_version_invalid_name(self, services, story):
        """Test that a blank name is rejected."""
        with pytest.raises(ValidationError):
            services.story.create_version(story.id, "  ")

    def test_create_version_missing_story(self, services):
        """Test that an unknown story raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.create_version("missing", "Alternate")

    def test_rename_version(self, services, story):
        """Test renaming a version."""
        renamed = services.story.rename_version(story.active_version_id, " First Draft ")
        assert renamed.name == "First Draft"

    def test_rename_missing_version(self, services):
        """Test that an unknown version raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.rename_version("missing", "Name")

    def test_switch_version_picks_latest_snapshot(self, services, story):
        """Test that switching versions views that version's newest snapshot."""
        original_id = story.active_version_id
        newest = services.story.create_snapshot(story.id, "latest original text")
        services.story.create_version(story.id, "Alternate")

        switched = services.story.switch_version(story.id, original_id)

        assert switched.active_version_id == original_id
        assert switched.active_snapshot_id == newest.id

    def test_switch_version_of_other_story(self, services, universe, story):
        """Test that another story's version is rejected."""
        other = services.story.create_story(universe.id, "Other")

        with pytest.raises(VersionNotOwnedError):
            services.story.switch_version(story.id, other.active_version_id)
        assert services.story.get_story(story.id).pointers == story.pointers

    def test_switch_version_without_snapshots(self, services, story):
        """Test that a version with no snapshots cannot be switched to."""
        original_id = story.active_version_id
        services.story.create_version(story.id, "Alternate")
        services.db.delete_oldest_snapshots(original_id, 0)

        with pytest.raises(NoSnapshotsForVersionError):
            services.story.switch_version(story.id, original_id)

    def test_switch_to_missing_version(self, services, story):
        """Test that an unknown version raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.switch_version(story.id, "missing")

    def test_delete_only_version(self, services, story):
        """Test that a story's only version cannot be deleted."""
        with pytest.raises(LastVersionError):
            services.story.delete_version(story.id, story.active_version_id)
        assert services.story.get_story(story.id).pointers == story.pointers

    def test_delete_inactive_version(self, services, story):
        """Test that deleting a non-active version leaves the pointers alone."""
        alternate = services.story.create_version(story.id, "Alternate")
        current = services.story.get_story(story.id)

        services.story.delete_version(story.id, story.active_version_id)

        assert services.story.get_story(story.id).pointers == current.pointers
        assert [v.id for v in services.story.list_versions(story.id)] == [alternate.id]

    def test_delete_active_version_fails_over(self, services, story):
        """Test that deleting the active version repoints to the last-created remaining one."""
        second = services.story.create_version(story.id, "Second")
        second_latest = services.story.create_snapshot(story.id, "second text")
        third = services.story.create_version(story.id, "Third")

        services.story.delete_version(story.id, third.id)

        updated = services.story.get_story(story.id)
        assert updated.active_version_id == second.id
        assert updated.active_snapshot_id == second_latest.id
        assert services.db.check_integrity() == []

    def test_failover_failure_rolls_back(self, services, story):
        """Test that a failing delete leaves the pointers and both versions in place."""
        alternate = services.story.create_version(story.id, "Alternate")
        before = services.story.get_story(story.id)

        with patch.object(
            services.db, "delete_version", side_effect=StorageError("disk I/O error")
        ):
            with pytest.raises(StorageError):
                services.story.delete_version(story.id, alternate.id)

        assert services.story.get_story(story.id).pointers == before.pointers
        assert before.active_version_id == alternate.id
        assert [v.id for v in services.story.list_versions(story.id)] == [
            story.active_version_id,
            alternate.id,
        ]

    def test_failover_to_version_without_snapshots(self, services, story):
        """Test that failover clears the snapshot pointer when the target has none."""
        original_id = story.active_version_id
        alternate = services.story.create_version(story.id, "Alternate")
        services.db.delete_oldest_snapshots(original_id, 0)

        services.story.delete_version(story.id, alternate.id)

        updated = services.story.get_story(story.id)
        assert updated.active_version_id == original_id
        assert updated.active_snapshot_id is None

    def test_delete_version_of_other_story(self, services, universe, story):
        """Test that a version must belong to the given story."""
        other = services.story.create_story(universe.id, "Other")
        services.story.create_version(other.id, "Alternate")

        with pytest.raises(VersionNotOwnedError):
            services.story.delete_version(story.id, other.active_version_id)


class TestCleanupOldSnapshots:
    """Tests for StoryService.cleanup_old_snapshots."""

    @pytest.fixture
    def history(self, services, story):
        """Three snapshots in the active version at 10:00, 11:00 and 12:00."""
        s1 = services.story.get_active_snapshot(story.id)
        s2 = services.story.create_snapshot(story.id, "second")
        s3 = services.story.create_snapshot(story.id, "third")
        for snapshot, hour in ((s1, 10), (s2, 11), (s3, 12)):
            _set_created_at(services.db, snapshot.id, f"2024-01-01T{hour}:00:00")
        return s1, s2, s3

    def test_keeps_newest(self, services, story, history):
        """Test that only the newest keep_count snapshots survive."""
        s1, s2, s3 = history

        deleted = services.story.cleanup_old_snapshots(story.active_version_id, 2)

        assert deleted == 1
        remaining = services.story.list_snapshots(story.active_version_id)
        assert [s.id for s in remaining] == [s3.id, s2.id]

    def test_idempotent(self, services, story, history):
        """Test that repeating a cleanup deletes nothing."""
        services.story.cleanup_old_snapshots(story.active_version_id, 2)
        assert services.story.cleanup_old_snapshots(story.active_version_id, 2) == 0

    def test_repoints_pruned_active_snapshot(self, services, story, history):
        """Test that a story viewing a pruned snapshot moves to the newest survivor."""
        s1, _, s3 = history
        services.story.switch_snapshot(story.id, s1.id)

        services.story.cleanup_old_snapshots(story.active_version_id, 1)

        assert services.story.get_story(story.id).active_snapshot_id == s3.id
        assert services.db.check_integrity() == []

    def test_keep_zero_clears_pointer(self, services, story, history):
        """Test that removing every snapshot leaves the story with no active snapshot."""
        assert services.story.cleanup_old_snapshots(story.active_version_id, 0) == 3

        updated = services.story.get_story(story.id)
        assert updated.active_snapshot_id is None
        assert updated.active_version_id == story.active_version_id

    def test_negative_keep_rejected(self, services, story, history):
        """Test that a negative keep_count is a validation error."""
        with pytest.raises(ValidationError):
            services.story.cleanup_old_snapshots(story.active_version_id, -1)
        assert len(services.story.list_snapshots(story.active_version_id)) == 3

    def test_missing_version(self, services):
        """Test that an unknown version raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.story.cleanup_old_snapshots("missing", 1)
