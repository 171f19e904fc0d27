"""Tests for ContainerService."""

import pytest

from src.memory.library_database import BUILTIN_CONTAINER_KINDS
from src.services.container_service import ContainerService
from src.settings import Settings
from src.utils.exceptions import (
    LeafProtectionError,
    NotFoundError,
    OwnershipMismatchError,
    ValidationError,
)


class TestContainerKinds:
    """Tests for the accepted container kinds."""

    def test_builtin_kinds(self, services):
        """Test that built-in kinds are accepted without configuration."""
        assert services.container.container_kinds == BUILTIN_CONTAINER_KINDS

    def test_custom_kind_accepted(self, db, universe):
        """Test that a configured custom kind can be used."""
        service = ContainerService(Settings(custom_container_kinds=["saga"]), db)
        container = service.create_container(universe.id, "saga", "The Long Saga")
        assert container.container_type == "saga"

    def test_unknown_kind_rejected(self, services, universe):
        """Test that an unknown kind is rejected before any write."""
        with pytest.raises(ValidationError, match="Unknown container kind"):
            services.container.create_container(universe.id, "trilogy", "Three Books")
        assert services.container.list_containers(universe.id) == []

    def test_kind_is_normalized(self, services, universe):
        """Test that kinds are case-insensitive."""
        container = services.container.create_container(universe.id, " Novel ", "Book")
        assert container.container_type == "novel"


class TestCreateContainer:
    """Tests for ContainerService.create_container."""

    def test_title_is_stripped(self, services, universe):
        """Test that surrounding whitespace is removed from titles."""
        container = services.container.create_container(universe.id, "novel", "  Book  ")
        assert container.title == "Book"

    def test_empty_title_rejected(self, services, universe):
        """Test that blank titles are rejected."""
        with pytest.raises(ValidationError):
            services.container.create_container(universe.id, "novel", "   ")

    def test_title_too_long(self, services, universe):
        """Test that titles over the configured limit are rejected."""
        limit = services.settings.title_max_length
        with pytest.raises(ValidationError, match="cannot exceed"):
            services.container.create_container(universe.id, "novel", "x" * (limit + 1))

    def test_title_at_limit(self, services, universe):
        """Test that a title of exactly the limit is accepted."""
        limit = services.settings.title_max_length
        container = services.container.create_container(universe.id, "novel", "x" * limit)
        assert len(container.title) == limit

    def test_negative_order_rejected(self, services, universe):
        """Test that a negative order is rejected."""
        with pytest.raises(ValidationError):
            services.container.create_container(universe.id, "novel", "Book", order=-1)

    def test_blank_description_becomes_none(self, services, universe):
        """Test that a whitespace-only description is stored as None."""
        container = services.container.create_container(
            universe.id, "novel", "Book", description="   "
        )
        assert container.description is None

    def test_hierarchy_errors_pass_through(self, services, universe):
        """Test that structural rules from the database reach the caller."""
        novel = services.container.create_container(universe.id, "novel", "Novel")
        services.story.create_story(universe.id, "Chapter", container_id=novel.id)

        with pytest.raises(LeafProtectionError):
            services.container.create_container(
                universe.id, "part", "Part", parent_id=novel.id
            )

    def test_foreign_parent(self, services, universe):
        """Test that a parent from another universe is rejected."""
        other = services.container.create_universe("Elsewhere")
        foreign = services.container.create_container(other.id, "series", "Foreign")
        with pytest.raises(OwnershipMismatchError):
            services.container.create_container(
                universe.id, "book", "Stray", parent_id=foreign.id
            )


class TestUniverses:
    """Tests for the universe helpers."""

    def test_create_and_list(self, services):
        """Test creating and listing universes."""
        universe = services.container.create_universe("  Aetheria  ", "Islands")
        assert universe.name == "Aetheria"
        assert [u.id for u in services.container.list_universes()] == [universe.id]

    def test_delete_missing(self, services):
        """Test that deleting an unknown universe raises NotFoundError."""
        with pytest.raises(NotFoundError):
            services.container.delete_universe("missing")


class TestQueries:
    """Tests for lookups, subtree and children."""

    def test_get_missing_container(self, services):
        """Test that an unknown container raises NotFoundError."""
        with pytest.raises(NotFoundError, match="Container not found: missing"):
            services.container.get_container("missing")

    def test_get_children(self, services, universe, novel, story):
        """Test that a container's stories are returned as children."""
        children = services.container.get_children(novel.id)
        assert children.containers == []
        assert [s.id for s in children.stories] == [story.id]

    def test_subtree_negative_depth(self, services, novel):
        """Test that a negative max_depth is rejected."""
        with pytest.raises(ValidationError):
            services.container.get_subtree(novel.id, max_depth=-1)

    def test_subtree(self, services, universe):
        """Test that the service returns the subtree root first."""
        series = services.container.create_container(universe.id, "series", "Series")
        book = services.container.create_container(
            universe.id, "book", "Book", parent_id=series.id
        )
        assert [c.id for c in services.container.get_subtree(series.id)] == [series.id, book.id]


class TestReorderAndUpdate:
    """Tests for reorder_children and update_container."""

    def test_reorder_rejects_duplicates(self, services, universe):
        """Test that a repeated ID is rejected before touching the store."""
        series = services.container.create_container(universe.id, "series", "Series")
        book = services.container.create_container(
            universe.id, "book", "Book", parent_id=series.id
        )
        with pytest.raises(ValidationError, match="more than once"):
            services.container.reorder_children(series.id, [book.id, book.id])

    def test_reorder(self, services, universe):
        """Test reordering children through the service."""
        series = services.container.create_container(universe.id, "series", "Series")
        a = services.container.create_container(universe.id, "book", "A", parent_id=series.id)
        b = services.container.create_container(universe.id, "book", "B", parent_id=series.id)

        services.container.reorder_children(series.id, [b.id, a.id])

        children = services.container.get_children(series.id).containers
        assert [c.id for c in children] == [b.id, a.id]

    def test_update_validates_kind(self, services, novel):
        """Test that an unknown kind is rejected on update."""
        with pytest.raises(ValidationError):
            services.container.update_container(novel.id, container_type="trilogy")

    def test_update_title(self, services, novel):
        """Test that only the title changes."""
        updated = services.container.update_container(novel.id, title=" New Title ")
        assert updated.title == "New Title"
        assert updated.container_type == novel.container_type

    def test_delete_container(self, services, novel, story):
        """Test deleting a container and its stories."""
        assert services.container.delete_container(novel.id) == [novel.id]
        with pytest.raises(NotFoundError):
            services.story.get_story(story.id)
