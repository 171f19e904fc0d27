"""Container service - validated access to the universe/container hierarchy."""

import logging

from src.memory.entities import Container, ContainerChildren, Universe
from src.memory.library_database import BUILTIN_CONTAINER_KINDS, LibraryDatabase
from src.settings import Settings
from src.utils.exceptions import NotFoundError, ValidationError
from src.utils.validation import (
    validate_id_list,
    validate_non_negative,
    validate_not_empty,
    validate_title,
)

logger = logging.getLogger(__name__)


class ContainerService:
    """Hierarchy operations with input validation.

    Titles and kinds are checked here, before anything reaches the database;
    the structural rules (leaf protection, depth limit, ownership) are
    enforced inside the database transaction.
    """

    def __init__(self, settings: Settings, db: LibraryDatabase):
        """Initialize ContainerService.

        Args:
            settings: Application settings.
            db: Library database shared with the other services.
        """
        logger.debug("Initializing ContainerService")
        self.settings = settings
        self.db = db

    @property
    def container_kinds(self) -> frozenset[str]:
        """All container kinds currently accepted."""
        return BUILTIN_CONTAINER_KINDS | frozenset(self.settings.custom_container_kinds)

    def _validate_kind(self, container_type: str) -> str:
        kind = validate_not_empty(container_type, "container_type").lower()
        if kind not in self.container_kinds:
            raise ValidationError(
                f"Unknown container kind '{kind}'. "
                f"Must be one of: {', '.join(sorted(self.container_kinds))}"
            )
        return kind

    # ========== UNIVERSES ==========

    def create_universe(self, name: str, description: str = "") -> Universe:
        """Create a universe to own containers and stories."""
        name = validate_title(name, "name", self.settings.title_max_length)
        return self.db.add_universe(name, (description or "").strip())

    def list_universes(self) -> list[Universe]:
        return self.db.list_universes()

    def delete_universe(self, universe_id: str) -> None:
        """Delete a universe with everything it owns.

        Raises:
            NotFoundError: If the universe does not exist.
        """
        if not self.db.delete_universe(universe_id):
            raise NotFoundError("universe", universe_id)

    # ========== CONTAINERS ==========

    def create_container(
        self,
        universe_id: str,
        container_type: str,
        title: str,
        parent_id: str | None = None,
        description: str | None = None,
        order: int = 0,
    ) -> Container:
        """Create a container.

        Args:
            universe_id: Owning universe.
            container_type: Container kind (built-in or configured custom kind).
            title: Container title.
            parent_id: Parent container, or None for a root container.
            description: Optional description.
            order: Position among siblings.

        Returns:
            The created container.

        Raises:
            ValidationError: If the title or kind is invalid.
            NotFoundError: If the universe or parent does not exist.
            OwnershipMismatchError: If the parent belongs to another universe.
            LeafProtectionError: If the parent already holds stories.
            MaxDepthExceededError: If the nesting limit would be reached.
        """
        validate_not_empty(universe_id, "universe_id")
        title = validate_title(title, "title", self.settings.title_max_length)
        kind = self._validate_kind(container_type)
        validate_non_negative(order, "order")
        if description is not None:
            description = description.strip() or None

        return self.db.create_container(universe_id, parent_id, kind, title, description, order)

    def get_container(self, container_id: str) -> Container:
        """Get a container.

        Raises:
            NotFoundError: If the container does not exist.
        """
        container = self.db.get_container(container_id)
        if container is None:
            raise NotFoundError("container", container_id)
        return container

    def list_containers(self, universe_id: str) -> list[Container]:
        return self.db.list_containers(universe_id)

    def get_children(self, container_id: str) -> ContainerChildren:
        """Get a container's direct child containers and stories."""
        return self.db.get_container_children(container_id)

    def get_subtree(self, root_id: str, max_depth: int | None = None) -> list[Container]:
        """Get a container and its descendants, breadth-first.

        Args:
            root_id: Container at the top of the subtree.
            max_depth: Deepest relative level to include; None for the whole tree.

        Raises:
            ValidationError: If max_depth is negative.
            NotFoundError: If the root does not exist.
        """
        if max_depth is not None:
            validate_non_negative(max_depth, "max_depth")
        return self.db.get_subtree(root_id, max_depth)

    def reorder_children(self, parent_id: str, ordered_ids: list[str]) -> None:
        """Set sibling order from list position, all or nothing.

        Raises:
            ValidationError: If the ID list is malformed.
            OwnershipMismatchError: If an ID is not a child of ``parent_id``.
        """
        validate_id_list(ordered_ids, "ordered_ids")
        self.db.reorder_children(parent_id, ordered_ids)

    def update_container(
        self,
        container_id: str,
        title: str | None = None,
        description: str | None = None,
        container_type: str | None = None,
        order: int | None = None,
    ) -> Container:
        """Update only the provided fields of a container.

        Raises:
            ValidationError: If a provided field is invalid.
            NotFoundError: If the container does not exist.
        """
        if title is not None:
            title = validate_title(title, "title", self.settings.title_max_length)
        if container_type is not None:
            container_type = self._validate_kind(container_type)
        if order is not None:
            validate_non_negative(order, "order")
        return self.db.update_container(container_id, title, description, container_type, order)

    def delete_container(self, container_id: str) -> list[str]:
        """Delete a container and its subtree.

        Returns:
            Every removed container ID, children before parents, the root last.
        """
        deleted = self.db.delete_container(container_id)
        logger.debug("delete_container %s returned %s", container_id, deleted)
        return deleted
