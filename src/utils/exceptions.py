"""Centralized exception hierarchy for Folio.

Exception Hierarchy:

    FolioError (base for all application errors)
    ├── ValidationError (input rejected before any write)
    ├── HierarchyError (container tree invariant violations)
    │   ├── LeafProtectionError (container would hold both stories and child containers)
    │   └── MaxDepthExceededError (container nesting limit reached)
    ├── OwnershipMismatchError (entity does not belong to the expected parent)
    │   ├── VersionNotOwnedError (version belongs to another story)
    │   └── SnapshotNotInActiveVersionError (snapshot outside the story's active version)
    ├── LastVersionError (deleting a story's only version)
    ├── NoSnapshotsForVersionError (switching to a version without snapshots)
    ├── NotFoundError (referenced id does not exist)
    ├── StorageError (underlying SQLite failure)
    ├── DatabaseClosedError (database accessed after close)
    └── ConfigError (configuration parsing/validation failures)

Usage:
    from src.utils.exceptions import FolioError, LastVersionError

    try:
        services.story.delete_version(story_id, version_id)
    except LastVersionError:
        logger.warning("Refusing to delete the only version")
    except FolioError:
        logger.error("Version deletion failed")
"""

import logging

logger = logging.getLogger(__name__)


class FolioError(Exception):
    """Base exception for all Folio errors.

    All custom exceptions should inherit from this class to allow
    catching all application-specific errors with a single except clause.
    """

    pass


class ValidationError(FolioError):
    """Raised when input validation fails.

    Covers empty or over-long titles and names, unknown container kinds
    and invalid retention keep-counts. Always raised before the store is touched.
    """

    pass


class HierarchyError(FolioError):
    """Base exception for container tree invariant violations."""

    pass


class LeafProtectionError(HierarchyError):
    """Raised when a container would hold both stories and child containers.

    A container is either a branch (child containers) or a leaf (stories).
    """

    pass


class MaxDepthExceededError(HierarchyError):
    """Raised when creating a container would exceed the nesting limit.

    Attributes:
        depth: Depth the new container would have had.
        max_depth: The configured nesting limit.
    """

    def __init__(self, message: str, depth: int | None = None, max_depth: int | None = None):
        """Initialize MaxDepthExceededError with depth information.

        Args:
            message: Human-readable error message.
            depth: Depth the rejected container would have had.
            max_depth: Maximum allowed nesting depth.
        """
        super().__init__(message)
        self.depth = depth
        self.max_depth = max_depth
        logger.debug(
            "MaxDepthExceededError initialized: depth=%s, max_depth=%s", depth, max_depth
        )


class OwnershipMismatchError(FolioError):
    """Raised when an entity does not belong to the expected parent.

    Used by reorder operations (child not under the given parent) and as the
    base for version/snapshot ownership checks.
    """

    pass


class VersionNotOwnedError(OwnershipMismatchError):
    """Raised when a version does not belong to the given story."""

    pass


class SnapshotNotInActiveVersionError(OwnershipMismatchError):
    """Raised when switching to a snapshot outside the story's active version.

    Cross-version snapshot switches must go through a version switch first.
    """

    pass


class LastVersionError(FolioError):
    """Raised when deleting the only remaining version of a story."""

    pass


class NoSnapshotsForVersionError(FolioError):
    """Raised when switching to a version that has no snapshots.

    Versions are always created with an initial snapshot, so this only
    occurs in a store that was modified outside of Folio.
    """

    pass


class NotFoundError(FolioError):
    """Raised when a referenced id does not exist.

    Attributes:
        entity: Kind of entity that was looked up (container, story, ...).
        entity_id: The id that could not be resolved.
    """

    def __init__(self, entity: str, entity_id: str):
        """Initialize NotFoundError for a missing entity.

        Args:
            entity: Kind of entity that was looked up.
            entity_id: The id that could not be resolved.
        """
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(FolioError):
    """Raised when the underlying SQLite store fails.

    The original sqlite3 error message is kept verbatim and the original
    exception is chained as ``__cause__``.
    """

    pass


class DatabaseClosedError(FolioError):
    """Raised when a database operation is attempted on a closed connection."""

    pass


class ConfigError(FolioError, ValueError):
    """Raised when configuration parsing or validation fails.

    Raised by ``Settings.load()`` for a settings file holding invalid values.
    Also a ValueError, the type ``Settings.validate()`` raises.
    """

    pass
