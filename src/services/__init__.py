"""Services layer - validated, atomic operations over the library database.

This module wires settings, the shared LibraryDatabase and the services that
callers (the CLI, tests) use instead of touching the database directly.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

from src.memory.library_database import LibraryDatabase
from src.settings import Settings

from .container_service import ContainerService
from .story_service import StoryService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Dependency injection container for all services.

    Usage:
        settings = Settings.load()
        with ServiceContainer(settings) as services:
            universe = services.container.create_universe("Aetheria")
            story = services.story.create_story(universe.id, "Prologue")
    """

    settings: Settings
    db: LibraryDatabase
    container: ContainerService
    story: StoryService

    def __init__(self, settings: Settings | None = None, db: LibraryDatabase | None = None):
        """Create and wire service instances that share one Settings and database.

        Args:
            settings: Application settings. Loaded via Settings.load() when omitted.
            db: Library database. Opened at ``settings.get_database_path()`` when omitted.
        """
        t0 = time.perf_counter()
        logger.info("Initializing ServiceContainer...")
        self.settings = settings or Settings.load()
        self.db = db or LibraryDatabase(self.settings.get_database_path())
        self.container = ContainerService(self.settings, self.db)
        self.story = StoryService(self.settings, self.db)
        logger.info("ServiceContainer initialized in %.2fs", time.perf_counter() - t0)

    def close(self) -> None:
        """Close the shared database."""
        self.db.close()

    def __enter__(self) -> ServiceContainer:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Literal[False]:
        self.close()
        return False


__all__ = [
    "ContainerService",
    "ServiceContainer",
    "StoryService",
]
