"""Pytest fixtures for Folio tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from src.memory.entities import Container, Story, Universe
from src.memory.library_database import LibraryDatabase
from src.services import ServiceContainer
from src.settings import Settings


@pytest.fixture(autouse=True, scope="function")
def cleanup_production_log_handlers():
    """Remove file handlers pointing to the production log after each test.

    CLI and logging tests call setup_logging(), which may attach a handler for
    output/logs/folio.log. Removing it keeps later tests from writing there.
    """
    yield

    root_logger = logging.getLogger()
    production_log_name = "folio.log"

    handlers_to_remove = []
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            if hasattr(handler, "baseFilename") and production_log_name in handler.baseFilename:
                handlers_to_remove.append(handler)

    for handler in handlers_to_remove:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def clear_settings_cache_per_test():
    """Clear Settings cache before each test to ensure isolation.

    This is autouse because caching can cause test pollution when tests
    modify settings or patch SETTINGS_FILE to different paths.
    """
    Settings.clear_cache()
    yield
    Settings.clear_cache()


@pytest.fixture
def settings_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect the settings file into a temp directory."""
    path = tmp_path / "settings.json"
    monkeypatch.setattr("src.settings._settings.SETTINGS_FILE", path)
    return path


@pytest.fixture
def db(tmp_path: Path) -> Generator[LibraryDatabase]:
    """Create a test database that auto-closes after each test."""
    database = LibraryDatabase(tmp_path / "test.db")
    yield database
    if not database._closed:
        database.close()


@pytest.fixture
def settings() -> Settings:
    """Default settings, never read from or written to disk."""
    return Settings()


@pytest.fixture
def services(settings: Settings, db: LibraryDatabase) -> ServiceContainer:
    """Services wired to the temp database."""
    return ServiceContainer(settings, db)


@pytest.fixture
def universe(db: LibraryDatabase) -> Universe:
    """A universe to hang containers and stories off."""
    return db.add_universe("Aetheria", "A world of floating islands")


@pytest.fixture
def novel(services: ServiceContainer, universe: Universe) -> Container:
    """A root container of kind 'novel'."""
    return services.container.create_container(universe.id, "novel", "The Skyward Path")


@pytest.fixture
def story(services: ServiceContainer, universe: Universe, novel: Container) -> Story:
    """A fully initialized story inside the novel fixture."""
    return services.story.create_story(universe.id, "Chapter 1", container_id=novel.id)
