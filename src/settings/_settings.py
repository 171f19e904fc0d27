"""Main Settings dataclass for Folio.

Settings are stored in settings.json next to the ``src`` package.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import shutil
import tempfile
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar

from src.settings import _validation as _validation_mod
from src.settings._backup import (
    _create_settings_backup,
    _log_settings_changes,
    _recover_from_backup,
)
from src.settings._paths import LOGS_DIR, PROJECT_ROOT, SETTINGS_FILE
from src.utils.exceptions import ConfigError

# Configure module logger
logger = logging.getLogger(__name__)


def _merge_with_defaults(data: dict[str, Any], settings_cls: type[Settings]) -> bool:
    """Merge loaded JSON data with dataclass defaults.

    - Adds missing keys with their default values
    - Removes keys that no longer exist in the dataclass

    Modifies *data* in place.

    Returns:
        True if any changes were made, False otherwise.
    """
    default_dict = asdict(settings_cls())
    known_fields = {f.name for f in fields(settings_cls)}
    changed = False

    for key in list(data):
        if key not in known_fields:
            logger.info("Removing obsolete setting: %s", key)
            del data[key]
            changed = True

    for key in sorted(known_fields):
        if key not in data:
            logger.info("Adding new setting with default: %s", key)
            data[key] = default_dict[key]
            changed = True

    logger.debug("Merge summary: %d known fields, changed=%s", len(known_fields), changed)
    return changed


def _atomic_write_json(path: Path | str, data: dict[str, Any]) -> None:
    """Write JSON to *path* atomically via a temp file + rename."""
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError as cleanup_err:
            logger.warning("Failed to remove temp settings file %s: %s", tmp_path, cleanup_err)
        raise


def _backup_corrupt_file() -> None:
    corrupt_path = SETTINGS_FILE.with_suffix(".json.corrupt")
    try:
        shutil.copy(SETTINGS_FILE, corrupt_path)
        logger.info("Backed up corrupted settings to %s", corrupt_path)
    except OSError as copy_err:
        logger.warning("Failed to backup corrupted settings: %s", copy_err)


@dataclass
class Settings:
    """Application settings."""

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "default"  # "default" -> output/logs/folio.log, None disables

    # Storage
    database_path: str = "output/library.db"  # Relative paths resolve against the project root

    # Snapshots kept per version after each new save-point
    snapshot_retention: int = 50

    # Container kinds accepted in addition to the built-in ones
    custom_container_kinds: list[str] = field(default_factory=list)

    # Maximum length of titles and version names
    title_max_length: int = 200

    def save(self) -> None:
        """Save settings to JSON file."""
        self.validate()
        _create_settings_backup(SETTINGS_FILE)
        _atomic_write_json(SETTINGS_FILE, asdict(self))
        logger.info("Settings saved to %s", SETTINGS_FILE)

    def validate(self) -> bool:
        """Validate all settings fields. Delegates to _validation module.

        Returns:
            True if any settings were normalized during validation.

        Raises:
            ValueError: If any field contains an invalid value.
        """
        return _validation_mod.validate(self)

    def get_database_path(self) -> Path:
        """Resolve the configured database path."""
        path = Path(self.database_path).expanduser()
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path

    def get_log_file(self) -> Path | None:
        """Resolve the configured log file, or None when file logging is disabled."""
        if self.log_file is None:
            return None
        if self.log_file == "default":
            return LOGS_DIR / "folio.log"
        return Path(self.log_file).expanduser()

    # Class-level cache for settings (speeds up repeated load() calls)
    _cached_instance: ClassVar[Settings | None] = None

    @classmethod
    def load(cls, use_cache: bool = True) -> Settings:
        """Load settings from JSON file, or create defaults.

        New settings get default values and removed settings are cleaned up;
        customized values are always preserved. A missing or corrupt primary
        file is recovered from ``settings.json.bak`` when possible.

        Args:
            use_cache: If True, return cached instance if available. Set to False
                to force reload from disk (useful after save() or in tests).

        Returns:
            Settings instance.

        Raises:
            ConfigError: If a stored value is invalid (also a ValueError).
        """
        if use_cache and cls._cached_instance is not None:
            return cls._cached_instance

        data: dict[str, Any] = {}
        if SETTINGS_FILE.exists():
            try:
                with open(SETTINGS_FILE) as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.error(
                        "Corrupted settings file (expected JSON object, got %s)",
                        type(loaded).__name__,
                    )
                    _backup_corrupt_file()
            except json.JSONDecodeError as e:
                logger.error("Corrupted settings file (invalid JSON): %s", e)
                _backup_corrupt_file()
            except OSError as e:
                logger.error("Cannot read settings file: %s", e)

        loaded_from_file = bool(data)
        recovered_from_backup = False
        if not data:
            recovered = _recover_from_backup(SETTINGS_FILE)
            if recovered is not None:
                data = recovered
                loaded_from_file = True
                recovered_from_backup = True
            else:
                logger.warning("No settings file or backup found, using defaults")

        original_data = copy.deepcopy(data)
        changed = _merge_with_defaults(data, cls)

        # Comparisons in validate() raise TypeError on wrongly typed values
        try:
            settings = cls(**data)
            changed = settings.validate() or changed
        except TypeError as e:
            raise ConfigError(f"A setting has an invalid type: {e}") from e
        except ValueError as e:
            raise ConfigError(f"Invalid settings in {SETTINGS_FILE}: {e}") from e

        final_data = asdict(settings)
        _log_settings_changes(original_data, final_data, "load")

        if changed:
            if loaded_from_file and not recovered_from_backup:
                _create_settings_backup(SETTINGS_FILE)
            try:
                _atomic_write_json(SETTINGS_FILE, final_data)
                logger.info("Settings written to %s", SETTINGS_FILE)
            except OSError as write_err:
                logger.warning("Could not persist settings to disk: %s", write_err)

        cls._cached_instance = settings
        return settings

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the cached settings instance.

        Use this in tests that need to verify settings loading behavior,
        or after programmatically modifying settings files.
        """
        cls._cached_instance = None
