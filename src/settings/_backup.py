"""Backup and change logging for the settings file.

Provides:
- A ``settings.json.bak`` copy taken before every write
- Recovery from that copy when the primary file is missing or corrupt
- Per-key change logging during load/save
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _backup_path(settings_path: Path) -> Path:
    return settings_path.with_suffix(".json.bak")


def _read_json_dict(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from *path*, or None when the file is empty or not an object."""
    if path.stat().st_size == 0:
        logger.debug("%s is empty", path)
        return None
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        logger.warning("%s holds %s instead of a JSON object", path, type(data).__name__)
        return None
    return data


def _create_settings_backup(settings_path: Path) -> bool:
    """Copy the settings file to its ``.bak`` sibling before a write.

    A primary file that is empty or not valid JSON is never copied, so a good
    backup is not replaced by a broken one. Failures are logged, not raised.

    Args:
        settings_path: Path to the primary settings file.

    Returns:
        True if a backup was written.
    """
    if not settings_path.exists():
        logger.debug("No settings file to back up at %s", settings_path)
        return False
    try:
        if _read_json_dict(settings_path) is None:
            return False
        shutil.copy2(settings_path, _backup_path(settings_path))
    except json.JSONDecodeError:
        logger.warning("Settings file contains invalid JSON, skipping backup")
        return False
    except OSError as e:
        logger.warning("Failed to create settings backup: %s", e)
        return False
    logger.debug("Created settings backup at %s", _backup_path(settings_path))
    return True


def _recover_from_backup(settings_path: Path) -> dict[str, Any] | None:
    """Load settings from the ``.bak`` file.

    Args:
        settings_path: Path to the primary settings file.

    Returns:
        The recovered settings dict, or None if no usable backup exists.
    """
    backup_path = _backup_path(settings_path)
    if not backup_path.exists():
        logger.debug("No backup file found at %s", backup_path)
        return None
    try:
        data = _read_json_dict(backup_path)
    except json.JSONDecodeError as e:
        logger.error("Backup file at %s is corrupted (invalid JSON): %s", backup_path, e)
        return None
    except OSError as e:
        logger.error("Cannot read backup file at %s: %s", backup_path, e)
        return None
    if data is not None:
        logger.info("Recovered %d settings from backup file %s", len(data), backup_path)
    return data


def _log_settings_changes(original: dict[str, Any], final: dict[str, Any], label: str) -> int:
    """Log each top-level key that was added, removed or changed.

    Args:
        original: Settings dict before the operation.
        final: Settings dict after the operation.
        label: Prefix for the log lines (e.g. "load").

    Returns:
        Number of changed keys.
    """
    changes = 0
    for key in sorted(set(original) | set(final)):
        if key not in original:
            logger.info("[%s] added %s = %r", label, key, final[key])
        elif key not in final:
            logger.info("[%s] removed %s (was %r)", label, key, original[key])
        elif original[key] != final[key]:
            logger.info("[%s] changed %s: %r -> %r", label, key, original[key], final[key])
        else:
            continue
        changes += 1

    if changes:
        logger.info("[%s] total changes: %d", label, changes)
    else:
        logger.debug("[%s] no changes detected", label)
    return changes
