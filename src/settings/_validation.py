"""Validation functions for Settings."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.settings._settings import Settings

logger = logging.getLogger(__name__)

LOG_LEVELS: dict[str, str] = {
    "DEBUG": "Debug",
    "INFO": "Info",
    "WARNING": "Warning",
    "ERROR": "Error",
}

# Container kinds are short lowercase tags: "series", "short-arc", ...
_KIND_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,39}$")


def validate(settings: Settings) -> bool:
    """Validate all settings fields.

    Returns:
        True if any settings were normalized during validation, False otherwise.
        Callers use this to decide whether to re-save the settings file.

    Raises:
        ValueError: If any field contains an invalid value.
    """
    _validate_log_level(settings)
    _validate_paths(settings)
    _validate_numeric_ranges(settings)
    return _validate_custom_container_kinds(settings)


def _validate_log_level(settings: Settings) -> None:
    """Validate log_level is a known logging level."""
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(
            f"log_level must be one of {list(LOG_LEVELS.keys())}, got {settings.log_level}"
        )


def _validate_paths(settings: Settings) -> None:
    if not isinstance(settings.database_path, str) or not settings.database_path.strip():
        raise ValueError("database_path must be a non-empty string")
    if settings.log_file is not None and (
        not isinstance(settings.log_file, str) or not settings.log_file.strip()
    ):
        raise ValueError("log_file must be a non-empty string, 'default' or null")


def _validate_numeric_ranges(settings: Settings) -> None:
    """Validate numeric range constraints."""
    if not 1 <= settings.snapshot_retention <= 1000:
        raise ValueError(
            f"snapshot_retention must be between 1 and 1000, got {settings.snapshot_retention}"
        )

    if not 1 <= settings.title_max_length <= 1000:
        raise ValueError(
            f"title_max_length must be between 1 and 1000, got {settings.title_max_length}"
        )


def _validate_custom_container_kinds(settings: Settings) -> bool:
    """Validate and normalize custom container kinds.

    Kinds are lowercased, stripped and de-duplicated in their original order.

    Returns:
        True if the list was normalized.
    """
    if not isinstance(settings.custom_container_kinds, list):
        raise ValueError(
            "custom_container_kinds must be a list, "
            f"got {type(settings.custom_container_kinds).__name__}"
        )

    normalized: list[str] = []
    for kind in settings.custom_container_kinds:
        if not isinstance(kind, str):
            raise ValueError(f"Container kinds must be strings, got {kind!r}")
        kind = kind.strip().lower()
        if not _KIND_PATTERN.match(kind):
            raise ValueError(
                f"Invalid container kind '{kind}': use lowercase letters, digits and dashes"
            )
        if kind not in normalized:
            normalized.append(kind)

    if normalized != settings.custom_container_kinds:
        logger.info(
            "Normalized custom_container_kinds: %s -> %s",
            settings.custom_container_kinds,
            normalized,
        )
        settings.custom_container_kinds = normalized
        return True
    return False
