"""Input validation utilities for services.

These functions raise ``ValidationError`` so callers can reject bad input
before any write reaches the database.
"""

from src.utils.exceptions import ValidationError


def validate_not_empty(value: str | None, param_name: str) -> str:
    """Validate that a string parameter is not None or empty.

    Args:
        value: The string value to validate
        param_name: Name of the parameter for error messages

    Returns:
        The value with surrounding whitespace removed.

    Raises:
        ValidationError: If value is None, not a string, empty, or only whitespace
    """
    if value is None:
        raise ValidationError(f"Parameter '{param_name}' cannot be None")
    if not isinstance(value, str):
        raise ValidationError(
            f"Parameter '{param_name}' must be a string, got {type(value).__name__}"
        )
    value = value.strip()
    if not value:
        raise ValidationError(f"Parameter '{param_name}' cannot be empty")
    return value


def validate_title(value: str | None, param_name: str, max_length: int) -> str:
    """Validate a title or name: non-empty after stripping and at most ``max_length`` chars.

    Returns:
        The stripped title.

    Raises:
        ValidationError: If the title is empty or too long.
    """
    value = validate_not_empty(value, param_name)
    if len(value) > max_length:
        raise ValidationError(
            f"Parameter '{param_name}' cannot exceed {max_length} characters, got {len(value)}"
        )
    return value


def validate_non_negative(value: int | None, param_name: str) -> None:
    """Validate that an integer parameter is non-negative (>= 0).

    Raises:
        ValidationError: If value is None, not an integer, or negative
    """
    if value is None:
        raise ValidationError(f"Parameter '{param_name}' cannot be None")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"Parameter '{param_name}' must be an integer, got {type(value).__name__}"
        )
    if value < 0:
        raise ValidationError(f"Parameter '{param_name}' must be non-negative, got {value}")


def validate_string_in_choices(value: str | None, param_name: str, choices: list[str]) -> str:
    """Ensure the string parameter is one of the allowed choices.

    Returns:
        The stripped, lowercased value.

    Raises:
        ValidationError: If value is empty or not one of ``choices``.
    """
    value = validate_not_empty(value, param_name).lower()
    if value not in choices:
        raise ValidationError(f"Parameter '{param_name}' must be one of {choices}, got '{value}'")
    return value


def validate_id_list(value: list[str] | None, param_name: str) -> None:
    """Validate a list of IDs: a list of non-empty strings without duplicates.

    Raises:
        ValidationError: If the list is None, holds non-strings or repeats an ID.
    """
    if value is None:
        raise ValidationError(f"Parameter '{param_name}' cannot be None")
    if not isinstance(value, list):
        raise ValidationError(
            f"Parameter '{param_name}' must be a list, got {type(value).__name__}"
        )
    seen: set[str] = set()
    for item in value:
        validate_not_empty(item, param_name)
        if item in seen:
            raise ValidationError(f"Parameter '{param_name}' lists '{item}' more than once")
        seen.add(item)
