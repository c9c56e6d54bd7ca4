"""Helpers for validating enumerated settings at assignment time."""

from enum import Enum
from typing import TypeVar

from src.features.core.errors import ValidationError


E = TypeVar("E", bound=Enum)


def validate_choice(
    field: str,
    value: object,
    choices: type[E],
    allow_none: bool = False,
) -> E | None:
    """Resolve a value against an enumerated set.

    Args:
        field: Attribute name used in the error message.
        value: Enum member or its string value.
        choices: Enum type listing the allowed values.
        allow_none: Whether ``None`` is accepted.

    Returns:
        The matching enum member, or None when allowed.

    Raises:
        ValidationError: If the value is not in the set.
    """
    if value is None:
        if allow_none:
            return None
        raise ValidationError(field, value, [member.value for member in choices])
    if isinstance(value, choices):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in choices:
            if member.value == normalized:
                return member
    raise ValidationError(field, value, [member.value for member in choices])
