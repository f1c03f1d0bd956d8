"""Identifier validation for progress persistence.

The store keys progress by user and video UUIDs. Ids that are not UUIDs
(mock users like ``member-1``, slugs, blanks) are rejected before any
persistence call instead of surfacing as backend validation errors.
"""

import re
from typing import Any


UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_identifier(value: Any) -> bool:
    """Check that value is a canonical UUID string."""
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def normalize_identifier(value: str) -> str:
    """Lowercase a valid identifier so keys compare equal in the store."""
    return value.lower()
