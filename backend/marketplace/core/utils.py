"""
Shared helpers for timestamps and list query parameters.
"""
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from marketplace.core.exceptions import ValidationError


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def parse_sort(
    sort_by: Optional[str],
    allowed: Iterable[str],
    default: Tuple[str, bool] = ("createdAt", True),
) -> Tuple[str, bool]:
    """
    Parse a ``field:asc|desc`` query value.

    Returns (field, descending). Unknown fields are rejected so they never
    reach the ORM as attribute names.
    """
    if not sort_by:
        return default

    field, _, direction = sort_by.partition(":")
    field = field.strip()
    direction = (direction or "asc").strip().lower()

    if field not in allowed:
        raise ValidationError(f"Cannot sort by '{field}'")
    if direction not in ("asc", "desc"):
        raise ValidationError(f"Invalid sort direction '{direction}'")

    return field, direction == "desc"


def is_valid_id(value) -> bool:
    """Identities are positive integers; bools are not accepted."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
