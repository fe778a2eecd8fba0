"""Role hierarchy: owner > editor > viewer.

A capability gated at a role is available to every role ranked at or above it.
"""

from __future__ import annotations

from repoplane.core.errors import InvalidArgumentError
from repoplane.store.models import Role

ROLE_ORDINALS: dict[Role, int] = {
    Role.VIEWER: 1,
    Role.EDITOR: 2,
    Role.OWNER: 3,
}


def parse_role(value: Role | str) -> Role:
    """Coerce a role or its string value (case-insensitive) to Role.

    Raises:
        InvalidArgumentError: If the value names no role.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            pass
    raise InvalidArgumentError.invalid_role(value)


def ordinal(role: Role | str) -> int:
    return ROLE_ORDINALS[parse_role(role)]


def meets(resolved: Role | str, minimum: Role | str) -> bool:
    """True if the resolved role is at least the minimum role."""
    return ordinal(resolved) >= ordinal(minimum)
