"""Staff roles and the static permission map."""

from collections.abc import Iterable
from enum import StrEnum


class Role(StrEnum):
    """Role of a staff profile within a school."""

    OWNER = "owner"
    MANAGER = "manager"
    RECEPTIONIST = "receptionist"


WILDCARD = "*"

PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.OWNER: frozenset({WILDCARD}),
    Role.MANAGER: frozenset(
        {
            "students",
            "teachers",
            "courses",
            "payments",
            "attendance",
            "revenue",
            "archives",
        }
    ),
    Role.RECEPTIONIST: frozenset({"students", "teachers", "courses", "attendance"}),
}

# Roles allowed to approve archives and manage staff.
MANAGEMENT_ROLES = frozenset({Role.OWNER, Role.MANAGER})

# Roles an invitation may grant; owners only join by registering a school.
INVITABLE_ROLES = frozenset({Role.MANAGER, Role.RECEPTIONIST})


def has_role(role: Role | None, roles: Role | str | Iterable[Role | str]) -> bool:
    """Return True when role matches one of the given roles."""
    if role is None:
        return False
    if isinstance(roles, str):
        return role == roles
    return role in set(roles)


def can_access(role: Role | None, resource: str) -> bool:
    """Return True when the role's permissions cover the resource."""
    if role is None:
        return False
    allowed = PERMISSIONS[role]
    return WILDCARD in allowed or resource in allowed
