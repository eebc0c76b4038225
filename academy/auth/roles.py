"""
Academy Admin - Role-Based Access Control (RBAC)

Roles, permissions and the rules relating them.

- Role grants are loaded once from policies.yaml into frozen mappings.
- The hierarchy rank and the invite allow-list are separate tables:
  admin ranks above moderator but still may not invite another admin.
- Every function here is pure; nothing mutates the tables after import.
"""

from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Union

import yaml


class Role(str, Enum):
    """User roles, lowest to highest rank."""
    GUEST = "guest"
    STUDENT = "student"
    TEACHER = "teacher"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Permission(str, Enum):
    """Atomic capability tags."""
    # User management
    CREATE_USER = "create_user"
    READ_USER = "read_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    MANAGE_ROLES = "manage_roles"
    INVITE_USERS = "invite_users"

    # Content management
    CREATE_COURSE = "create_course"
    READ_COURSE = "read_course"
    UPDATE_COURSE = "update_course"
    DELETE_COURSE = "delete_course"

    # Academic operations
    GRADE_ASSIGNMENTS = "grade_assignments"
    VIEW_GRADES = "view_grades"
    SUBMIT_ASSIGNMENTS = "submit_assignments"

    # System administration
    ACCESS_ADMIN_PANEL = "access_admin_panel"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_SYSTEM_SETTINGS = "manage_system_settings"

    # Communication
    SEND_ANNOUNCEMENTS = "send_announcements"
    ACCESS_MESSAGING = "access_messaging"


POLICY_PATH = Path(__file__).parent / "policies.yaml"

ALL_GRANT = "all"


def load_role_permissions(path: Path = POLICY_PATH) -> Mapping[Role, FrozenSet[Permission]]:
    """
    Load role grants from a YAML policy file.

    Args:
        path: Policy file with a top-level ``roles`` mapping

    Returns:
        Read-only mapping of every Role to its frozen permission set.
        Roles missing from the file get an empty set (deny-by-default).

    Raises:
        ValueError: If the file names an unknown role or permission
    """
    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    table: Dict[Role, FrozenSet[Permission]] = {role: frozenset() for role in Role}

    for role_name, grants in (config.get("roles") or {}).items():
        try:
            role = Role(role_name)
        except ValueError:
            raise ValueError(f"Unknown role in policy file: {role_name}")

        if grants == ALL_GRANT:
            table[role] = frozenset(Permission)
            continue

        try:
            table[role] = frozenset(Permission(p) for p in grants or [])
        except ValueError as e:
            raise ValueError(f"Unknown permission for role {role_name}: {e}")

    return MappingProxyType(table)


ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = load_role_permissions()

# Higher number means higher privilege
ROLE_HIERARCHY: Mapping[Role, int] = MappingProxyType({
    Role.GUEST: 0,
    Role.STUDENT: 1,
    Role.TEACHER: 2,
    Role.MODERATOR: 3,
    Role.ADMIN: 4,
    Role.SUPER_ADMIN: 5,
})

# Explicit allow-list; not derived from rank
INVITABLE_ROLES: Mapping[Role, FrozenSet[Role]] = MappingProxyType({
    Role.SUPER_ADMIN: frozenset(Role),
    Role.ADMIN: frozenset({Role.MODERATOR, Role.TEACHER, Role.STUDENT, Role.GUEST}),
    Role.MODERATOR: frozenset(),
    Role.TEACHER: frozenset(),
    Role.STUDENT: frozenset(),
    Role.GUEST: frozenset(),
})

ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
STAFF_ROLES: FrozenSet[Role] = frozenset({
    Role.SUPER_ADMIN, Role.ADMIN, Role.MODERATOR, Role.TEACHER,
})

RoleLike = Union[Role, str]


def _role(value: RoleLike) -> Role:
    return value if isinstance(value, Role) else Role(value)


def permissions_of(role: RoleLike) -> FrozenSet[Permission]:
    """Get all permissions granted to a role."""
    return ROLE_PERMISSIONS[_role(role)]


def has_permission(role: RoleLike, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: User's role
        permission: Required permission

    Returns:
        True if permitted, False otherwise (deny-by-default)
    """
    return permission in permissions_of(role)


def has_any_permission(role: RoleLike, permissions: Iterable[Permission]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: RoleLike, permissions: Iterable[Permission]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def rank_of(role: RoleLike) -> int:
    return ROLE_HIERARCHY[_role(role)]


def is_higher_role(role_a: RoleLike, role_b: RoleLike) -> bool:
    return rank_of(role_a) > rank_of(role_b)


def is_higher_or_equal(role_a: RoleLike, role_b: RoleLike) -> bool:
    return rank_of(role_a) >= rank_of(role_b)


def invitable_roles(issuer_role: RoleLike) -> FrozenSet[Role]:
    """Roles that ``issuer_role`` may assign through an invitation."""
    return INVITABLE_ROLES[_role(issuer_role)]


def can_invite_role(issuer_role: RoleLike, target_role: RoleLike) -> bool:
    return _role(target_role) in invitable_roles(issuer_role)


def can_modify_user(actor_role: RoleLike, target_role: RoleLike) -> bool:
    """
    Check if ``actor_role`` may modify a user holding ``target_role``.

    Super admins can modify anyone; admins can modify anyone who is not an
    admin or super admin; every other role can modify no one.
    """
    actor = _role(actor_role)
    if actor == Role.SUPER_ADMIN:
        return True
    if actor == Role.ADMIN:
        return _role(target_role) not in ADMIN_ROLES
    return False


def is_admin_role(role: RoleLike) -> bool:
    return _role(role) in ADMIN_ROLES


def is_staff_role(role: RoleLike) -> bool:
    return _role(role) in STAFF_ROLES


def sorted_roles(roles: Iterable[Role]) -> list[Role]:
    """Order roles from highest to lowest rank (for stable messages)."""
    return sorted(roles, key=rank_of, reverse=True)
