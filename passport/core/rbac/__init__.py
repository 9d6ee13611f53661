"""Role hierarchy and access control for the passport service."""

from .roles import (
    Role,
    ROLE_HIERARCHY,
    VALID_ROLES,
    SUPPLIER_ROLES,
    get_role_level,
    has_higher_or_equal_role,
    is_valid_role,
    requires_super_admin_approval,
    get_roles_at_or_above,
)
from .checker import RoleChecker, require_role

__all__ = [
    "Role",
    "ROLE_HIERARCHY",
    "VALID_ROLES",
    "SUPPLIER_ROLES",
    "get_role_level",
    "has_higher_or_equal_role",
    "is_valid_role",
    "requires_super_admin_approval",
    "get_roles_at_or_above",
    "RoleChecker",
    "require_role",
]
