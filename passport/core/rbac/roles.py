"""Role hierarchy for the Aluminium Passport platform.

Roles form a total order by privilege level (higher number = more privilege):

    super_admin  100   can approve admin actions (supplier onboarding)
    admin         90   system admin, requests supplier onboarding
    certifier     80   creates ESG assessments and certifications
    auditor       70   views audit logs and exports data
    miner         60   creates passports from mining operations
    manufacturer  60   creates passports from manufacturing
    recycler      50   updates recycling information
    viewer        10   read-only access

``issuer`` is a legacy alias kept at level 60 for old tokens. Unknown role
strings rank at level 0. Every authorization comparison goes through
:func:`get_role_level`; role names are never compared directly.
"""

from enum import Enum
from typing import Dict, List


class Role(str, Enum):
    """Named privilege levels."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    CERTIFIER = "certifier"
    AUDITOR = "auditor"
    MINER = "miner"
    MANUFACTURER = "manufacturer"
    RECYCLER = "recycler"
    VIEWER = "viewer"

    # Deprecated: use MINER or MANUFACTURER
    ISSUER = "issuer"


ROLE_HIERARCHY: Dict[str, int] = {
    Role.SUPER_ADMIN.value: 100,
    Role.ADMIN.value: 90,
    Role.CERTIFIER.value: 80,
    Role.AUDITOR.value: 70,
    Role.MINER.value: 60,
    Role.MANUFACTURER.value: 60,
    Role.RECYCLER.value: 50,
    Role.VIEWER.value: 10,
    Role.ISSUER.value: 60,
}

UNKNOWN_ROLE_LEVEL = 0

# Roles that may be assigned to users or named as approver roles
VALID_ROLES: List[str] = [
    Role.SUPER_ADMIN.value,
    Role.ADMIN.value,
    Role.CERTIFIER.value,
    Role.AUDITOR.value,
    Role.MINER.value,
    Role.MANUFACTURER.value,
    Role.RECYCLER.value,
    Role.VIEWER.value,
]

# Onboarding any of these requires super admin sign-off
SUPPLIER_ROLES: List[str] = [
    Role.MINER.value,
    Role.MANUFACTURER.value,
    Role.RECYCLER.value,
    Role.CERTIFIER.value,
]


ROLE_DESCRIPTIONS: Dict[str, str] = {
    Role.SUPER_ADMIN.value: "Highest privilege; approves supplier onboarding and admin actions",
    Role.ADMIN.value: "System administration; requests supplier onboarding",
    Role.CERTIFIER.value: "Creates ESG assessments and certifications",
    Role.AUDITOR.value: "Views audit logs and exports data",
    Role.MINER.value: "Creates passports from mining operations",
    Role.MANUFACTURER.value: "Creates passports from manufacturing",
    Role.RECYCLER.value: "Updates recycling information",
    Role.VIEWER.value: "Basic read-only access",
}


def get_role_level(role: str) -> int:
    """Return the hierarchy level for a role; unknown roles get level 0."""
    if isinstance(role, Role):
        role = role.value
    return ROLE_HIERARCHY.get(role, UNKNOWN_ROLE_LEVEL)


def has_higher_or_equal_role(user_role: str, required_role: str) -> bool:
    """True if ``user_role`` has at least the privilege of ``required_role``."""
    return get_role_level(user_role) >= get_role_level(required_role)


def is_valid_role(role: str) -> bool:
    return role in VALID_ROLES


def is_supplier_role(role: str) -> bool:
    return role in SUPPLIER_ROLES


def requires_super_admin_approval(role: str) -> bool:
    """Onboarding a supplier-class role needs super admin approval."""
    return is_supplier_role(role)


def get_role_hierarchy() -> List[dict]:
    """Valid roles ordered from highest to lowest privilege."""
    return [
        {
            "role": role,
            "level": get_role_level(role),
            "description": ROLE_DESCRIPTIONS[role],
            "is_supplier": is_supplier_role(role),
        }
        for role in sorted(VALID_ROLES, key=get_role_level, reverse=True)
    ]


def get_roles_at_or_above(role: str) -> List[str]:
    """Valid roles allowed to act wherever ``role`` is required, highest first."""
    required = get_role_level(role)
    return [
        r for r in sorted(VALID_ROLES, key=get_role_level, reverse=True)
        if get_role_level(r) >= required
    ]
