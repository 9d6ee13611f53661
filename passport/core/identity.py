"""Authenticated actor identity passed into the workflow engine."""

from dataclasses import dataclass
from typing import Optional

from passport.core.rbac.roles import get_role_level, has_higher_or_equal_role


@dataclass(frozen=True)
class Actor:
    """The (user id, role) pair resolved from a caller's credential.

    The engine trusts this pair as given; credential verification happens
    in the identity layer (see ``passport.api.deps``).
    """

    user_id: int
    role: str
    username: Optional[str] = None

    @property
    def level(self) -> int:
        return get_role_level(self.role)

    def has_role_at_least(self, required_role: str) -> bool:
        return has_higher_or_equal_role(self.role, required_role)
