"""Role checking utilities.

Provides a checker object and a FastAPI dependency factory for enforcing
minimum role levels on endpoints.
"""

from typing import Callable, List, Union

from fastapi import Depends

from passport.core.errors import AuthorizationError
from .roles import Role, VALID_ROLES, get_role_level


class RoleChecker:
    """Checks an actor's role against the hierarchy."""

    def __init__(self, actor_role: Union[str, Role]):
        self.role = actor_role.value if isinstance(actor_role, Role) else actor_role
        self.level = get_role_level(self.role)

    def has_role_at_least(self, required_role: Union[str, Role]) -> bool:
        return self.level >= get_role_level(required_role)

    def has_any_role_at_least(self, roles: List[Union[str, Role]]) -> bool:
        return any(self.has_role_at_least(r) for r in roles)

    def ensure(self, required_role: Union[str, Role], message: str = None) -> None:
        """Raise AuthorizationError unless the actor meets ``required_role``."""
        if not self.has_role_at_least(required_role):
            required = required_role.value if isinstance(required_role, Role) else required_role
            raise AuthorizationError(
                message or f"Insufficient role. Required: {required} or higher",
                actor_role=self.role,
                required_role=required,
            )

    def get_roles_at_or_below(self) -> list[str]:
        """Valid roles whose level does not exceed the actor's."""
        return [r for r in VALID_ROLES if get_role_level(r) <= self.level]


def require_role(minimum_role: Union[str, Role]) -> Callable:
    """
    Dependency factory for endpoints requiring a minimum role level.

    Usage:
        @router.post("/approvals/supplier-onboarding")
        async def onboard(actor: Actor = Depends(require_role(Role.ADMIN))):
            ...
    """
    # Import here to avoid circular imports
    from passport.api.deps import get_current_actor
    from passport.core.identity import Actor

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        RoleChecker(actor.role).ensure(minimum_role)
        return actor

    return dependency
