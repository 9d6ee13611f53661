"""Role hierarchy API endpoints."""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from passport.api.deps import get_current_actor
from passport.core.identity import Actor
from passport.core.rbac.roles import SUPPLIER_ROLES, get_role_hierarchy

router = APIRouter(prefix="/roles", tags=["roles"])


class RoleInfo(BaseModel):
    role: str
    level: int
    description: str
    is_supplier: bool


class RoleHierarchyResponse(BaseModel):
    roles: List[RoleInfo]
    supplier_roles: List[str]
    your_role: str
    your_level: int


@router.get("", response_model=RoleHierarchyResponse)
def list_roles(actor: Actor = Depends(get_current_actor)):
    """List roles from highest to lowest privilege."""
    return RoleHierarchyResponse(
        roles=[RoleInfo(**r) for r in get_role_hierarchy()],
        supplier_roles=SUPPLIER_ROLES,
        your_role=actor.role,
        your_level=actor.level,
    )
