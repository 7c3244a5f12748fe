"""Administrative routes under ``/api/admin``.

:class:`RoleAuthorizationMiddleware` rejects non-admins before routing; the
router repeats the check so it stays safe when mounted without the middleware.
"""

from typing import Any
from typing import Dict
from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from fastapi import status

from smarttask.dependencies.auth import require_role
from smarttask.dependencies.services import get_access_policy
from smarttask.dependencies.services import get_service_scope
from smarttask.dispatch.access_policy import AccessPolicyRegistry
from smarttask.dispatch.registry import ServiceScope
from smarttask.models.enums import UserRole
from smarttask.schemas.schemas import PublicServiceEntry
from smarttask.schemas.schemas import UserInfo
from smarttask.services.user_service import UserService

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN.value))],
)


@router.get("/users", response_model=List[UserInfo])
def list_users(skip: int = 0, limit: int = 100, scope: ServiceScope = Depends(get_service_scope)):
    try:
        return scope.get(UserService).get_all_users(skip=skip, limit=limit)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/public-services")
def list_public_services(policy: AccessPolicyRegistry = Depends(get_access_policy)) -> Dict[str, Any]:
    return {
        "publicServices": sorted(policy.public_services()),
        "publicPaths": sorted(policy.public_paths()),
    }


@router.post("/public-services", status_code=status.HTTP_201_CREATED)
def add_public_service(
    entry: PublicServiceEntry,
    request: Request,
    policy: AccessPolicyRegistry = Depends(get_access_policy),
) -> Dict[str, Any]:
    """Make a registered operation callable without authentication."""

    registration = request.app.state.registry.lookup(entry.service_name)
    if registration is None or entry.method_name not in registration.operations:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown operation {entry.service_name}.{entry.method_name}",
        )

    policy.add_public_entry(entry.service_name, entry.method_name)
    return {
        "service": f"{entry.service_name}.{entry.method_name}",
        "accessLevel": policy.describe_access_level(entry.service_name, entry.method_name),
    }


@router.delete("/public-services/{service_name}/{method_name}")
def remove_public_service(
    service_name: str,
    method_name: str,
    policy: AccessPolicyRegistry = Depends(get_access_policy),
) -> Dict[str, Any]:
    if not policy.remove_public_entry(service_name, method_name):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{service_name}.{method_name} is not a public service",
        )
    return {
        "service": f"{service_name}.{method_name}",
        "accessLevel": policy.describe_access_level(service_name, method_name),
    }
