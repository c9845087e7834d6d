"""
Permission management API routes.

Provides endpoints for roles, per-user resource grants, permission checks and
audit logs.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.core.errors import ForbiddenError
from app.features.users.models import User
from app.features.permissions.catalog import Action, Module
from app.features.permissions.engine import ALL_RESOURCES, AuthorizationEngine, Principal
from app.features.permissions.models import AuditLog, ResourceGrant, Role
from app.features.permissions.policies import can_assign_role, is_super_admin, validate_role_configuration
from app.features.permissions.schemas import (
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    GrantUpdate,
    GrantResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    ModuleAccess,
    EffectivePermissionsResponse,
    AuditLogResponse,
)
from app.features.permissions.dependencies import (
    add_audit_log,
    get_authorization_engine,
    get_current_principal,
    load_grant,
    load_role,
    require_permission,
)
from app.features.permissions.listing import list_accessible
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()
roles_router = APIRouter()
grants_router = APIRouter()

Engine = Annotated[AuthorizationEngine, Depends(get_authorization_engine)]
Session = Annotated[AsyncSession, Depends(get_db)]


# ============================================================================
# Role Routes
# ============================================================================

def _log_configuration_warnings(role_name: str, role: Role, verb: str) -> None:
    warnings = validate_role_configuration(role.permission_map())
    if warnings:
        log.warning(f"{verb} role {role_name!r} with potential issues:")
        for warning in warnings:
            log.warning(f"  - {warning}")


def _ensure_assignable(principal: Principal, role: Role) -> None:
    """Refuse role definitions that exceed the actor's own permissions."""
    if not can_assign_role(principal.role, role.to_snapshot()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role grants more than your own permissions"
        )


@roles_router.get("", response_model=List[RoleResponse])
async def list_roles(
    db: Session,
    engine: Engine,
    principal: Annotated[Principal, Depends(require_permission(Module.USER_ROLE, Action.READ))],
    skip: int = 0,
    limit: int = 100,
):
    """List roles visible to the caller."""
    stmt = select(Role).order_by(Role.name).offset(skip).limit(limit)
    roles = await list_accessible(db, engine, principal, Module.USER_ROLE, stmt, Role.id)
    return [RoleResponse.from_role(role) for role in roles]


@roles_router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    db: Session,
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER_ROLE, Action.READ, resource_param="role_id"))
    ],
):
    """Get a role by ID."""
    role = await load_role(db, role_id)
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return RoleResponse.from_role(role)


@roles_router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    request: Request,
    db: Session,
    principal: Annotated[Principal, Depends(require_permission(Module.USER_ROLE, Action.CREATE))],
):
    """Create a role. Modules not given get (view, none)."""
    role = Role(
        name=role_data.name,
        description=role_data.description,
        is_external=role_data.is_external,
        permissions=[],
    )
    role.set_permissions(role_data.permission_values())
    _ensure_assignable(principal, role)
    _log_configuration_warnings(role_data.name, role, "Creating")

    db.add(role)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    add_audit_log(
        db,
        user_id=principal.user_id,
        action="create",
        resource_type="role",
        resource_id=role.id,
        details=role_data.model_dump(mode="json"),
        request=request,
    )
    await db.commit()
    return RoleResponse.from_role(await load_role(db, role.id))


@roles_router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    request: Request,
    db: Session,
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER_ROLE, Action.UPDATE, resource_param="role_id"))
    ],
):
    """Update a role's name, flags or module permissions."""
    role = await load_role(db, role_id)
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")

    if role_update.name and role_update.name != role.name:
        existing = await db.scalar(select(Role).where(Role.name == role_update.name))
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Role with this name already exists"
            )

    update_data = role_update.model_dump(exclude_unset=True, exclude={"permissions"})
    for key, value in update_data.items():
        setattr(role, key, value)
    role.set_permissions(role_update.permission_values())
    _ensure_assignable(principal, role)
    _log_configuration_warnings(role.name, role, "Updating")

    add_audit_log(
        db,
        user_id=principal.user_id,
        action="update",
        resource_type="role",
        resource_id=role_id,
        details=role_update.model_dump(mode="json", exclude_unset=True),
        request=request,
    )
    await db.commit()
    return RoleResponse.from_role(await load_role(db, role_id))


@roles_router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    request: Request,
    db: Session,
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER_ROLE, Action.DELETE, resource_param="role_id"))
    ],
):
    """Delete a role. Refused while any user still references it."""
    role = await load_role(db, role_id)
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")

    user_count = await db.scalar(select(func.count()).select_from(User).where(User.role_id == role_id))
    if user_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete role with {user_count} assigned users. Please reassign the users first."
        )

    await db.delete(role)
    add_audit_log(
        db,
        user_id=principal.user_id,
        action="delete",
        resource_type="role",
        resource_id=role_id,
        details={"name": role.name},
        request=request,
    )
    await db.commit()


# ============================================================================
# Resource Grant Routes
# ============================================================================

def _grant_response(user_id: str, grant: ResourceGrant | None) -> GrantResponse:
    return GrantResponse(user_id=user_id, resource_ids=dict(grant.resource_ids) if grant else {})


@grants_router.get("/{user_id}/grants", response_model=GrantResponse)
async def get_user_grants(
    user_id: str,
    db: Session,
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER, Action.READ, resource_param="user_id"))
    ],
):
    """Get the resource ids explicitly granted to a user."""
    if await db.get(User, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _grant_response(user_id, await load_grant(db, user_id))


@grants_router.put("/{user_id}/grants", response_model=GrantResponse)
async def replace_user_grants(
    user_id: str,
    grant_data: GrantUpdate,
    request: Request,
    db: Session,
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER, Action.UPDATE, resource_param="user_id"))
    ],
    engine: Engine,
):
    """
    Replace a user's resource grant.

    The grant record is created on first assignment and updated in place after
    that. Modules left out of the payload are cleared.
    Callers may only hand out ids they can see themselves and may not change
    their own grant.
    """
    if user_id == principal.user_id:
        raise HTTPException(status_code=400, detail="Cannot change your own grants")
    if await db.get(User, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    for module, ids in grant_data.resource_ids.items():
        for resource_id in ids:
            if not engine.can_access_resource(principal, module, resource_id):
                log.warning(f"User {principal.user_id} tried to grant {module.value} {resource_id} outside their scope")
                raise ForbiddenError("resource")

    resource_ids = {module.value: ids for module, ids in grant_data.resource_ids.items()}
    grant = await load_grant(db, user_id)
    if grant is None:
        grant = ResourceGrant(user_id=user_id, resource_ids=resource_ids)
        db.add(grant)
    else:
        # JSON columns only register changes on reassignment
        grant.resource_ids = resource_ids

    add_audit_log(
        db,
        user_id=principal.user_id,
        action="assign",
        resource_type="grant",
        resource_id=user_id,
        details=resource_ids,
        request=request,
    )
    await db.commit()
    return _grant_response(user_id, grant)


# ============================================================================
# Permission Check Routes
# ============================================================================

@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check_request: PermissionCheckRequest,
    engine: Engine,
    principal: Annotated[Principal, Depends(get_current_principal)],
):
    """Check whether the current user may perform an action, without raising."""
    decision = engine.check(principal, check_request.module, check_request.action, check_request.resource_id)
    return PermissionCheckResponse(allowed=decision.allowed, reason=decision.reason)


@router.get("/me", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    engine: Engine,
    principal: Annotated[Principal, Depends(get_current_principal)],
):
    """Effective permissions and accessible ids of the current user, per module."""
    modules = {}
    for module in Module:
        permission = principal.role.permission_for(module)
        accessible = engine.resolve_accessible_ids(principal, module)
        modules[module] = ModuleAccess(
            capability=permission.capability if permission else None,
            scope=permission.scope if permission else None,
            actions=engine.allowed_actions(permission.capability, module) if permission else [],
            description=engine.describe(permission, module),
            accessible_ids="all" if accessible is ALL_RESOURCES else sorted(accessible),
        )
    return EffectivePermissionsResponse(
        user_id=principal.user_id,
        role_id=principal.role.id,
        role_name=principal.role.name,
        is_external=principal.role.is_external,
        is_super_admin=is_super_admin(principal.role),
        modules=modules,
    )


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    db: Session,
    engine: Engine,
    principal: Annotated[Principal, Depends(require_permission(Module.SYSTEM_SETTINGS, Action.READ))],
    resource_type: Optional[str] = None,
    user_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
):
    """List audit log entries, newest first."""
    stmt = select(AuditLog)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    return await list_accessible(db, engine, principal, Module.SYSTEM_SETTINGS, stmt, AuditLog.id)
