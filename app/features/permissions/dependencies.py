"""
Request guard and authorization data access.

Implements:
- Fresh per-request loading of a user's role and resource grant
- The require_permission dependency factory for route protection
- Audit logging helpers
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AuthorizationIntegrityError, ForbiddenError, StorageUnavailableError
from app.features.permissions.catalog import Action, Module
from app.features.permissions.engine import EMPTY_GRANT, AuthorizationEngine, Principal
from app.features.permissions.models import AuditLog, ResourceGrant, Role
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Role / Grant access
# ============================================================================

async def load_role(db: AsyncSession, role_id: str) -> Role | None:
    stmt = select(Role).where(Role.id == role_id).execution_options(populate_existing=True)
    return await db.scalar(stmt)


async def load_grant(db: AsyncSession, user_id: str) -> ResourceGrant | None:
    stmt = (
        select(ResourceGrant)
        .where(ResourceGrant.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return await db.scalar(stmt)


async def load_principal(db: AsyncSession, user: User) -> Principal:
    """
    Read the user's current role and grant and build a Principal.

    No caching: a permission change applies from the next request on.

    Raises:
        StorageUnavailableError: the read itself failed
        AuthorizationIntegrityError: the user's role is missing or holds unknown values
    """
    try:
        role = await load_role(db, user.role_id)
        grant = await load_grant(db, user.id)
    except SQLAlchemyError as e:
        log.warning(f"Authorization data read failed for user {user.id}: {e}")
        raise StorageUnavailableError() from e
    except LookupError as e:
        log.error(f"Unreadable authorization data for user {user.id}: {e}")
        raise AuthorizationIntegrityError(str(e)) from e

    if role is None:
        log.error(f"User {user.id} references missing role {user.role_id}")
        raise AuthorizationIntegrityError(f"Role {user.role_id} not found")

    try:
        return Principal(
            user_id=user.id,
            role=role.to_snapshot(),
            grants=grant.to_snapshot() if grant is not None else EMPTY_GRANT,
        )
    except (ValueError, LookupError) as e:
        log.error(f"Invalid authorization data for user {user.id}: {e}")
        raise AuthorizationIntegrityError(str(e)) from e


def get_authorization_engine(request: Request) -> AuthorizationEngine:
    """The engine instance built at startup (see app.main)."""
    engine = getattr(request.app.state, "authorization_engine", None)
    if engine is None:
        raise AuthorizationIntegrityError("Authorization engine not configured")
    return engine


async def get_current_principal(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Principal:
    """Authenticated principal without any permission requirement."""
    return await load_principal(db, current_user)


# ============================================================================
# Request guard
# ============================================================================

@dataclass(frozen=True)
class PermissionRequirement:
    """
    What a route declares: module, action and, for single-resource routes, the
    path parameter carrying the resource id.
    """
    module: Module
    action: Action
    resource_param: str | None = None

    @property
    def resource_scoped(self) -> bool:
        return self.resource_param is not None


def require_permission(module: Module, action: Action, resource_param: Optional[str] = None):
    """
    FastAPI dependency factory guarding a route.

    Usage:
        @router.get("/{portfolio_id}")
        async def get_portfolio(
            portfolio_id: str,
            principal: Principal = Depends(
                require_permission(Module.PORTFOLIO, Action.READ, resource_param="portfolio_id")
            ),
        ):
            ...

    List routes declare no resource_param; the guard then checks capability
    only and the handler filters through app.features.permissions.listing.

    Returns:
        Dependency returning the request's Principal when allowed

    Raises:
        ForbiddenError: capability below the action's minimum, or resource not accessible
    """
    requirement = PermissionRequirement(Module(module), Action(action), resource_param)

    async def permission_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        current_user: Annotated[User, Depends(get_current_user)],
        engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    ) -> Principal:
        principal = await load_principal(db, current_user)

        resource_id = None
        if requirement.resource_scoped:
            resource_id = request.path_params.get(requirement.resource_param)
            if resource_id is None:
                raise AuthorizationIntegrityError(
                    f"Route {request.url.path} declares missing path parameter {requirement.resource_param!r}"
                )

        decision = engine.check(principal, requirement.module, requirement.action, resource_id)
        if not decision.allowed:
            log.info(
                f"Denied user={current_user.id} module={requirement.module.value} "
                f"action={requirement.action.value} resource={resource_id} reason={decision.reason}"
            )
            raise ForbiddenError(decision.reason)

        return principal

    permission_dependency.requirement = requirement
    return permission_dependency


# ============================================================================
# Audit Logging
# ============================================================================

def add_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Stage an audit log entry in the caller's transaction.

    The entry commits or rolls back together with the change it describes.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "create", "update", "delete", "assign")
        resource_type: Type of resource (e.g., "role", "grant", "user")
        resource_id: ID of the resource
        details: Additional details
        request: Incoming request, for client IP and user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    db.add(audit_log)

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log
