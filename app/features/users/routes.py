"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import (
    add_audit_log,
    get_authorization_engine,
    load_role,
    require_permission,
)
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.permissions.policies import can_assign_role
from app.features.users.models import User
from app.features.users.schemas import UserCreate, UserResponse, UserUpdate
from app.features.users.dependencies import get_current_user


router = APIRouter(tags=["users"])


async def _assignable_role_id(db: AsyncSession, principal: Principal, role_id: str) -> str:
    """Validate that the caller may hand out `role_id`."""
    role = await load_role(db, role_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Role not found")
    if not can_assign_role(principal.role, role.to_snapshot()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot assign a role with more permissions than your own"
        )
    return role.id


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.get("", response_model=list[UserResponse])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    principal: Annotated[Principal, Depends(require_permission(Module.USER, Action.READ))],
    skip: int = 0,
    limit: int = 50
):
    """List users visible to the caller."""
    stmt = select(User).order_by(User.email).offset(skip).limit(limit)
    return await list_accessible(db, engine, principal, Module.USER, stmt, User.id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.USER, Action.READ, resource_param="user_id"))],
):
    """Get a user by ID."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.USER, Action.CREATE))],
):
    """Create a user with a role the caller is allowed to assign."""
    role_id = await _assignable_role_id(db, principal, user_data.role_id)
    user = User(email=user_data.email, name=user_data.name, role_id=role_id)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )
    add_audit_log(
        db,
        user_id=principal.user_id,
        action="create",
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email, "role_id": role_id},
        request=request,
    )
    await db.commit()
    await db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    update_data: UserUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER, Action.UPDATE, resource_param="user_id"))
    ],
):
    """Update a user's name, status or role assignment."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if update_data.role_id is not None and update_data.role_id != user.role_id:
        if user.id == principal.user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot change your own role"
            )
        user.role_id = await _assignable_role_id(db, principal, update_data.role_id)
    if update_data.name is not None:
        user.name = update_data.name
    if update_data.is_active is not None:
        user.is_active = update_data.is_active

    add_audit_log(
        db,
        user_id=principal.user_id,
        action="update",
        resource_type="user",
        resource_id=user_id,
        details=update_data.model_dump(exclude_unset=True),
        request=request,
    )
    await db.commit()
    await db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.USER, Action.DELETE, resource_param="user_id"))
    ],
):
    """Delete a user. The user's resource grant goes with it."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    # Prevent self-deletion
    if user.id == principal.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    await db.delete(user)
    add_audit_log(
        db,
        user_id=principal.user_id,
        action="delete",
        resource_type="user",
        resource_id=user_id,
        details={"email": user.email},
        request=request,
    )
    await db.commit()
