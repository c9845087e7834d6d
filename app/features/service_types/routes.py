"""
Service type API routes. Guarded by the system settings module.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import get_authorization_engine, require_permission
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.portfolios.models import Portfolio
from app.features.service_types.models import ServiceType
from app.features.service_types.schemas import ServiceTypeCreate, ServiceTypeResponse, ServiceTypeUpdate

router = APIRouter()


@router.post("", response_model=ServiceTypeResponse, status_code=201)
async def create_service_type(
    data: ServiceTypeCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.SYSTEM_SETTINGS, Action.CREATE))],
):
    service_type = ServiceType(**data.model_dump())
    db.add(service_type)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Service type already exists")
    await db.refresh(service_type)
    return service_type


@router.get("", response_model=list[ServiceTypeResponse])
async def list_service_types(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    principal: Annotated[Principal, Depends(require_permission(Module.SYSTEM_SETTINGS, Action.READ))],
    is_active: bool | None = None,
):
    stmt = select(ServiceType).order_by(ServiceType.order, ServiceType.type)
    if is_active is not None:
        stmt = stmt.where(ServiceType.is_active == is_active)
    return await list_accessible(db, engine, principal, Module.SYSTEM_SETTINGS, stmt, ServiceType.id)


@router.get("/{service_type_id}", response_model=ServiceTypeResponse)
async def get_service_type(
    service_type_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal,
        Depends(require_permission(Module.SYSTEM_SETTINGS, Action.READ, resource_param="service_type_id")),
    ],
):
    service_type = await db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service type not found")
    return service_type


@router.patch("/{service_type_id}", response_model=ServiceTypeResponse)
async def update_service_type(
    service_type_id: str,
    data: ServiceTypeUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal,
        Depends(require_permission(Module.SYSTEM_SETTINGS, Action.UPDATE, resource_param="service_type_id")),
    ],
):
    service_type = await db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service type not found")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(service_type, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Service type already exists")
    await db.refresh(service_type)
    return service_type


@router.delete("/{service_type_id}", status_code=204)
async def delete_service_type(
    service_type_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal,
        Depends(require_permission(Module.SYSTEM_SETTINGS, Action.DELETE, resource_param="service_type_id")),
    ],
):
    """Delete a service type no portfolio uses."""
    service_type = await db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service type not found")
    in_use = await db.scalar(
        select(func.count()).select_from(Portfolio).where(Portfolio.service_type_id == service_type_id)
    )
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Service type is used by {in_use} portfolios"
        )
    await db.delete(service_type)
    await db.commit()
