"""
Audit API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audits.models import Audit
from app.features.audits.schemas import AuditCreate, AuditResponse, AuditUpdate
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import get_authorization_engine, require_permission
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.properties.models import Property

router = APIRouter()


@router.post("", response_model=AuditResponse, status_code=201)
async def create_audit(
    audit_data: AuditCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.AUDIT, Action.CREATE))],
):
    """Create an audit for an existing property."""
    if await db.get(Property, audit_data.property_id) is None:
        raise HTTPException(status_code=400, detail="Property not found")
    audit = Audit(**audit_data.model_dump())
    db.add(audit)
    await db.commit()
    await db.refresh(audit)
    return audit


@router.get("", response_model=list[AuditResponse])
async def list_audits(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    principal: Annotated[Principal, Depends(require_permission(Module.AUDIT, Action.READ))],
    property_id: str | None = None,
    status: str | None = None,
    is_archived: bool = False,
    skip: int = 0,
    limit: int = 100,
):
    """List audits, newest period first."""
    stmt = select(Audit).where(Audit.is_archived == is_archived)
    if property_id:
        stmt = stmt.where(Audit.property_id == property_id)
    if status:
        stmt = stmt.where(Audit.status == status)
    stmt = stmt.order_by(Audit.start_date.desc()).offset(skip).limit(limit)
    return await list_accessible(db, engine, principal, Module.AUDIT, stmt, Audit.id)


@router.get("/{audit_id}", response_model=AuditResponse)
async def get_audit(
    audit_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.AUDIT, Action.READ, resource_param="audit_id"))],
):
    audit = await db.get(Audit, audit_id)
    if not audit:
        raise HTTPException(status_code=404, detail="Audit not found")
    return audit


@router.patch("/{audit_id}", response_model=AuditResponse)
async def update_audit(
    audit_id: str,
    update_data: AuditUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.AUDIT, Action.UPDATE, resource_param="audit_id"))
    ],
):
    audit = await db.get(Audit, audit_id)
    if not audit:
        raise HTTPException(status_code=404, detail="Audit not found")
    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(audit, key, value)
    if audit.end_date < audit.start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    await db.commit()
    await db.refresh(audit)
    return audit


@router.delete("/{audit_id}", status_code=204)
async def delete_audit(
    audit_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.AUDIT, Action.DELETE, resource_param="audit_id"))
    ],
):
    audit = await db.get(Audit, audit_id)
    if not audit:
        raise HTTPException(status_code=404, detail="Audit not found")
    await db.delete(audit)
    await db.commit()
