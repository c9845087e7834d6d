"""
Property management API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import ForbiddenError
from app.features.audits.models import Audit
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import get_authorization_engine, require_permission
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.portfolios.models import Portfolio
from app.features.properties.models import Property
from app.features.properties.schemas import PropertyCreate, PropertyResponse, PropertyUpdate

router = APIRouter()

Engine = Annotated[AuthorizationEngine, Depends(get_authorization_engine)]


async def _ensure_target_portfolio(
    db: AsyncSession, engine: AuthorizationEngine, principal: Principal, portfolio_id: str
) -> None:
    """A property may only be placed in a portfolio the caller can see."""
    if not engine.can_access_resource(principal, Module.PORTFOLIO, portfolio_id):
        raise ForbiddenError("resource")
    if await db.get(Portfolio, portfolio_id) is None:
        raise HTTPException(status_code=400, detail="Portfolio not found")


@router.post("", response_model=PropertyResponse, status_code=201)
async def create_property(
    property_data: PropertyCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
    principal: Annotated[Principal, Depends(require_permission(Module.PROPERTY, Action.CREATE))],
):
    """Create a property inside an accessible portfolio."""
    await _ensure_target_portfolio(db, engine, principal, property_data.portfolio_id)
    hotel = Property(**property_data.model_dump())
    db.add(hotel)
    await db.commit()
    await db.refresh(hotel)
    return hotel


@router.get("", response_model=list[PropertyResponse])
async def list_properties(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
    principal: Annotated[Principal, Depends(require_permission(Module.PROPERTY, Action.READ))],
    portfolio_id: str | None = None,
    is_active: bool | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """
    Retrieve a paginated list of the properties visible to the caller.

    Parameters:
        portfolio_id (str | None): If provided, only properties of this portfolio are returned.
        is_active (bool | None): Optional active-flag filter.
    """
    stmt = select(Property)
    if portfolio_id:
        stmt = stmt.where(Property.portfolio_id == portfolio_id)
    if is_active is not None:
        stmt = stmt.where(Property.is_active == is_active)
    stmt = stmt.order_by(Property.name).offset(skip).limit(limit)
    return await list_accessible(db, engine, principal, Module.PROPERTY, stmt, Property.id)


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.PROPERTY, Action.READ, resource_param="property_id"))
    ],
):
    """
    Retrieve a property by its identifier.

    Raises:
        HTTPException: 404 if no property with `property_id` exists.
    """
    hotel = await db.get(Property, property_id)
    if not hotel:
        raise HTTPException(status_code=404, detail="Property not found")
    return hotel


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: str,
    update_data: PropertyUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
    principal: Annotated[
        Principal, Depends(require_permission(Module.PROPERTY, Action.UPDATE, resource_param="property_id"))
    ],
):
    """Update a property; moving it requires access to the target portfolio."""
    hotel = await db.get(Property, property_id)
    if not hotel:
        raise HTTPException(status_code=404, detail="Property not found")
    if update_data.portfolio_id and update_data.portfolio_id != hotel.portfolio_id:
        await _ensure_target_portfolio(db, engine, principal, update_data.portfolio_id)
    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(hotel, key, value)
    await db.commit()
    await db.refresh(hotel)
    return hotel


@router.delete("/{property_id}", status_code=204)
async def delete_property(
    property_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.PROPERTY, Action.DELETE, resource_param="property_id"))
    ],
):
    """Delete a property without audits."""
    hotel = await db.get(Property, property_id)
    if not hotel:
        raise HTTPException(status_code=404, detail="Property not found")
    audit_count = await db.scalar(select(func.count()).select_from(Audit).where(Audit.property_id == property_id))
    if audit_count:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot delete property with {audit_count} audits"
        )
    await db.delete(hotel)
    await db.commit()
