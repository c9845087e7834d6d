"""
Portfolio management API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import get_authorization_engine, require_permission
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.portfolios.models import Portfolio
from app.features.portfolios.schemas import PortfolioCreate, PortfolioResponse, PortfolioUpdate
from app.features.properties.models import Property
from app.features.service_types.models import ServiceType

router = APIRouter()


async def _ensure_unique_name(db: AsyncSession, name: str) -> None:
    existing = await db.scalar(select(Portfolio).where(Portfolio.name == name))
    if existing:
        raise HTTPException(status_code=409, detail="Portfolio with this name already exists")


async def _ensure_service_type(db: AsyncSession, service_type_id: str | None) -> None:
    if service_type_id is not None and await db.get(ServiceType, service_type_id) is None:
        raise HTTPException(status_code=400, detail="Service type not found")


@router.post("", response_model=PortfolioResponse, status_code=201)
async def create_portfolio(
    portfolio_data: PortfolioCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(require_permission(Module.PORTFOLIO, Action.CREATE))],
):
    """
    Create a new portfolio.

    Raises:
        HTTPException: 400 if `service_type_id` names no service type.
        HTTPException: 409 if a portfolio with the same name exists.
    """
    await _ensure_unique_name(db, portfolio_data.name)
    await _ensure_service_type(db, portfolio_data.service_type_id)
    portfolio = Portfolio(**portfolio_data.model_dump())
    db.add(portfolio)
    await db.commit()
    await db.refresh(portfolio)
    return portfolio


@router.get("", response_model=list[PortfolioResponse])
async def list_portfolios(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    principal: Annotated[Principal, Depends(require_permission(Module.PORTFOLIO, Action.READ))],
    is_active: bool | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """
    Retrieve a paginated list of the portfolios visible to the caller.

    Parameters:
        is_active (bool | None): Optional active-flag filter.
        skip (int): Number of records to skip (offset) for pagination.
        limit (int): Maximum number of records to return.
    """
    stmt = select(Portfolio)
    if is_active is not None:
        stmt = stmt.where(Portfolio.is_active == is_active)
    stmt = stmt.order_by(Portfolio.name).offset(skip).limit(limit)
    return await list_accessible(db, engine, principal, Module.PORTFOLIO, stmt, Portfolio.id)


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
async def get_portfolio(
    portfolio_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.PORTFOLIO, Action.READ, resource_param="portfolio_id"))
    ],
):
    """
    Retrieve a portfolio by its identifier.

    Raises:
        HTTPException: 404 if no portfolio with `portfolio_id` exists.
    """
    portfolio = await db.get(Portfolio, portfolio_id)
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio


@router.patch("/{portfolio_id}", response_model=PortfolioResponse)
async def update_portfolio(
    portfolio_id: str,
    update_data: PortfolioUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.PORTFOLIO, Action.UPDATE, resource_param="portfolio_id"))
    ],
):
    """Update a portfolio's fields."""
    portfolio = await db.get(Portfolio, portfolio_id)
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    if update_data.name and update_data.name != portfolio.name:
        await _ensure_unique_name(db, update_data.name)
    if update_data.service_type_id != portfolio.service_type_id:
        await _ensure_service_type(db, update_data.service_type_id)
    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(portfolio, key, value)
    await db.commit()
    await db.refresh(portfolio)
    return portfolio


@router.delete("/{portfolio_id}", status_code=204)
async def delete_portfolio(
    portfolio_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.PORTFOLIO, Action.DELETE, resource_param="portfolio_id"))
    ],
):
    """Delete a portfolio that has no properties left."""
    portfolio = await db.get(Portfolio, portfolio_id)
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    property_count = await db.scalar(
        select(func.count()).select_from(Property).where(Property.portfolio_id == portfolio_id)
    )
    if property_count:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot delete portfolio with {property_count} associated properties. "
                   "Please delete or reassign the properties first."
        )
    await db.delete(portfolio)
    await db.commit()
