"""
Property bank details API routes.

Single-record routes are keyed by property id, so the guard checks the
property id against the caller's bank details access.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.bank_details.models import PropertyBankDetails
from app.features.bank_details.schemas import BankDetailsCreate, BankDetailsResponse, BankDetailsUpdate
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import get_authorization_engine, require_permission
from app.features.permissions.engine import AuthorizationEngine, Principal
from app.features.permissions.listing import list_accessible
from app.features.properties.models import Property

router = APIRouter()
list_router = APIRouter()


async def _get_by_property(db: AsyncSession, property_id: str) -> PropertyBankDetails | None:
    return await db.scalar(select(PropertyBankDetails).where(PropertyBankDetails.property_id == property_id))


@list_router.get("", response_model=list[BankDetailsResponse])
async def list_bank_details(
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    principal: Annotated[Principal, Depends(require_permission(Module.BANK_DETAILS, Action.READ))],
    skip: int = 0,
    limit: int = 100,
):
    """Bank details of every property visible to the caller."""
    stmt = select(PropertyBankDetails).order_by(PropertyBankDetails.property_id).offset(skip).limit(limit)
    return await list_accessible(
        db, engine, principal, Module.BANK_DETAILS, stmt, PropertyBankDetails.property_id
    )


@router.get("/{property_id}/bank-details", response_model=BankDetailsResponse)
async def get_bank_details(
    property_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.BANK_DETAILS, Action.READ, resource_param="property_id"))
    ],
):
    details = await _get_by_property(db, property_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Bank details not found")
    return details


@router.post("/{property_id}/bank-details", response_model=BankDetailsResponse, status_code=201)
async def create_bank_details(
    property_id: str,
    data: BankDetailsCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.BANK_DETAILS, Action.CREATE, resource_param="property_id"))
    ],
):
    if await db.get(Property, property_id) is None:
        raise HTTPException(status_code=404, detail="Property not found")
    if await _get_by_property(db, property_id) is not None:
        raise HTTPException(status_code=409, detail="Bank details already exist for this property")
    details = PropertyBankDetails(property_id=property_id, **data.model_dump())
    db.add(details)
    await db.commit()
    await db.refresh(details)
    return details


@router.patch("/{property_id}/bank-details", response_model=BankDetailsResponse)
async def update_bank_details(
    property_id: str,
    data: BankDetailsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.BANK_DETAILS, Action.UPDATE, resource_param="property_id"))
    ],
):
    details = await _get_by_property(db, property_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Bank details not found")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(details, key, value)
    await db.commit()
    await db.refresh(details)
    return details


@router.delete("/{property_id}/bank-details", status_code=204)
async def delete_bank_details(
    property_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[
        Principal, Depends(require_permission(Module.BANK_DETAILS, Action.DELETE, resource_param="property_id"))
    ],
):
    details = await _get_by_property(db, property_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Bank details not found")
    await db.delete(details)
    await db.commit()
