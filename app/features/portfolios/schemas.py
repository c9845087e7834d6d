"""
Pydantic schemas for Portfolio API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator


class PortfolioBase(BaseModel):
    """Base schema for portfolio."""
    name: str = Field(..., min_length=1, max_length=255)
    service_type_id: str | None = None
    is_contract_signed: bool = False
    is_active: bool = True
    is_commissionable: bool = False
    contact_email: EmailStr | None = None


class PortfolioCreate(PortfolioBase):
    """Schema for creating a portfolio."""
    pass


class PortfolioUpdate(BaseModel):
    """Schema for updating a portfolio."""
    name: str | None = Field(None, min_length=1, max_length=255)
    service_type_id: str | None = None
    is_contract_signed: bool | None = None
    is_active: bool | None = None
    is_commissionable: bool | None = None
    contact_email: EmailStr | None = None

    @field_validator("name", "is_contract_signed", "is_active", "is_commissionable")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class PortfolioResponse(PortfolioBase):
    """Schema for portfolio response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
