"""
Pydantic schemas for Property API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator


class PropertyBase(BaseModel):
    """Base schema for property."""
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    card_descriptor: str | None = Field(None, max_length=100)
    is_active: bool = True


class PropertyCreate(PropertyBase):
    """Schema for creating a property."""
    portfolio_id: str


class PropertyUpdate(BaseModel):
    """Schema for updating a property."""
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    card_descriptor: str | None = Field(None, max_length=100)
    is_active: bool | None = None
    portfolio_id: str | None = None

    @field_validator("name", "is_active", "portfolio_id")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class PropertyResponse(PropertyBase):
    """Schema for property response."""
    id: str
    portfolio_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
