"""
Pydantic schemas for service types.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator


class ServiceTypeBase(BaseModel):
    type: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True
    order: int = 0


class ServiceTypeCreate(ServiceTypeBase):
    pass


class ServiceTypeUpdate(BaseModel):
    type: str | None = Field(None, min_length=1, max_length=100)
    is_active: bool | None = None
    order: int | None = None

    @field_validator("type", "is_active", "order")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class ServiceTypeResponse(ServiceTypeBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
