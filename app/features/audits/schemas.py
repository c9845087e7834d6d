"""
Pydantic schemas for audits.
"""
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.features.audits.models import OtaType


class AuditBase(BaseModel):
    type_of_ota: OtaType | None = None
    status: str = Field("pending", min_length=1, max_length=50)
    amount_collectable: Decimal | None = Field(None, ge=0)
    amount_confirmed: Decimal | None = Field(None, ge=0)
    start_date: date
    end_date: date
    report_url: str | None = Field(None, max_length=500)


class AuditCreate(AuditBase):
    property_id: str

    @model_validator(mode="after")
    def check_period(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AuditUpdate(BaseModel):
    type_of_ota: OtaType | None = None
    status: str | None = Field(None, min_length=1, max_length=50)
    amount_collectable: Decimal | None = Field(None, ge=0)
    amount_confirmed: Decimal | None = Field(None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    report_url: str | None = Field(None, max_length=500)
    is_archived: bool | None = None

    @field_validator("status", "start_date", "end_date", "is_archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class AuditResponse(AuditBase):
    id: str
    property_id: str
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
