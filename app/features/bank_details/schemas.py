"""
Pydantic schemas for property bank details.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator

from app.features.bank_details.models import BankType


class BankDetailsBase(BaseModel):
    bank_type: BankType
    beneficiary_name: str | None = Field(None, max_length=255)
    account_name: str | None = Field(None, max_length=255)
    account_number: str | None = Field(None, max_length=64)
    bank_name: str | None = Field(None, max_length=255)
    bank_branch: str | None = Field(None, max_length=255)
    swift_bic_iban: str | None = Field(None, max_length=64)
    routing_number: str | None = Field(None, max_length=64)
    currency: str | None = Field(None, min_length=3, max_length=3)
    stripe_account_email: EmailStr | None = None


class BankDetailsCreate(BankDetailsBase):
    pass


class BankDetailsUpdate(BaseModel):
    bank_type: BankType | None = None
    beneficiary_name: str | None = Field(None, max_length=255)
    account_name: str | None = Field(None, max_length=255)
    account_number: str | None = Field(None, max_length=64)
    bank_name: str | None = Field(None, max_length=255)
    bank_branch: str | None = Field(None, max_length=255)
    swift_bic_iban: str | None = Field(None, max_length=64)
    routing_number: str | None = Field(None, max_length=64)
    currency: str | None = Field(None, min_length=3, max_length=3)
    stripe_account_email: EmailStr | None = None

    @field_validator("bank_type")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class BankDetailsResponse(BankDetailsBase):
    id: str
    property_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
