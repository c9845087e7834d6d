"""
Property bank details: payout account of a property.
"""
import enum
from sqlalchemy import String, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class BankType(str, enum.Enum):
    BANK = "bank"
    STRIPE = "stripe"


class PropertyBankDetails(Base, TimestampMixin):
    """
    Bank details of one property. Addressed by property id: a user sees the
    bank details of exactly the properties they can see.
    """
    __tablename__ = "property_bank_details"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    property_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("properties.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    bank_type: Mapped[BankType] = mapped_column(SAEnum(BankType, native_enum=False), nullable=False)
    beneficiary_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    swift_bic_iban: Mapped[str | None] = mapped_column(String(64), nullable=True)
    routing_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    stripe_account_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<PropertyBankDetails(id={self.id}, property_id={self.property_id}, type={self.bank_type})>"
