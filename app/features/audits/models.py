"""
Audit model: an OTA collection audit run against one property.
"""
import enum
from datetime import date
from decimal import Decimal
from sqlalchemy import String, ForeignKey, Date, Numeric, Boolean, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class OtaType(str, enum.Enum):
    EXPEDIA = "expedia"
    BOOKING = "booking"
    AGODA = "agoda"


class Audit(Base, TimestampMixin):
    """
    Audit of a property's online travel agency payouts over a date range.

    Attributes:
        id: ULID primary key
        property_id: Audited property
        type_of_ota: Which OTA is audited
        status: Workflow status label
        amount_collectable: Amount found to be owed
        amount_confirmed: Amount the OTA confirmed
        start_date / end_date: Audited period
        report_url: Link to the generated report
        is_archived: Archived flag
    """
    __tablename__ = "audits"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    property_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    type_of_ota: Mapped[OtaType | None] = mapped_column(SAEnum(OtaType, native_enum=False), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="pending", nullable=False, index=True)
    amount_collectable: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amount_confirmed: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    report_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Audit(id={self.id}, property_id={self.property_id}, status={self.status!r})>"
