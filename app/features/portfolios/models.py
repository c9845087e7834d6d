"""
Portfolio model: a group of hotel properties managed under one contract.
"""
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Portfolio(Base, TimestampMixin):
    """
    Portfolio entity.

    Attributes:
        id: ULID primary key
        name: Unique portfolio name
        service_type_id: Contracted service type
        is_contract_signed: Whether the contract is signed
        is_active: Active flag
        is_commissionable: Whether audits on this portfolio earn commission
        contact_email: Main contact address
    """
    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    service_type_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("service_types.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    is_contract_signed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_commissionable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Portfolio(id={self.id}, name={self.name!r})>"
