"""
Property model: a single hotel inside a portfolio.
"""
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Property(Base, TimestampMixin):
    """
    Hotel property.

    Attributes:
        id: ULID primary key
        name: Property name
        address: Street address
        card_descriptor: Descriptor shown on card statements
        portfolio_id: Owning portfolio
        is_active: Active flag
    """
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    card_descriptor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    portfolio_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("portfolios.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r}, portfolio_id={self.portfolio_id})>"
