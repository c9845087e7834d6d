"""
Service type model (system settings).
"""
from sqlalchemy import String, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class ServiceType(Base, TimestampMixin):
    """Kind of service a portfolio is contracted for (e.g. 'Full audit', 'Collections only')."""
    __tablename__ = "service_types"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    type: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<ServiceType(id={self.id}, type={self.type!r})>"
