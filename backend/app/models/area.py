from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Area(Base):
    """Route area. Owned by the field-operations service, read-only here."""

    __tablename__ = "areas"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    area_name: Mapped[str] = mapped_column(String(160), nullable=False)
    state: Mapped[str] = mapped_column(String(80), default="", nullable=False)
    district: Mapped[str] = mapped_column(String(80), default="", nullable=False)
    pincode: Mapped[str] = mapped_column(String(12), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
