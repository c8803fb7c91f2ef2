from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


OVERRIDE_STATUSES = ("active", "inactive", "expired")


class PriceOverride(Base):
    __tablename__ = "price_overrides"
    __table_args__ = (
        Index("ix_price_overrides_sku_status_window", "sku_id", "status", "start_date", "end_date"),
        Index("ix_price_overrides_sku_machine_status", "sku_id", "machine_id", "status"),
        Index("ix_price_overrides_sku_geo_status", "sku_id", "state", "district", "area_id", "status"),
        Index("ix_price_overrides_status_end", "status", "end_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    sku_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sku_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(160), nullable=False)
    original_base_price: Mapped[float] = mapped_column(Float, nullable=False)

    state: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    district: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    area_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    area_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    location_campus: Mapped[str | None] = mapped_column(String(120), nullable=True)
    location_tower: Mapped[str | None] = mapped_column(String(120), nullable=True)
    location_floor: Mapped[str | None] = mapped_column(String(120), nullable=True)
    machine_id: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)

    override_price: Mapped[float] = mapped_column(Float, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
