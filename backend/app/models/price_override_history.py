from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


HISTORY_ACTIONS = ("CREATE", "UPDATE", "DELETE", "ACTIVATE", "DEACTIVATE", "EXPIRE")


class PriceOverrideHistory(Base):
    """Append-only audit row. No foreign key so entries outlive deleted overrides."""

    __tablename__ = "price_override_history"
    __table_args__ = (
        Index("ix_override_history_override_ts", "price_override_id", "timestamp"),
        Index("ix_override_history_sku_ts", "sku_id", "timestamp"),
        Index("ix_override_history_user_ts", "performed_by_user_id", "timestamp"),
        Index("ix_override_history_action_ts", "action", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    price_override_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sku_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sku_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(160), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    old_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    changes: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    performed_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    performed_by_email: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_by_name: Mapped[str] = mapped_column(String(120), default="")
    performed_by_role: Mapped[str] = mapped_column(String(50), nullable=False)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    request_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
