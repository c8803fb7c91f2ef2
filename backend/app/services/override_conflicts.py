from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.price_override import PriceOverride


def most_specific_filter(fields: Mapping[str, Any]):
    """Equality clause on the narrowest populated scope field; campus/tower/floor never discriminate."""
    if fields.get("machine_id"):
        return PriceOverride.machine_id == fields["machine_id"]
    if fields.get("area_id") is not None:
        return PriceOverride.area_id == fields["area_id"]
    if fields.get("district"):
        return func.lower(PriceOverride.district) == fields["district"].lower()
    if fields.get("state"):
        return func.lower(PriceOverride.state) == fields["state"].lower()
    return None


def find_conflict(
    db: Session,
    sku_id: int,
    fields: Mapping[str, Any],
    start_date: datetime,
    end_date: datetime,
    exclude_id: int | None = None,
) -> PriceOverride | None:
    scope_clause = most_specific_filter(fields)
    if scope_clause is None:
        return None

    query = select(PriceOverride).where(
        PriceOverride.sku_id == sku_id,
        PriceOverride.status == "active",
        PriceOverride.start_date <= end_date,
        PriceOverride.end_date >= start_date,
        scope_clause,
    )
    if exclude_id is not None:
        query = query.where(PriceOverride.id != exclude_id)
    return db.scalar(query.order_by(PriceOverride.id.asc()).limit(1))
