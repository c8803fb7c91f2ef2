"""Effective-price resolution.

Eligible overrides are active and inside their validity window at call time. Context
fields are tried from most to least specific and the first hit wins:

    machine_id -> area_id (no machine) -> district (no area, no machine) -> state (no district)

Campus/tower/floor (priority 4) are stored and ranked but not matched here. When nothing
context-specific matches, any eligible override for the SKU is used, highest priority and
newest first, even if it belongs to a different scope than the caller asked about.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.exceptions import NotFoundError
from app.models.price_override import PriceOverride
from app.schemas.price_override import EffectivePriceContext, EffectivePriceRead, OverrideDetails
from app.services.catalogue import get_catalogue_entry
from app.services.override_rules import calculate_priority, clean_text, priority_level_name, scope_fields

logger = logging.getLogger(__name__)


def _is_blank(column):
    return or_(column.is_(None), column == "")


def _first(db: Session, query) -> PriceOverride | None:
    return db.scalar(query.order_by(PriceOverride.created_at.desc(), PriceOverride.id.desc()).limit(1))


def find_applicable_override(
    db: Session,
    sku_id: int,
    context: EffectivePriceContext,
    now: datetime,
) -> PriceOverride | None:
    eligible = select(PriceOverride).where(
        PriceOverride.sku_id == sku_id,
        PriceOverride.status == "active",
        PriceOverride.start_date <= now,
        PriceOverride.end_date >= now,
    )

    machine_id = clean_text(context.machine_id)
    district = clean_text(context.district)
    state = clean_text(context.state)

    if machine_id:
        match = _first(db, eligible.where(PriceOverride.machine_id == machine_id))
        if match:
            return match

    if context.area_id is not None:
        match = _first(
            db,
            eligible.where(PriceOverride.area_id == context.area_id, _is_blank(PriceOverride.machine_id)),
        )
        if match:
            return match

    if district:
        match = _first(
            db,
            eligible.where(
                func.lower(PriceOverride.district) == district.lower(),
                PriceOverride.area_id.is_(None),
                _is_blank(PriceOverride.machine_id),
            ),
        )
        if match:
            return match

    if state:
        match = _first(
            db,
            eligible.where(
                func.lower(PriceOverride.state) == state.lower(),
                _is_blank(PriceOverride.district),
            ),
        )
        if match:
            return match

    return db.scalar(
        eligible.order_by(PriceOverride.priority.desc(), PriceOverride.created_at.desc(), PriceOverride.id.desc()).limit(1)
    )


def resolve_effective_price(
    db: Session,
    sku_id: int,
    context: EffectivePriceContext | None = None,
    now: datetime | None = None,
) -> EffectivePriceRead:
    catalogue = get_catalogue_entry(db, sku_id)
    if not catalogue:
        raise NotFoundError("SKU not found")

    now = as_utc(now) if now else utcnow()
    override = find_applicable_override(db, sku_id, context or EffectivePriceContext(), now)

    result = EffectivePriceRead(
        sku_id=catalogue.id,
        sku_code=catalogue.sku,
        product_name=catalogue.name,
        base_price=catalogue.base_price,
        effective_price=catalogue.base_price,
        is_overridden=False,
    )
    if override:
        result.effective_price = override.override_price
        result.is_overridden = True
        result.override_details = OverrideDetails(
            override_id=override.id,
            override_price=override.override_price,
            level=priority_level_name(calculate_priority(scope_fields(override))),
            reason=override.reason,
            start_date=as_utc(override.start_date),
            end_date=as_utc(override.end_date),
        )
        logger.debug("SKU %s resolved to override %s (%s)", sku_id, override.id, result.override_details.level)
    return result
