from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator

from app.core.clock import as_utc
from app.models.price_override import PriceOverride


class LocationScope(BaseModel):
    campus: str | None = None
    tower: str | None = None
    floor: str | None = None


class PriceOverrideCreate(BaseModel):
    sku_id: int
    state: str | None = None
    district: str | None = None
    area_id: int | None = None
    location: LocationScope | None = None
    machine_id: str | None = None
    override_price: float
    start_date: datetime
    end_date: datetime
    reason: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return as_utc(value)


class PriceOverrideUpdate(BaseModel):
    """Partial patch. Only fields present in the request are applied; null clears a location field."""

    state: str | None = None
    district: str | None = None
    area_id: int | None = None
    location: LocationScope | None = None
    machine_id: str | None = None
    override_price: float | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    reason: str | None = None
    status: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class PriceOverrideStatusUpdate(BaseModel):
    status: str


class PriceOverrideFilter(BaseModel):
    sku_id: int | None = None
    sku_code: str | None = None
    state: str | None = None
    district: str | None = None
    area_id: int | None = None
    machine_id: str | None = None
    status: str | None = None
    start_date_from: datetime | None = None
    start_date_to: datetime | None = None


class EffectivePriceContext(BaseModel):
    machine_id: str | None = None
    area_id: int | None = None
    district: str | None = None
    state: str | None = None


class PriceOverrideRead(BaseModel):
    """Full override record. Also the fixed shape of history old_data/new_data snapshots."""

    id: int
    sku_id: int
    sku_code: str
    product_name: str
    original_base_price: float
    state: str | None = None
    district: str | None = None
    area_id: int | None = None
    area_name: str | None = None
    location: LocationScope | None = None
    machine_id: str | None = None
    override_price: float
    start_date: datetime
    end_date: datetime
    reason: str
    status: str
    priority: int
    created_by: int
    updated_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, row: PriceOverride) -> "PriceOverrideRead":
        location = None
        if row.location_campus or row.location_tower or row.location_floor:
            location = LocationScope(campus=row.location_campus, tower=row.location_tower, floor=row.location_floor)
        return cls(
            id=row.id,
            sku_id=row.sku_id,
            sku_code=row.sku_code,
            product_name=row.product_name,
            original_base_price=row.original_base_price,
            state=row.state,
            district=row.district,
            area_id=row.area_id,
            area_name=row.area_name,
            location=location,
            machine_id=row.machine_id,
            override_price=row.override_price,
            start_date=as_utc(row.start_date),
            end_date=as_utc(row.end_date),
            reason=row.reason,
            status=row.status,
            priority=row.priority,
            created_by=row.created_by,
            updated_by=row.updated_by,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class PerformedBy(BaseModel):
    user_id: int
    email: str
    name: str = ""
    role: str


class PriceOverrideHistoryRead(BaseModel):
    id: int
    price_override_id: int
    sku_id: int
    sku_code: str
    product_name: str
    action: str
    old_data: PriceOverrideRead | None = None
    new_data: PriceOverrideRead | None = None
    changes: list[FieldChange] = []
    performed_by: PerformedBy
    ip_address: str | None = None
    user_agent: str | None = None
    request_path: str | None = None
    timestamp: datetime


class HistoryFilter(BaseModel):
    price_override_id: int | None = None
    sku_id: int | None = None
    action: str | None = None
    user_id: int | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


class OverrideDetails(BaseModel):
    override_id: int
    override_price: float
    level: str
    reason: str
    start_date: datetime
    end_date: datetime


class EffectivePriceRead(BaseModel):
    sku_id: int
    sku_code: str
    product_name: str
    base_price: float
    effective_price: float
    is_overridden: bool
    override_details: OverrideDetails | None = None


class ExpiredOverride(BaseModel):
    id: int
    sku_code: str
    product_name: str
    end_date: datetime


class ExpirySummary(BaseModel):
    total_overrides: int
    active_count: int
    inactive_count: int
    already_expired_count: int
    newly_expired_count: int


class ExpiryResult(BaseModel):
    expired_count: int
    failed_count: int = 0
    expired_overrides: list[ExpiredOverride] = []
    summary: ExpirySummary


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
