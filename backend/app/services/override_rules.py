from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from app.core.exceptions import ValidationError
from app.models.price_override import PriceOverride


PRIORITY_LEVELS: dict[int, str] = {
    1: "State",
    2: "District",
    3: "Area",
    4: "Location",
    5: "Machine",
}

SCOPE_FIELDS = (
    "state",
    "district",
    "area_id",
    "location_campus",
    "location_tower",
    "location_floor",
    "machine_id",
)

MUTABLE_STATUSES = {"active", "inactive"}


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def scope_fields(row: PriceOverride) -> dict[str, Any]:
    return {field: getattr(row, field) for field in SCOPE_FIELDS}


def calculate_priority(fields: Mapping[str, Any]) -> int:
    if fields.get("machine_id"):
        return 5
    if fields.get("location_campus") or fields.get("location_tower") or fields.get("location_floor"):
        return 4
    if fields.get("area_id") is not None:
        return 3
    if fields.get("district"):
        return 2
    return 1


def priority_level_name(priority: int) -> str:
    return PRIORITY_LEVELS.get(priority, "Unknown")


def has_location_scope(fields: Mapping[str, Any]) -> bool:
    return any(fields.get(field) not in (None, "") for field in SCOPE_FIELDS)


def validate_window(start_date: datetime, end_date: datetime) -> None:
    if start_date >= end_date:
        raise ValidationError("End date must be after start date")


def validate_price(override_price: float) -> None:
    if override_price < 0:
        raise ValidationError("Override price cannot be negative")


def validate_reason(reason: str | None, max_length: int) -> str:
    cleaned = clean_text(reason)
    if not cleaned:
        raise ValidationError("Reason for override is required")
    if len(cleaned) > max_length:
        raise ValidationError(f"Reason cannot exceed {max_length} characters")
    return cleaned


def validate_status(status: str) -> str:
    if status not in MUTABLE_STATUSES:
        raise ValidationError("Valid status (active/inactive) is required")
    return status
