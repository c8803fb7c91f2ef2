from __future__ import annotations


ROLE_PERMISSIONS: dict[str, list[str]] = {
    "super_admin": [
        "price_overrides:view",
        "price_overrides:write",
        "price_overrides:expire",
    ],
    "admin": [
        "price_overrides:view",
        "price_overrides:write",
    ],
    "ops_manager": [
        "price_overrides:view",
        "price_overrides:write",
    ],
}


def normalize_role(role_name: str) -> str:
    return (role_name or "").strip().lower().replace(" ", "_").replace("-", "_")


def role_permissions(role_name: str) -> list[str]:
    return ROLE_PERMISSIONS.get(normalize_role(role_name), [])


def has_permission(role_name: str, permission: str) -> bool:
    return permission in role_permissions(role_name)
