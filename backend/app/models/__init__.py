from app.models.area import Area
from app.models.price_override import PriceOverride
from app.models.price_override_history import PriceOverrideHistory
from app.models.product import Product

__all__ = [
    "Area",
    "PriceOverride",
    "PriceOverrideHistory",
    "Product",
]
