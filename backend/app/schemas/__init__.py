from app.schemas.actor import ActorContext
from app.schemas.price_override import (
    EffectivePriceContext,
    EffectivePriceRead,
    ExpiryResult,
    HistoryFilter,
    PriceOverrideCreate,
    PriceOverrideFilter,
    PriceOverrideHistoryRead,
    PriceOverrideRead,
    PriceOverrideStatusUpdate,
    PriceOverrideUpdate,
)

__all__ = [
    "ActorContext",
    "EffectivePriceContext",
    "EffectivePriceRead",
    "ExpiryResult",
    "HistoryFilter",
    "PriceOverrideCreate",
    "PriceOverrideFilter",
    "PriceOverrideHistoryRead",
    "PriceOverrideRead",
    "PriceOverrideStatusUpdate",
    "PriceOverrideUpdate",
]
