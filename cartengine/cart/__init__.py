"""Cart package: models, pricing, events, storage, rate refresh and the store facade."""
from .events import EventBus, EventLabel
from .models import (
    Address,
    AddressValidity,
    CartConfig,
    CartFlags,
    CartLineItem,
    CartRecord,
    OrderSubmission,
    Partition,
    Pricing,
    Product,
)
from .pricing import PricingEngine
from .rates import RateRefreshWorkflow, build_shipment_payload
from .service import CartStore
from .storage import CartStorage

__all__ = [
    "Address",
    "AddressValidity",
    "CartConfig",
    "CartFlags",
    "CartLineItem",
    "CartRecord",
    "CartStorage",
    "CartStore",
    "EventBus",
    "EventLabel",
    "OrderSubmission",
    "Partition",
    "Pricing",
    "PricingEngine",
    "Product",
    "RateRefreshWorkflow",
    "build_shipment_payload",
]
